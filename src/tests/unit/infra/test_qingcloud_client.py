"""Unit tests for QingCloudClient.

HTTP traffic goes through httpx.MockTransport.
"""

import base64
import hashlib
import hmac
from collections.abc import Callable
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qsl, unquote_plus

import httpx
import pytest

from qcvolume.config import CloudConfig
from qcvolume.core.errors import AlreadyDoneError, RemoteError
from qcvolume.core.models import VolumeOptions, VolumeType
from qcvolume.infra import QingCloudClient, sign_query
from qcvolume.infra.qingcloud import _flatten

Handler = Callable[[httpx.Request], httpx.Response]


def _params(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.url.query.decode("ascii")))


class TestSigning:
    """Tests for request signing."""

    def test_flatten_lists(self) -> None:
        flat = _flatten({"volumes": ["vol-1", "vol-2"], "instance": "i-1", "search_word": None})
        assert flat == {"volumes.1": "vol-1", "volumes.2": "vol-2", "instance": "i-1"}

    def test_query_sorted_and_encoded(self) -> None:
        signed = sign_query(
            "SECRET",
            "/iaas/",
            {"zone": "pek3a", "action": "DescribeVolumes", "time_stamp": "2024-01-02T03:04:05Z"},
        )
        query, signature = signed.split("&signature=")

        assert query == "action=DescribeVolumes&time_stamp=2024-01-02T03%3A04%3A05Z&zone=pek3a"

        expected = base64.b64encode(
            hmac.new(b"SECRET", f"GET\n/iaas/\n{query}".encode(), hashlib.sha256).digest()
        ).decode()
        assert unquote_plus(signature) == expected


class TestQingCloudClient:
    """Tests for QingCloudClient API calls."""

    @pytest.fixture
    def config(self) -> CloudConfig:
        return CloudConfig(
            access_key_id="AKID",
            secret_access_key="SECRET",
            zone="pek3a",
            host="api.test",
            port=443,
            protocol="https",
            retries=2,
        )

    @pytest.fixture
    def no_sleep(self):
        with patch("qcvolume.core.retryable.asyncio.sleep", new_callable=AsyncMock) as sleep:
            yield sleep

    def _client(self, config: CloudConfig, handler: Handler) -> QingCloudClient:
        client = QingCloudClient(config)
        client._client = httpx.AsyncClient(
            base_url=config.endpoint,
            transport=httpx.MockTransport(handler),
        )
        return client

    async def test_common_parameters(self, config: CloudConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ret_code": 0, "volume_set": []})

        client = self._client(config, handler)
        await client.describe_volumes(volume_ids=["vol-1", "vol-2"])

        request = seen[0]
        params = _params(request)
        assert request.method == "GET"
        assert request.url.path == "/iaas/"
        assert params["action"] == "DescribeVolumes"
        assert params["zone"] == "pek3a"
        assert params["access_key_id"] == "AKID"
        assert params["signature_method"] == "HmacSHA256"
        assert params["signature_version"] == "1"
        assert params["volumes.1"] == "vol-1"
        assert params["volumes.2"] == "vol-2"
        assert "search_word" not in params
        assert "signature" in params

    async def test_describe_volumes_parses_attachment(self, config: CloudConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "ret_code": 0,
                    "volume_set": [
                        {
                            "volume_id": "vol-1",
                            "volume_name": "pvc-1",
                            "size": 20,
                            "volume_type": 3,
                            "status": "in-use",
                            "instance": {"instance_id": "i-1", "device": "/dev/vdc"},
                        }
                    ],
                },
            )

        client = self._client(config, handler)
        volumes = await client.describe_volumes(volume_ids=["vol-1"])

        assert len(volumes) == 1
        assert volumes[0].device == "/dev/vdc"
        assert volumes[0].is_attached_to("i-1")

    async def test_create_volumes(self, config: CloudConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ret_code": 0, "job_id": "j-1", "volumes": ["vol-1"]})

        client = self._client(config, handler)
        submission = await client.create_volumes(
            VolumeOptions(capacity_gb=50, volume_type=VolumeType.HIGH_CAPACITY, volume_name="pvc-1")
        )

        assert submission.job_id == "j-1"
        assert submission.volume_ids == ["vol-1"]
        params = _params(seen[0])
        assert params["size"] == "50"
        assert params["volume_type"] == "2"
        assert params["count"] == "1"

    async def test_benign_ret_code(self, config: CloudConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"ret_code": 2100, "message": "resource [vol-1] has already been deleted"},
            )

        client = self._client(config, handler)
        with pytest.raises(AlreadyDoneError) as exc_info:
            await client.delete_volumes(["vol-1"])
        assert exc_info.value.action == "DeleteVolumes"
        assert exc_info.value.ret_code == 2100

    async def test_mutation_not_retried(self, config: CloudConfig, no_sleep: AsyncMock) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json={"ret_code": 5100, "message": "server busy"})

        client = self._client(config, handler)
        with pytest.raises(RemoteError, match="server busy"):
            await client.attach_volumes(["vol-1"], "i-1")
        assert calls == 1

    async def test_describe_retried(self, config: CloudConfig, no_sleep: AsyncMock) -> None:
        responses = [
            httpx.Response(200, json={"ret_code": 5100, "message": "server busy"}),
            httpx.Response(200, json={"ret_code": 0, "instance_set": [{"instance_id": "i-1", "instance_class": 1}]}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        client = self._client(config, handler)
        instances = await client.describe_instances(["i-1"], status=["running"], verbose=1)

        assert instances[0].instance_class == 1
        assert no_sleep.await_count == 1

    async def test_transport_error_becomes_remote_error(
        self, config: CloudConfig, no_sleep: AsyncMock
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(config, handler)
        with pytest.raises(RemoteError) as exc_info:
            await client.describe_jobs(["j-1"])

        assert exc_info.value.transient is True
        assert exc_info.value.action == "DescribeJobs"

    async def test_http_status_error(self, config: CloudConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={})

        client = self._client(config, handler)
        with pytest.raises(RemoteError) as exc_info:
            await client.modify_volume_attributes("vol-1", "pvc-1")
        assert exc_info.value.transient is False

    async def test_close(self, config: CloudConfig) -> None:
        """Test close cleans up HTTP client."""
        client = QingCloudClient(config)
        await client._get_client()
        assert client._client is not None

        await client.close()
        assert client._client is None
