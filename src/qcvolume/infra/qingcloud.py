"""QingCloud IaaS API client.

Implements the ControlPlane interface over the QingCloud HTTP API.
Requests are signed GET calls (HmacSHA256, signature version 1).

Reference: https://docs.qingcloud.com/api/common/signature.html
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote, quote_plus

import httpx

from qcvolume.config import CloudConfig
from qcvolume.core.errors import RemoteError, remote_error
from qcvolume.core.interfaces import ControlPlane
from qcvolume.core.logging_schema import LogEvent
from qcvolume.core.models import Instance, Job, JobSubmission, Volume, VolumeOptions
from qcvolume.core.retryable import is_retryable, with_retry

logger = logging.getLogger(__name__)

API_VERSION = 1
SIGNATURE_METHOD = "HmacSHA256"
SIGNATURE_VERSION = 1


def _flatten(params: dict[str, Any]) -> dict[str, str]:
    """Expand list parameters to the API's name.N form and drop None values."""
    flat: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value, start=1):
                flat[f"{key}.{index}"] = str(item)
        else:
            flat[key] = str(value)
    return flat


def sign_query(secret_access_key: str, path: str, params: dict[str, str]) -> str:
    """Build the signed query string for a GET request.

    Args:
        secret_access_key: API secret
        path: Request path, including the trailing slash (e.g. /iaas/)
        params: Flattened request parameters

    Returns:
        Query string with the signature appended
    """
    query = "&".join(
        f"{quote(key, safe='')}={quote(params[key], safe='-_~')}"
        for key in sorted(params)
    )
    string_to_sign = f"GET\n{path}\n{query}"
    digest = hmac.new(
        secret_access_key.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    signature = base64.b64encode(digest).strip().decode("ascii")
    return f"{query}&signature={quote_plus(signature)}"


class QingCloudClient(ControlPlane):
    """HTTP client for the QingCloud IaaS API.

    Read-only describe calls are retried on transient errors.
    Mutating calls are sent exactly once.
    """

    def __init__(self, config: CloudConfig) -> None:
        self._config = config
        self._path = config.uri.rstrip("/") + "/"
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.endpoint,
                timeout=self._config.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_query(self, action: str, params: dict[str, Any]) -> str:
        flat = _flatten(params)
        flat.update(
            {
                "action": action,
                "zone": self._config.zone,
                "access_key_id": self._config.access_key_id,
                "signature_method": SIGNATURE_METHOD,
                "signature_version": str(SIGNATURE_VERSION),
                "version": str(API_VERSION),
                "time_stamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            }
        )
        return sign_query(self._config.secret_access_key, self._path, flat)

    async def _request(self, action: str, params: dict[str, Any]) -> dict[str, Any]:
        """Send one signed API call.

        Raises:
            RemoteError: If the API returned a non-zero ret_code
            httpx.HTTPError: On transport or HTTP status failures
        """
        client = await self._get_client()
        # Signature covers the timestamp, so every attempt is signed anew
        resp = await client.get(f"{self._path}?{self._build_query(action, params)}")
        resp.raise_for_status()

        data = resp.json()
        ret_code = data.get("ret_code", 0)
        if ret_code != 0:
            raise remote_error(action, ret_code, data.get("message", f"{action} failed"))
        return data

    async def _call(
        self,
        action: str,
        params: dict[str, Any],
        *,
        retry: bool = False,
    ) -> dict[str, Any]:
        """Call an API action, mapping transport failures to RemoteError."""
        try:
            if retry:
                return await with_retry(
                    lambda: self._request(action, params),
                    max_retries=self._config.retries,
                )
            return await self._request(action, params)
        except httpx.HTTPError as exc:
            logger.warning(
                "%s request failed: %s",
                action,
                exc,
                extra={"event": LogEvent.REMOTE_CALL_FAILED, "action": action},
            )
            raise RemoteError(
                f"{action} request failed: {exc}",
                action=action,
                transient=is_retryable(exc),
            ) from exc

    # =========================================================================
    # Volumes
    # =========================================================================

    async def create_volumes(self, options: VolumeOptions) -> JobSubmission:
        data = await self._call(
            "CreateVolumes",
            {
                "volume_name": options.volume_name,
                "size": options.capacity_gb,
                "volume_type": int(options.volume_type),
                "count": 1,
            },
        )
        return JobSubmission(job_id=data["job_id"], volume_ids=data.get("volumes", []))

    async def delete_volumes(self, volume_ids: list[str]) -> JobSubmission:
        data = await self._call("DeleteVolumes", {"volumes": volume_ids})
        return JobSubmission(job_id=data["job_id"], volume_ids=volume_ids)

    async def attach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        data = await self._call(
            "AttachVolumes", {"volumes": volume_ids, "instance": instance_id}
        )
        return JobSubmission(job_id=data["job_id"], volume_ids=volume_ids)

    async def detach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        data = await self._call(
            "DetachVolumes", {"volumes": volume_ids, "instance": instance_id}
        )
        return JobSubmission(job_id=data["job_id"], volume_ids=volume_ids)

    async def describe_volumes(
        self,
        volume_ids: list[str] | None = None,
        search_word: str | None = None,
    ) -> list[Volume]:
        data = await self._call(
            "DescribeVolumes",
            {"volumes": volume_ids, "search_word": search_word},
            retry=True,
        )
        return [Volume.model_validate(item) for item in data.get("volume_set") or []]

    async def modify_volume_attributes(self, volume_id: str, volume_name: str) -> None:
        await self._call(
            "ModifyVolumeAttributes", {"volume": volume_id, "volume_name": volume_name}
        )

    # =========================================================================
    # Instances and jobs
    # =========================================================================

    async def describe_instances(
        self,
        instance_ids: list[str],
        status: list[str] | None = None,
        verbose: int = 0,
        is_cluster_node: int = 0,
    ) -> list[Instance]:
        data = await self._call(
            "DescribeInstances",
            {
                "instances": instance_ids,
                "status": status,
                "verbose": verbose,
                "is_cluster_node": is_cluster_node,
            },
            retry=True,
        )
        return [Instance.model_validate(item) for item in data.get("instance_set") or []]

    async def describe_jobs(self, job_ids: list[str]) -> list[Job]:
        # Single attempt: the job waiter owns the polling cadence
        data = await self._call("DescribeJobs", {"jobs": job_ids})
        return [Job.model_validate(item) for item in data.get("job_set") or []]
