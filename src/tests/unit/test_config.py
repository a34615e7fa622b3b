"""Tests for configuration loading."""

import pytest

from qcvolume.config import CloudConfig, JobConfig, Settings, load_cloud_config

CLIENT_FILE = """\
qy_access_key_id: 'QYACCESSKEYIDEXAMPLE'
qy_secret_access_key: 'SECRETACCESSKEY'
zone: 'pek3a'
host: 'api.example.com'
port: 8443
protocol: 'http'
uri: '/iaas'
connection_retries: 5
connection_timeout: 10
"""


class TestDefaults:
    def test_cloud_defaults(self) -> None:
        config = CloudConfig()
        assert config.host == "api.qingcloud.com"
        assert config.port == 443
        assert config.endpoint == "https://api.qingcloud.com:443"

    def test_job_defaults(self) -> None:
        config = JobConfig()
        assert config.wait_interval == 10.0
        assert config.wait_timeout == 180.0

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QCVOLUME_JOB_WAIT_TIMEOUT", "60")
        monkeypatch.setenv("QCVOLUME_VOLUME_DEFAULT_FS_TYPE", "xfs")

        settings = Settings()

        assert settings.job.wait_timeout == 60.0
        assert settings.volume.default_fs_type == "xfs"


class TestLoadCloudConfig:
    """Tests for merging the QingCloud client file."""

    def test_merges_client_file(self, tmp_path) -> None:
        path = tmp_path / "client.yaml"
        path.write_text(CLIENT_FILE)

        config = load_cloud_config(CloudConfig(config_path=str(path)))

        assert config.access_key_id == "QYACCESSKEYIDEXAMPLE"
        assert config.secret_access_key == "SECRETACCESSKEY"
        assert config.zone == "pek3a"
        assert config.endpoint == "http://api.example.com:8443"
        assert config.retries == 5
        assert config.timeout == 10.0

    def test_environment_wins(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "client.yaml"
        path.write_text(CLIENT_FILE)
        monkeypatch.setenv("QCVOLUME_CLOUD_ZONE", "sh1a")

        config = load_cloud_config(CloudConfig(config_path=str(path)))

        assert config.zone == "sh1a"
        assert config.access_key_id == "QYACCESSKEYIDEXAMPLE"

    def test_missing_file(self, tmp_path) -> None:
        original = CloudConfig(config_path=str(tmp_path / "missing.yaml"), zone="pek3a")

        assert load_cloud_config(original) is original

    def test_unknown_keys_ignored(self, tmp_path) -> None:
        path = tmp_path / "client.yaml"
        path.write_text("zone: gd2\nlog_level: debug\n")

        config = load_cloud_config(CloudConfig(config_path=str(path)))

        assert config.zone == "gd2"
        assert config.host == "api.qingcloud.com"

    def test_invalid_file(self, tmp_path) -> None:
        path = tmp_path / "client.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="Invalid QingCloud client file"):
            load_cloud_config(CloudConfig(config_path=str(path)))
