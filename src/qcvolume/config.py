"""Configuration using pydantic-settings.

Configuration hierarchy:
- CloudConfig: QingCloud API credentials and endpoint
- JobConfig: Async job polling behavior
- VolumeConfig: Node-local volume settings
- LoggingConfig: Logging behavior
- Settings: Main config aggregating all sub-configs

Environment variable prefix: QCVOLUME_
Example: QCVOLUME_CLOUD_ZONE=pek3a

The QingCloud client file (/etc/qingcloud/client.yaml) is merged into
CloudConfig by load_cloud_config(). Environment variables win over the file.
"""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# client.yaml key -> CloudConfig field
_CLIENT_FILE_KEYS = {
    "qy_access_key_id": "access_key_id",
    "qy_secret_access_key": "secret_access_key",
    "zone": "zone",
    "host": "host",
    "port": "port",
    "protocol": "protocol",
    "uri": "uri",
    "connection_retries": "retries",
    "connection_timeout": "timeout",
}


class CloudConfig(BaseSettings):
    """QingCloud API configuration."""

    model_config = SettingsConfigDict(env_prefix="QCVOLUME_CLOUD_")

    # Credentials - empty defaults force explicit configuration
    access_key_id: str = Field(default="", description="API access key ID")
    secret_access_key: str = Field(default="", description="API secret access key")
    zone: str = Field(default="", description="Zone the volumes and instances live in")

    # Endpoint
    host: str = Field(default="api.qingcloud.com", description="API host")
    port: int = Field(default=443, description="API port")
    protocol: str = Field(default="https", description="API protocol (http, https)")
    uri: str = Field(default="/iaas", description="API path prefix")

    # Transport
    timeout: float = Field(default=30.0, description="HTTP request timeout (seconds)")
    retries: int = Field(default=3, description="Retries for read-only API calls")

    config_path: str = Field(
        default="/etc/qingcloud/client.yaml",
        description="QingCloud client config file",
    )

    @property
    def endpoint(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


class JobConfig(BaseSettings):
    """Async job polling configuration.

    Every mutating API call returns a job ID. The job is polled every
    wait_interval seconds until it is terminal or wait_timeout elapses.
    """

    model_config = SettingsConfigDict(env_prefix="QCVOLUME_JOB_")

    wait_interval: float = Field(default=10.0, description="Job poll interval (seconds)")
    wait_timeout: float = Field(default=180.0, description="Job wait timeout (seconds)")


class VolumeConfig(BaseSettings):
    """Node-local volume configuration."""

    model_config = SettingsConfigDict(env_prefix="QCVOLUME_VOLUME_")

    instance_id_path: str = Field(
        default="/etc/qingcloud/instance-id",
        description="File holding the ID of the local instance",
    )
    default_fs_type: str = Field(default="ext4", description="Filesystem used when none is set")
    device_check_interval: float = Field(
        default=1.0,
        description="Poll interval while waiting for an attached device (seconds)",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats for different environments:
    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="QCVOLUME_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="qingcloud-volume", description="Service identifier in logs")
    log_dir: str | None = Field(
        default=None,
        description="Also write logs to <log_dir>/<service_name>.log",
    )


class Settings(BaseSettings):
    """Main configuration aggregating all sub-configs.

    Environment variable prefix: QCVOLUME_
    Sub-configs use their own prefixes (QCVOLUME_CLOUD_, QCVOLUME_JOB_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="QCVOLUME_",
        env_nested_delimiter="__",
    )

    cloud: CloudConfig = Field(default_factory=CloudConfig)
    job: JobConfig = Field(default_factory=JobConfig)
    volume: VolumeConfig = Field(default_factory=VolumeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_cloud_config(config: CloudConfig) -> CloudConfig:
    """Merge the QingCloud client file into config.

    Fields set explicitly (environment or constructor) are kept. A missing
    file leaves config unchanged.
    """
    path = Path(config.config_path)
    if not path.is_file():
        logger.debug("QingCloud client file not found: %s", path)
        return config

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid QingCloud client file: {path}")

    update = {
        field: data[key]
        for key, field in _CLIENT_FILE_KEYS.items()
        if key in data and field not in config.model_fields_set
    }
    # Re-validate so file values get the declared types
    return CloudConfig.model_validate({**config.model_dump(exclude_unset=True), **update})


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
