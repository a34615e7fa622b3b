"""FlexVolume driver result types.

The kubelet runs the driver once per operation and parses exactly one line
of JSON from stdout, plus the exit code:

    {"status": "Success", "device": "/dev/sdc"}
    {"status": "Failure", "message": "..."}
    {"status": "Not supported", "message": "..."}

Exit codes: Success 0, Failure 1, Not supported 1.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from qcvolume.core.errors import VolumeError


class DriverStatus(str, Enum):
    """FlexVolume status values."""

    SUCCESS = "Success"
    FAILURE = "Failure"
    NOT_SUPPORTED = "Not supported"


EXIT_CODES = {
    DriverStatus.SUCCESS: 0,
    DriverStatus.FAILURE: 1,
    DriverStatus.NOT_SUPPORTED: 1,
}


class OperationResult(BaseModel):
    """Result of one driver invocation.

    message is only set for Failure and Not supported results.
    """

    status: DriverStatus
    message: str | None = None
    device_path: str | None = Field(default=None, serialization_alias="device")
    volume_name: str | None = Field(default=None, serialization_alias="volumeName")
    attached: bool | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_message(self) -> "OperationResult":
        if self.status is DriverStatus.SUCCESS and self.message is not None:
            raise ValueError("message is only allowed on Failure or Not supported results")
        return self

    @classmethod
    def success(cls) -> "OperationResult":
        return cls(status=DriverStatus.SUCCESS)

    @classmethod
    def failure(cls, message: str) -> "OperationResult":
        return cls(status=DriverStatus.FAILURE, message=message)

    @classmethod
    def not_supported(cls, message: str) -> "OperationResult":
        return cls(status=DriverStatus.NOT_SUPPORTED, message=message)

    @classmethod
    def from_error(cls, exc: VolumeError) -> "OperationResult":
        return cls.failure(exc.message)

    def with_device_path(self, device_path: str) -> "OperationResult":
        return self.model_copy(update={"device_path": device_path})

    def with_volume_name(self, volume_name: str) -> "OperationResult":
        return self.model_copy(update={"volume_name": volume_name})

    def with_attached(self, attached: bool) -> "OperationResult":
        return self.model_copy(update={"attached": attached})

    @property
    def is_success(self) -> bool:
        return self.status is DriverStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    def to_json(self) -> str:
        """Render as a single compact JSON line, omitting unset fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
