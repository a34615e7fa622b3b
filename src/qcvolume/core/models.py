"""Domain models for QingCloud volumes, instances and jobs.

The control plane owns all of this state. These models are snapshots of a
single describe call and are never cached across calls.

Reference: https://docs.qingcloud.com/api/volume/index.html
"""

from enum import IntEnum

from pydantic import BaseModel, PositiveInt

VOLUME_ID_PREFIX = "vol-"


class VolumeType(IntEnum):
    """Volume tier.

    NONE is only used before the default tier has been detected.
    """

    NONE = -1
    HIGH_PERFORMANCE = 0
    HIGH_CAPACITY = 2
    SUPER_HIGH_PERFORMANCE = 3

    @classmethod
    def from_code(cls, code: str) -> "VolumeType":
        """Parse a tier code ("0", "2", "3") as used in StorageClass parameters.

        Raises:
            ValueError: If the code is not a supported tier.
        """
        try:
            volume_type = cls(int(code))
        except ValueError:
            raise ValueError(f"unsupported volume type: {code!r}") from None
        if volume_type is cls.NONE:
            raise ValueError(f"unsupported volume type: {code!r}")
        return volume_type


DEFAULT_VOLUME_TYPE = VolumeType.HIGH_PERFORMANCE


def is_volume_id(value: str) -> bool:
    """Tell a volume ID from a human-assigned volume name."""
    return value.startswith(VOLUME_ID_PREFIX)


class VolumeOptions(BaseModel):
    """Capacity, tier and name for a new volume."""

    capacity_gb: PositiveInt
    volume_type: VolumeType
    volume_name: str

    model_config = {"frozen": True}


class VolumeInstance(BaseModel):
    """Instance a volume is attached to, as reported by DescribeVolumes."""

    instance_id: str = ""
    device: str = ""


class Volume(BaseModel):
    """Volume snapshot from DescribeVolumes."""

    volume_id: str
    volume_name: str = ""
    size: int = 0
    volume_type: int = DEFAULT_VOLUME_TYPE
    status: str = ""
    instance: VolumeInstance | None = None

    @property
    def attached_instance_id(self) -> str:
        """ID of the attached instance, empty when detached."""
        return self.instance.instance_id if self.instance else ""

    @property
    def device(self) -> str:
        """Device path on the attached instance, empty when detached."""
        return self.instance.device if self.instance else ""

    def is_attached_to(self, instance_id: str) -> bool:
        return bool(instance_id) and self.attached_instance_id == instance_id


class Instance(BaseModel):
    """Instance snapshot from DescribeInstances."""

    instance_id: str
    instance_class: int | None = None
    status: str = ""


class JobStatus:
    """Job status values reported by DescribeJobs."""

    PENDING = "pending"
    WORKING = "working"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    DONE_WITH_FAILURE = "done with failure"

    FAILURES = frozenset({FAILED, DONE_WITH_FAILURE})


class Job(BaseModel):
    """Job snapshot from DescribeJobs."""

    job_id: str
    status: str | None = None
    job_action: str = ""


class JobSubmission(BaseModel):
    """Result of a mutating call: the job to wait for and affected volumes."""

    job_id: str
    volume_ids: list[str] = []

    model_config = {"frozen": True}
