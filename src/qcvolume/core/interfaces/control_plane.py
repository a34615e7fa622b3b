"""Control plane interface for the QingCloud IaaS API.

Every mutating call returns a JobSubmission; the job must be polled with
describe_jobs until it is terminal.
"""

from abc import ABC, abstractmethod

from qcvolume.core.models import Instance, Job, JobSubmission, Volume, VolumeOptions


class ControlPlane(ABC):
    """Interface for remote volume, instance and job calls.

    Implementations:
    - QingCloudClient: QingCloud IaaS HTTP API

    Rejected calls raise RemoteError (AlreadyDoneError for benign messages).
    """

    @abstractmethod
    async def create_volumes(self, options: VolumeOptions) -> JobSubmission:
        """Create one volume. volume_ids holds the new volume ID."""
        ...

    @abstractmethod
    async def delete_volumes(self, volume_ids: list[str]) -> JobSubmission:
        ...

    @abstractmethod
    async def attach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        ...

    @abstractmethod
    async def detach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        ...

    @abstractmethod
    async def describe_volumes(
        self,
        volume_ids: list[str] | None = None,
        search_word: str | None = None,
    ) -> list[Volume]:
        """Describe volumes by ID or by name search.

        Volumes that don't exist are missing from the result, not errors.
        """
        ...

    @abstractmethod
    async def modify_volume_attributes(self, volume_id: str, volume_name: str) -> None:
        ...

    @abstractmethod
    async def describe_instances(
        self,
        instance_ids: list[str],
        status: list[str] | None = None,
        verbose: int = 0,
        is_cluster_node: int = 0,
    ) -> list[Instance]:
        ...

    @abstractmethod
    async def describe_jobs(self, job_ids: list[str]) -> list[Job]:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        ...
