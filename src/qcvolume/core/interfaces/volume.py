"""Volume manager interface for cloud block volume lifecycle."""

from abc import ABC, abstractmethod

from qcvolume.core.models import VolumeOptions, VolumeType


class VolumeManager(ABC):
    """Interface for managing cloud-provisioned block volumes.

    Implementations:
    - QingCloudVolumeManager: QingCloud volumes

    Every method is an independent, retryable transaction against the
    control plane. No volume state is kept between calls.
    """

    @abstractmethod
    async def create_volume(self, options: VolumeOptions) -> str:
        """Create a volume.

        Returns:
            ID of the new volume

        Raises:
            CreationError: If the request was rejected
        """
        ...

    @abstractmethod
    async def delete_volume(self, volume_id: str) -> bool:
        """Delete a volume.

        Returns:
            True if the volume was deleted, False if it was already gone

        Raises:
            DeletionError: If the request was rejected
        """
        ...

    @abstractmethod
    async def attach_volume(self, volume_id: str, instance_id: str) -> str:
        """Attach a volume to an instance.

        Idempotent: If already attached to instance_id, no attach is issued.

        Returns:
            Device path on the instance (e.g. /dev/sdc)

        Raises:
            AttachError: If the attach failed
            DeviceMissingError: If the attached volume has no device path
        """
        ...

    @abstractmethod
    async def detach_volume(self, volume_id: str, instance_id: str) -> None:
        """Detach a volume from an instance.

        Idempotent: If not attached to instance_id, no detach is issued.

        Raises:
            DetachError: If the detach or its job failed
        """
        ...

    @abstractmethod
    async def volume_is_attached(self, volume_id: str, instance_id: str) -> bool:
        """Check if a volume is attached to an instance.

        A volume that doesn't exist is not attached.
        """
        ...

    @abstractmethod
    async def disks_are_attached(
        self, volume_ids: list[str], instance_id: str
    ) -> dict[str, bool]:
        """Check a batch of volumes against an instance.

        Returns:
            Mapping with an entry for every requested volume ID
        """
        ...

    @abstractmethod
    async def update_volume(self, volume_id: str, volume_name: str) -> None:
        """Rename a volume."""
        ...

    @abstractmethod
    async def get_volume_id_by_name(self, volume_name: str) -> str:
        """Look up a volume ID by volume name.

        Raises:
            VolumeNotFoundError: If no volume matches
        """
        ...

    @abstractmethod
    async def get_default_volume_type(self) -> VolumeType:
        """Tier to use when none is requested.

        Detected once from the local instance class. Never raises.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        ...
