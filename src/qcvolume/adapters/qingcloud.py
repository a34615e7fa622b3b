"""QingCloud volume manager implementation.

Each operation describes before it mutates, so retried calls from a
restarted controller or a repeated driver invocation are safe. The control
plane is the only source of truth; nothing is cached except the detected
default volume type.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from qcvolume.config import Settings, get_settings, load_cloud_config
from qcvolume.core.errors import (
    AlreadyDoneError,
    AttachError,
    CreationError,
    DeletionError,
    DetachError,
    DeviceMissingError,
    RemoteError,
    VolumeError,
    VolumeNotFoundError,
)
from qcvolume.core.interfaces import ControlPlane, VolumeManager
from qcvolume.core.jobs import JobWaiter
from qcvolume.core.logging_schema import LogEvent
from qcvolume.core.models import DEFAULT_VOLUME_TYPE, VolumeOptions, VolumeType
from qcvolume.infra.qingcloud import QingCloudClient

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_ID_PATH = "/etc/qingcloud/instance-id"


class QingCloudVolumeManager(VolumeManager):
    """Volume manager backed by the QingCloud control plane."""

    def __init__(
        self,
        api: ControlPlane,
        waiter: JobWaiter | None = None,
        instance_id_path: str = DEFAULT_INSTANCE_ID_PATH,
    ) -> None:
        self._api = api
        self._waiter = waiter or JobWaiter(api)
        self._instance_id_path = instance_id_path
        self._default_volume_type = VolumeType.NONE
        self._volume_type_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> QingCloudVolumeManager:
        """Build a manager talking to the configured QingCloud zone."""
        settings = settings or get_settings()
        cloud = load_cloud_config(settings.cloud)
        api = QingCloudClient(cloud)
        waiter = JobWaiter(
            api,
            interval=settings.job.wait_interval,
            timeout=settings.job.wait_timeout,
        )
        logger.debug("QingCloud volume manager ready, zone: %s", cloud.zone)
        return cls(api, waiter, instance_id_path=settings.volume.instance_id_path)

    async def close(self) -> None:
        await self._api.close()

    # =========================================================================
    # Create / delete
    # =========================================================================

    async def create_volume(self, options: VolumeOptions) -> str:
        logger.debug("create_volume(%s) called", options)
        try:
            submission = await self._api.create_volumes(options)
        except RemoteError as exc:
            raise CreationError(f"Error creating volume {options.volume_name!r}: {exc}") from exc

        if not submission.volume_ids:
            raise CreationError(f"Create of volume {options.volume_name!r} returned no volume ID")

        await self._waiter.wait_best_effort(submission.job_id)
        volume_id = submission.volume_ids[0]
        logger.info(
            "Volume created",
            extra={
                "event": LogEvent.VOLUME_CREATED,
                "volume_id": volume_id,
                "volume_name": options.volume_name,
                "capacity_gb": options.capacity_gb,
                "volume_type": int(options.volume_type),
            },
        )
        return volume_id

    async def delete_volume(self, volume_id: str) -> bool:
        logger.debug("delete_volume(%s) called", volume_id)
        try:
            submission = await self._api.delete_volumes([volume_id])
        except AlreadyDoneError:
            logger.info(
                "Volume already deleted",
                extra={"event": LogEvent.VOLUME_ALREADY_DELETED, "volume_id": volume_id},
            )
            return False
        except RemoteError as exc:
            raise DeletionError(f"Error deleting volume {volume_id!r}: {exc}") from exc

        await self._waiter.wait_best_effort(submission.job_id)
        logger.info(
            "Volume deleted",
            extra={"event": LogEvent.VOLUME_DELETED, "volume_id": volume_id},
        )
        return True

    # =========================================================================
    # Attach / detach
    # =========================================================================

    async def attach_volume(self, volume_id: str, instance_id: str) -> str:
        logger.debug("attach_volume(%s, %s) called", volume_id, instance_id)
        try:
            attached = await self.volume_is_attached(volume_id, instance_id)
        except RemoteError as exc:
            raise AttachError(f"Error describing volume {volume_id!r}: {exc}") from exc

        if attached:
            logger.info(
                "Volume already attached",
                extra={
                    "event": LogEvent.VOLUME_ALREADY_ATTACHED,
                    "volume_id": volume_id,
                    "instance_id": instance_id,
                },
            )
        else:
            try:
                submission = await self._api.attach_volumes([volume_id], instance_id)
            except AlreadyDoneError:
                # Another caller attached it between describe and attach
                logger.info(
                    "Volume attached concurrently",
                    extra={
                        "event": LogEvent.VOLUME_ALREADY_ATTACHED,
                        "volume_id": volume_id,
                        "instance_id": instance_id,
                    },
                )
            except RemoteError as exc:
                raise AttachError(
                    f"Error attaching volume {volume_id!r} to instance {instance_id!r}: {exc}"
                ) from exc
            else:
                await self._waiter.wait_best_effort(submission.job_id)

        try:
            volumes = await self._api.describe_volumes(volume_ids=[volume_id])
        except RemoteError as exc:
            raise AttachError(f"Error describing volume {volume_id!r}: {exc}") from exc
        if not volumes:
            raise AttachError(f"Volume {volume_id!r} missing after attaching it")

        device = volumes[0].device
        if not device:
            raise DeviceMissingError(f"The device of volume {volume_id!r} is empty")

        logger.info(
            "Volume attached",
            extra={
                "event": LogEvent.VOLUME_ATTACHED,
                "volume_id": volume_id,
                "instance_id": instance_id,
                "device": device,
            },
        )
        return device

    async def detach_volume(self, volume_id: str, instance_id: str) -> None:
        logger.debug("detach_volume(%s, %s) called", volume_id, instance_id)
        try:
            attached = await self.volume_is_attached(volume_id, instance_id)
        except RemoteError as exc:
            logger.error(
                "Error checking if volume %s is attached to %s, will try detach anyway: %s",
                volume_id,
                instance_id,
                exc,
                extra={"event": LogEvent.REMOTE_CALL_FAILED, "volume_id": volume_id},
            )
        else:
            if not attached:
                logger.info(
                    "Volume already detached",
                    extra={
                        "event": LogEvent.VOLUME_ALREADY_DETACHED,
                        "volume_id": volume_id,
                        "instance_id": instance_id,
                    },
                )
                return

        try:
            submission = await self._api.detach_volumes([volume_id], instance_id)
            await self._waiter.wait(submission.job_id)
        except VolumeError as exc:
            raise DetachError(
                f"Error detaching volume {volume_id!r} from instance {instance_id!r}: {exc}"
            ) from exc

        logger.info(
            "Volume detached",
            extra={
                "event": LogEvent.VOLUME_DETACHED,
                "volume_id": volume_id,
                "instance_id": instance_id,
            },
        )

    async def volume_is_attached(self, volume_id: str, instance_id: str) -> bool:
        volumes = await self._api.describe_volumes(volume_ids=[volume_id])
        if not volumes:
            return False
        return volumes[0].is_attached_to(instance_id)

    async def disks_are_attached(
        self, volume_ids: list[str], instance_id: str
    ) -> dict[str, bool]:
        attached = {volume_id: False for volume_id in volume_ids}
        if not volume_ids:
            return attached

        for volume in await self._api.describe_volumes(volume_ids=volume_ids):
            if volume.volume_id in attached and volume.is_attached_to(instance_id):
                attached[volume.volume_id] = True
        return attached

    # =========================================================================
    # Naming
    # =========================================================================

    async def update_volume(self, volume_id: str, volume_name: str) -> None:
        logger.debug("update_volume(%s, %s) called", volume_id, volume_name)
        await self._api.modify_volume_attributes(volume_id, volume_name)
        logger.info(
            "Volume renamed",
            extra={"event": LogEvent.VOLUME_RENAMED, "volume_id": volume_id, "volume_name": volume_name},
        )

    async def get_volume_id_by_name(self, volume_name: str) -> str:
        volumes = await self._api.describe_volumes(search_word=volume_name)
        if not volumes:
            raise VolumeNotFoundError(f"Can not find volume by name: {volume_name!r}")

        # Search is a substring match; prefer the exact name
        for volume in volumes:
            if volume.volume_name == volume_name:
                return volume.volume_id
        return volumes[0].volume_id

    # =========================================================================
    # Default volume type
    # =========================================================================

    async def get_default_volume_type(self) -> VolumeType:
        if self._default_volume_type is not VolumeType.NONE:
            return self._default_volume_type

        async with self._volume_type_lock:
            if self._default_volume_type is VolumeType.NONE:
                self._default_volume_type = await self._detect_volume_type()
        return self._default_volume_type

    async def _detect_volume_type(self) -> VolumeType:
        """Derive the tier from the local instance class.

        Class 0 (or unset) instances get high performance volumes, others
        super high performance. Any failure falls back to the default.
        """
        try:
            instance_id = Path(self._instance_id_path).read_text().strip()
            if not instance_id:
                raise ValueError(f"{self._instance_id_path} is empty")

            instances = await self._api.describe_instances(
                [instance_id],
                status=["running"],
                verbose=1,
                is_cluster_node=1,
            )
        except (OSError, ValueError, VolumeError) as exc:
            logger.error(
                "Volume type auto detection failed, using default: %s",
                exc,
                extra={
                    "event": LogEvent.VOLUME_TYPE_DETECTION_FAILED,
                    "volume_type": int(DEFAULT_VOLUME_TYPE),
                },
            )
            return DEFAULT_VOLUME_TYPE

        if not instances:
            volume_type = DEFAULT_VOLUME_TYPE
        elif not instances[0].instance_class:
            volume_type = VolumeType.HIGH_PERFORMANCE
        else:
            volume_type = VolumeType.SUPER_HIGH_PERFORMANCE

        logger.info(
            "Auto detected volume type: %s",
            volume_type.name,
            extra={
                "event": LogEvent.VOLUME_TYPE_DETECTED,
                "instance_id": instance_id,
                "volume_type": int(volume_type),
            },
        )
        return volume_type
