"""FlexVolume driver for QingCloud volumes.

Maps one driver verb to one operation and turns its outcome into an
OperationResult. Argument checks and option parsing happen before any
remote call, and no exception escapes handle().

See https://github.com/kubernetes/community/blob/master/contributors/devel/sig-storage/flexvolume.md
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from qcvolume.core.errors import MountError, ValidationError, VolumeError
from qcvolume.core.interfaces import VolumeManager
from qcvolume.core.logging_schema import LogEvent
from qcvolume.core.models import is_volume_id
from qcvolume.driver.mount import Mounter
from qcvolume.driver.protocol import OperationResult

logger = logging.getLogger(__name__)

FLEX_DRIVER_NAME = "qingcloud/flex-volume"

OPTION_FS_TYPE = "kubernetes.io/fsType"
OPTION_READ_WRITE = "kubernetes.io/readwrite"
OPTION_PV_OR_VOLUME_NAME = "kubernetes.io/pvOrVolumeName"
OPTION_VOLUME_ID = "volumeID"
OPTION_MOUNT_FLAGS = "flags"

DEFAULT_FS_TYPE = "ext4"

VERBS = (
    "init",
    "attach",
    "detach",
    "mountdevice",
    "unmountdevice",
    "waitforattach",
    "getvolumename",
    "isattached",
)
USAGE = "|".join(VERBS)

ManagerFactory = Callable[[], VolumeManager]
Handler = Callable[..., Awaitable[OperationResult]]


def parse_options(raw: str) -> dict[str, Any]:
    """Decode a JSON options argument.

    Raises:
        ValidationError: If raw is not a JSON object
    """
    try:
        options = json.loads(raw)
    except ValueError:
        raise ValidationError(f"Invalid json options: {raw}") from None
    if not isinstance(options, dict):
        raise ValidationError(f"Invalid json options: {raw}")
    return options


def _option(options: dict[str, Any], key: str) -> str:
    value = options.get(key)
    return value if isinstance(value, str) else ""


def _require_volume_id(options: dict[str, Any]) -> str:
    volume_id = _option(options, OPTION_VOLUME_ID)
    if not volume_id:
        raise ValidationError(f"Option {OPTION_VOLUME_ID!r} is required")
    return volume_id


class FlexVolumeDriver:
    """Dispatches FlexVolume verbs.

    The volume manager is created on first use, so node-local verbs
    (init, mountdevice, unmountdevice, waitforattach, getvolumename) never
    need cloud credentials.
    """

    def __init__(
        self,
        manager_factory: ManagerFactory,
        mounter: Mounter | None = None,
        default_fs_type: str = DEFAULT_FS_TYPE,
        device_check_interval: float = 1.0,
    ) -> None:
        self._manager_factory = manager_factory
        self._manager: VolumeManager | None = None
        self._mounter = mounter or Mounter()
        self._default_fs_type = default_fs_type
        self._device_check_interval = device_check_interval

        # verb -> (required args, usage message, handler)
        self._handlers: dict[str, tuple[int, str, Handler]] = {
            "init": (0, "", self.init),
            "attach": (2, "attach requires options in json format and a node name", self.attach),
            "detach": (2, "detach requires a volume ID or name and a node name", self.detach),
            "mountdevice": (
                3,
                "mountdevice requires a mount path, a device path and mount options",
                self.mount_device,
            ),
            "unmountdevice": (1, "unmountdevice requires a mount path", self.unmount_device),
            "waitforattach": (
                2,
                "waitforattach requires a device path and options in json format",
                self.wait_for_attach,
            ),
            "getvolumename": (1, "getvolumename requires options in json format", self.get_volume_name),
            "isattached": (
                2,
                "isattached requires options in json format and a node name",
                self.is_attached,
            ),
        }

    @property
    def manager(self) -> VolumeManager:
        if self._manager is None:
            self._manager = self._manager_factory()
        return self._manager

    async def close(self) -> None:
        if self._manager is not None:
            await self._manager.close()
            self._manager = None

    async def handle(self, verb: str, args: list[str]) -> OperationResult:
        """Run one verb. Never raises."""
        entry = self._handlers.get(verb)
        if entry is None:
            return OperationResult.not_supported(f"{verb} is not supported")

        required, usage, handler = entry
        if len(args) < required:
            return OperationResult.failure(usage)

        try:
            return await handler(*args[:required])
        except VolumeError as exc:
            logger.error(
                "%s failed: %s",
                verb,
                exc.message,
                extra={"event": LogEvent.OPERATION_FAILED, "verb": verb, "code": exc.code.value},
            )
            return OperationResult.from_error(exc)
        except Exception as exc:
            logger.exception(
                "%s failed unexpectedly",
                verb,
                extra={"event": LogEvent.OPERATION_FAILED, "verb": verb},
            )
            return OperationResult.failure(f"{verb} failed: {exc}")

    # =========================================================================
    # Verbs
    # =========================================================================

    async def init(self) -> OperationResult:
        return OperationResult.success()

    async def attach(self, raw_options: str, node: str) -> OperationResult:
        options = parse_options(raw_options)
        volume_id = _require_volume_id(options)

        # Name the volume after the PV so detach can find it by name
        pv_or_volume_name = _option(options, OPTION_PV_OR_VOLUME_NAME)
        if pv_or_volume_name and not is_volume_id(pv_or_volume_name):
            try:
                await self.manager.update_volume(volume_id, pv_or_volume_name)
            except VolumeError as exc:
                return OperationResult.failure(
                    f"Error updating volume ({volume_id}) name to ({pv_or_volume_name}): {exc.message}"
                )

        device = await self.manager.attach_volume(volume_id, node)
        return OperationResult.success().with_device_path(device)

    async def detach(self, pv_or_volume_name: str, node: str) -> OperationResult:
        if is_volume_id(pv_or_volume_name):
            volume_id = pv_or_volume_name
        else:
            volume_id = await self.manager.get_volume_id_by_name(pv_or_volume_name)

        await self.manager.detach_volume(volume_id, node)
        return OperationResult.success()

    async def mount_device(self, target: str, device: str, raw_options: str) -> OperationResult:
        options = parse_options(raw_options)
        fs_type = _option(options, OPTION_FS_TYPE) or self._default_fs_type

        flags = [flag for flag in _option(options, OPTION_MOUNT_FLAGS).split(",") if flag]
        read_write = _option(options, OPTION_READ_WRITE)
        if read_write:
            flags.append(read_write)

        path = Path(target)
        created = False
        if not path.exists():
            path.mkdir(mode=0o750, parents=True)
            created = True

        try:
            await self._mounter.format_and_mount(device, target, fs_type, flags)
        except MountError:
            if created:
                try:
                    path.rmdir()
                except OSError as exc:
                    logger.warning("Failed to remove %s: %s", target, exc)
            raise
        return OperationResult.success()

    async def unmount_device(self, target: str) -> OperationResult:
        await self._mounter.unmount(target)
        return OperationResult.success()

    async def wait_for_attach(self, device: str, raw_options: str) -> OperationResult:
        options = parse_options(raw_options)
        volume_id = _option(options, OPTION_VOLUME_ID)
        if not device:
            return OperationResult.failure(
                f"WaitForAttach failed for volume {volume_id!r}: device is empty"
            )

        # No deadline here; the kubelet bounds the call
        while True:
            await asyncio.sleep(self._device_check_interval)
            if os.path.exists(device):
                logger.info(
                    "Found attached volume %s at %s",
                    volume_id,
                    device,
                    extra={"event": LogEvent.DEVICE_FOUND, "volume_id": volume_id, "device": device},
                )
                return OperationResult.success().with_device_path(device)
            logger.debug(
                "Waiting for volume %s at %s",
                volume_id,
                device,
                extra={"event": LogEvent.DEVICE_WAITING, "volume_id": volume_id, "device": device},
            )

    async def get_volume_name(self, raw_options: str) -> OperationResult:
        options = parse_options(raw_options)
        volume_id = _option(options, OPTION_VOLUME_ID)
        if not volume_id:
            return OperationResult.not_supported("getvolumename is not supported.")
        return OperationResult.success().with_volume_name(volume_id)

    async def is_attached(self, raw_options: str, node: str) -> OperationResult:
        options = parse_options(raw_options)
        volume_id = _require_volume_id(options)
        attached = await self.manager.volume_is_attached(volume_id, node)
        return OperationResult.success().with_attached(attached)
