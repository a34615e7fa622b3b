"""Format and mount block devices on the node.

Wraps blkid, mkfs, mount and umount. A device is only formatted when blkid
finds neither a filesystem nor a partition table on it.
"""

import asyncio
import logging
import os
from pathlib import Path

from qcvolume.core.errors import MountError
from qcvolume.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

PROC_MOUNTS = "/proc/mounts"

# blkid exit code when the device holds nothing it recognizes
BLKID_NOTHING_FOUND = 2


class Mounter:
    """Idempotent format-and-mount / unmount."""

    def __init__(self, mounts_path: str = PROC_MOUNTS) -> None:
        self._mounts_path = mounts_path

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run a command, returning (exit code, stdout, stderr)."""
        logger.debug("Running %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise MountError(f"Failed to run {args[0]}: {exc}") from exc
        stdout, stderr = await proc.communicate()
        return (
            proc.returncode or 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def is_mounted(self, target: str) -> bool:
        """Check if target is a mount point."""
        target = os.path.realpath(target)
        try:
            content = Path(self._mounts_path).read_text()
        except OSError as exc:
            raise MountError(f"Failed to read {self._mounts_path}: {exc}") from exc

        for line in content.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[1] == target:
                return True
        return False

    async def get_disk_format(self, device: str) -> str:
        """Detect the filesystem on device.

        Returns:
            Filesystem type, "" for a blank device
        """
        code, stdout, stderr = await self._run(
            "blkid", "-p", "-s", "TYPE", "-s", "PTTYPE", "-o", "export", device
        )
        if code == BLKID_NOTHING_FOUND:
            return ""
        if code != 0:
            raise MountError(f"blkid {device} failed ({code}): {stderr.strip()}")

        found = dict(
            line.split("=", 1) for line in stdout.splitlines() if "=" in line
        )
        if "TYPE" in found:
            return found["TYPE"]
        if "PTTYPE" in found:
            return "unknown data, probably partitions"
        return ""

    async def format(self, device: str, fs_type: str) -> None:
        if fs_type in ("ext3", "ext4"):
            args = ("-F", "-m0", device)
        else:
            args = (device,)
        code, _, stderr = await self._run(f"mkfs.{fs_type}", *args)
        if code != 0:
            raise MountError(f"Failed to format {device} as {fs_type}: {stderr.strip()}")
        logger.info(
            "Device formatted",
            extra={"event": LogEvent.DEVICE_FORMATTED, "device": device, "fs_type": fs_type},
        )

    async def format_and_mount(
        self,
        device: str,
        target: str,
        fs_type: str,
        options: list[str] | None = None,
    ) -> None:
        """Mount device on target, formatting it first if it is blank.

        Raises:
            MountError: If the device holds a different filesystem or any
                command fails
        """
        if await self.is_mounted(target):
            logger.info("%s is already mounted", target)
            return

        existing = await self.get_disk_format(device)
        if not existing:
            await self.format(device, fs_type)
        elif existing != fs_type:
            raise MountError(
                f"Failed to mount {device} as {fs_type}, it already contains {existing}"
            )

        args = ["mount", "-t", fs_type]
        if options:
            args += ["-o", ",".join(options)]
        args += [device, target]
        code, _, stderr = await self._run(*args)
        if code != 0:
            raise MountError(f"Failed to mount {device} on {target}: {stderr.strip()}")
        logger.info(
            "Device mounted",
            extra={"event": LogEvent.DEVICE_MOUNTED, "device": device, "target": target},
        )

    async def unmount(self, target: str) -> None:
        """Unmount target. Succeeds if target is not mounted."""
        if not await self.is_mounted(target):
            logger.info("%s is not mounted", target)
            return

        code, _, stderr = await self._run("umount", target)
        if code != 0:
            raise MountError(f"Failed to unmount {target}: {stderr.strip()}")
        logger.info(
            "Device unmounted",
            extra={"event": LogEvent.DEVICE_UNMOUNTED, "target": target},
        )
