"""Adapters module - volume manager implementations."""

from qcvolume.adapters.qingcloud import QingCloudVolumeManager

__all__ = [
    "QingCloudVolumeManager",
]
