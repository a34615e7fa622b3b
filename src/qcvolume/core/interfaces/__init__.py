"""Core interfaces."""

from qcvolume.core.interfaces.control_plane import ControlPlane
from qcvolume.core.interfaces.volume import VolumeManager

__all__ = [
    "ControlPlane",
    "VolumeManager",
]
