"""FlexVolume driver."""

from qcvolume.driver.mount import Mounter
from qcvolume.driver.plugin import FLEX_DRIVER_NAME, FlexVolumeDriver
from qcvolume.driver.protocol import DriverStatus, OperationResult

__all__ = [
    "FLEX_DRIVER_NAME",
    "DriverStatus",
    "FlexVolumeDriver",
    "Mounter",
    "OperationResult",
]
