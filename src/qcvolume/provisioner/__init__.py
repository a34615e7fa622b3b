"""Dynamic volume provisioning."""

from qcvolume.provisioner.models import (
    ClaimSpec,
    FlexVolumeSource,
    PersistentVolume,
    ProvisionOptions,
)
from qcvolume.provisioner.provisioner import PROVISIONER_NAME, VolumeProvisioner

__all__ = [
    "PROVISIONER_NAME",
    "ClaimSpec",
    "FlexVolumeSource",
    "PersistentVolume",
    "ProvisionOptions",
    "VolumeProvisioner",
]
