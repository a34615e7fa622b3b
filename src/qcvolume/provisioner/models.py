"""Kubernetes objects seen and produced by the provisioner.

Only the fields the provisioner reads or writes are modelled. to_manifest()
renders the v1 PersistentVolume dict that the controller submits.
"""

from pydantic import BaseModel, Field

ACCESS_MODE_RWO = "ReadWriteOnce"

RECLAIM_DELETE = "Delete"
RECLAIM_RETAIN = "Retain"


class ClaimSpec(BaseModel):
    """The parts of a PersistentVolumeClaim the provisioner looks at."""

    access_modes: list[str] = Field(default_factory=list)
    selector: dict | None = None
    storage_class_name: str = ""
    annotations: dict[str, str] = Field(default_factory=dict)
    requested_bytes: int = 0

    model_config = {"frozen": True}


class ProvisionOptions(BaseModel):
    """Input to VolumeProvisioner.provision."""

    pv_name: str
    claim: ClaimSpec
    parameters: dict[str, str] = Field(default_factory=dict)
    reclaim_policy: str = RECLAIM_DELETE

    model_config = {"frozen": True}


class FlexVolumeSource(BaseModel):
    driver: str
    fs_type: str = ""
    read_only: bool = False
    options: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_manifest(self) -> dict:
        return {
            "driver": self.driver,
            "fsType": self.fs_type,
            "readOnly": self.read_only,
            "options": dict(self.options),
        }


class PersistentVolume(BaseModel):
    """A PersistentVolume backed by a QingCloud volume."""

    name: str
    annotations: dict[str, str] = Field(default_factory=dict)
    access_modes: list[str] = Field(default_factory=list)
    capacity: str = ""
    storage_class_name: str = ""
    reclaim_policy: str = RECLAIM_DELETE
    flex_volume: FlexVolumeSource | None = None

    model_config = {"frozen": True}

    def to_manifest(self) -> dict:
        spec: dict = {
            "accessModes": list(self.access_modes),
            "capacity": {"storage": self.capacity},
            "persistentVolumeReclaimPolicy": self.reclaim_policy,
            "storageClassName": self.storage_class_name,
        }
        if self.flex_volume is not None:
            spec["flexVolume"] = self.flex_volume.to_manifest()
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {
                "name": self.name,
                "annotations": dict(self.annotations),
            },
            "spec": spec,
        }
