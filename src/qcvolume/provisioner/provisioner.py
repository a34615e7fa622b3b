"""Dynamic provisioning of QingCloud volumes for PersistentVolumeClaims."""

import logging

from qcvolume.core.capacity import plan_capacity
from qcvolume.core.errors import ValidationError
from qcvolume.core.interfaces import VolumeManager
from qcvolume.core.logging_schema import LogEvent
from qcvolume.core.models import VolumeOptions, VolumeType
from qcvolume.driver.plugin import DEFAULT_FS_TYPE, FLEX_DRIVER_NAME, OPTION_VOLUME_ID
from qcvolume.provisioner.models import (
    ACCESS_MODE_RWO,
    RECLAIM_RETAIN,
    FlexVolumeSource,
    PersistentVolume,
    ProvisionOptions,
)

logger = logging.getLogger(__name__)

PROVISIONER_NAME = "qingcloud/volume-provisioner"

ANNOTATION_CREATED_BY = "kubernetes.io/createdby"
CREATED_BY = "qingcloud-volume-provisioner"
ANNOTATION_PROVISIONER_ID = "Provisioner_Id"
# Claim annotation that overrides the fstype parameter
ANNOTATION_FS_TYPE = "kubernetes.io/fsType"

PARAM_TYPE = "type"
PARAM_FS_TYPE = "fstype"


class VolumeProvisioner:
    """Creates and deletes volumes on behalf of the provisioning controller."""

    def __init__(self, manager: VolumeManager) -> None:
        self._manager = manager

    async def provision(self, options: ProvisionOptions) -> PersistentVolume:
        """Create a volume for a claim and describe it as a PersistentVolume.

        Raises:
            ValidationError: If the claim or StorageClass parameters are not
                supported
            CapacityRangeError: If the claim asks for more than the tier allows
            CreationError: If the volume could not be created
        """
        logger.debug("provision(%s) called", options.pv_name)
        claim = options.claim

        if claim.selector is not None:
            raise ValidationError(
                "claim.Spec.Selector is not supported for dynamic provisioning on qingcloud"
            )
        if ACCESS_MODE_RWO not in claim.access_modes:
            raise ValidationError("Qingcloud volume only supports ReadWriteOnce mounts")

        volume_type: VolumeType | None = None
        fs_type = DEFAULT_FS_TYPE
        for key, value in options.parameters.items():
            name = key.lower()
            if name == PARAM_TYPE:
                try:
                    volume_type = VolumeType.from_code(value)
                except ValueError:
                    raise ValidationError(
                        f"invalid option {key!r} for {CREATED_BY}, it only can be 0, 2, 3"
                    ) from None
            elif name == PARAM_FS_TYPE:
                fs_type = value
            else:
                raise ValidationError(f"invalid option {key!r} for {CREATED_BY}")

        if volume_type is None:
            volume_type = await self._manager.get_default_volume_type()

        size_gb = plan_capacity(claim.requested_bytes, volume_type)
        volume_id = await self._manager.create_volume(
            VolumeOptions(
                capacity_gb=size_gb,
                volume_type=volume_type,
                volume_name=options.pv_name,
            )
        )

        fs_type = claim.annotations.get(ANNOTATION_FS_TYPE, fs_type)

        logger.info(
            "Provisioned volume %s for %s",
            volume_id,
            options.pv_name,
            extra={
                "event": LogEvent.VOLUME_PROVISIONED,
                "volume_id": volume_id,
                "pv_name": options.pv_name,
                "capacity_gb": size_gb,
                "fs_type": fs_type,
            },
        )
        return PersistentVolume(
            name=options.pv_name,
            annotations={
                ANNOTATION_CREATED_BY: CREATED_BY,
                ANNOTATION_PROVISIONER_ID: PROVISIONER_NAME,
            },
            access_modes=[ACCESS_MODE_RWO],
            capacity=f"{size_gb}Gi",
            storage_class_name=claim.storage_class_name,
            reclaim_policy=options.reclaim_policy,
            flex_volume=FlexVolumeSource(
                driver=FLEX_DRIVER_NAME,
                fs_type=fs_type,
                read_only=False,
                options={OPTION_VOLUME_ID: volume_id},
            ),
        )

    async def delete(self, volume: PersistentVolume) -> None:
        """Delete the volume behind a released PersistentVolume.

        Retained volumes are left alone, and a volume that is already gone
        counts as deleted.
        """
        if not volume.name:
            raise ValidationError("volume name cannot be empty")

        if volume.reclaim_policy == RECLAIM_RETAIN:
            logger.debug("Keeping retained volume %s", volume.name)
            return

        if volume.flex_volume is None:
            raise ValidationError(f"volume [{volume.name}] not support by {CREATED_BY}")

        volume_id = volume.flex_volume.options.get(OPTION_VOLUME_ID, "")
        if not volume_id:
            raise ValidationError(
                f"flexVolume option {OPTION_VOLUME_ID!r} of volume [{volume.name}] cannot be empty"
            )

        await self._manager.delete_volume(volume_id)
