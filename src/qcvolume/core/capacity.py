"""Capacity planning for QingCloud volume tiers.

QingCloud sizes volumes in whole GiB, with per-tier bounds and alignment:

    tier                          min    max   step
    high performance (0)           10   1000     10
    super high performance (3)     10   1000     10
    high capacity (2)             100   5000     50

Requests are always rounded up, never down.
"""

from pydantic import BaseModel

from qcvolume.core.errors import CapacityRangeError, ValidationError
from qcvolume.core.models import VolumeType

GIB = 1024**3


class TierLimits(BaseModel):
    """Size bounds and alignment for a volume tier, in GiB."""

    min_gb: int
    max_gb: int
    step_gb: int

    model_config = {"frozen": True}


_PERFORMANCE_LIMITS = TierLimits(min_gb=10, max_gb=1000, step_gb=10)
_CAPACITY_LIMITS = TierLimits(min_gb=100, max_gb=5000, step_gb=50)

TIER_LIMITS: dict[VolumeType, TierLimits] = {
    VolumeType.HIGH_PERFORMANCE: _PERFORMANCE_LIMITS,
    VolumeType.SUPER_HIGH_PERFORMANCE: _PERFORMANCE_LIMITS,
    VolumeType.HIGH_CAPACITY: _CAPACITY_LIMITS,
}


def tier_limits(volume_type: VolumeType) -> TierLimits:
    """Get the limits for a tier.

    Raises:
        ValidationError: If volume_type is not a concrete tier.
    """
    try:
        return TIER_LIMITS[volume_type]
    except KeyError:
        raise ValidationError(f"Volume type {volume_type!r} has no capacity limits") from None


def bytes_to_gib(requested_bytes: int) -> int:
    """Convert bytes to GiB, rounding up."""
    return -(-requested_bytes // GIB)


def plan_capacity(requested_bytes: int, volume_type: VolumeType) -> int:
    """Map a requested size to a billable, tier-valid size in GiB.

    Args:
        requested_bytes: Requested capacity in bytes
        volume_type: Tier of the volume

    Returns:
        Size in GiB: at least the tier minimum and a multiple of the tier step

    Raises:
        ValidationError: Negative size or unresolved tier
        CapacityRangeError: Size above the tier maximum
    """
    if requested_bytes < 0:
        raise ValidationError(f"Requested capacity must not be negative: {requested_bytes}")

    limits = tier_limits(volume_type)
    size_gb = bytes_to_gib(requested_bytes)

    if size_gb < limits.min_gb:
        size_gb = limits.min_gb
    elif size_gb > limits.max_gb:
        raise CapacityRangeError(
            f"Can't request volume bigger than {limits.max_gb}GiB"
        )

    remainder = size_gb % limits.step_gb
    if remainder:
        size_gb += limits.step_gb - remainder
    return size_gb
