"""Error handling module for qingcloud-volume.

This module defines error codes and exception classes.

Local errors (ValidationError, CapacityRangeError) are raised before any
remote call is made. Remote errors carry the API message verbatim. Remote
errors matching a known benign message are raised as AlreadyDoneError so
callers can downgrade them to success.

Usage:
    from qcvolume.core.errors import AttachError, ValidationError

    # Raise with default message
    raise VolumeNotFoundError()

    # Raise with custom message
    raise ValidationError("attach requires options in json format and a node name")
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes."""

    VALIDATION = "VALIDATION"
    CAPACITY_OUT_OF_RANGE = "CAPACITY_OUT_OF_RANGE"
    REMOTE_ERROR = "REMOTE_ERROR"
    ALREADY_DONE = "ALREADY_DONE"
    JOB_TIMEOUT = "JOB_TIMEOUT"
    JOB_FAILED = "JOB_FAILED"
    VOLUME_NOT_FOUND = "VOLUME_NOT_FOUND"
    DEVICE_MISSING = "DEVICE_MISSING"
    CREATION_FAILED = "CREATION_FAILED"
    DELETION_FAILED = "DELETION_FAILED"
    ATTACH_FAILED = "ATTACH_FAILED"
    DETACH_FAILED = "DETACH_FAILED"
    MOUNT_FAILED = "MOUNT_FAILED"


# Substrings of remote messages that mean the desired state already holds
ALREADY_DELETED = "already been deleted"
ALREADY_ATTACHED = "already attached to instance"

BENIGN_MESSAGES = (ALREADY_DELETED, ALREADY_ATTACHED)


class VolumeError(Exception):
    """Base exception for qingcloud-volume.

    All qingcloud-volume specific exceptions inherit from this class.
    The driver renders any VolumeError as a Failure result.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class ValidationError(VolumeError):
    """Bad arguments, options or parameters. No remote call was made."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(ErrorCode.VALIDATION, message)


class CapacityRangeError(VolumeError):
    """Requested capacity is above the tier maximum."""

    def __init__(self, message: str = "Requested capacity is out of range") -> None:
        super().__init__(ErrorCode.CAPACITY_OUT_OF_RANGE, message)


class RemoteError(VolumeError):
    """The control plane rejected a call.

    Attributes:
        action: API action that failed (e.g. AttachVolumes)
        ret_code: API return code, None for transport-level failures
        transient: Transport failure that may succeed on retry
    """

    def __init__(
        self,
        message: str = "Remote call failed",
        *,
        action: str = "",
        ret_code: int | None = None,
        transient: bool = False,
        code: ErrorCode = ErrorCode.REMOTE_ERROR,
    ) -> None:
        self.action = action
        self.ret_code = ret_code
        self.transient = transient
        super().__init__(code, message)


class AlreadyDoneError(RemoteError):
    """Benign remote error: the desired state already holds."""

    def __init__(self, message: str, *, action: str = "", ret_code: int | None = None) -> None:
        super().__init__(message, action=action, ret_code=ret_code, code=ErrorCode.ALREADY_DONE)


class JobTimeoutError(VolumeError):
    """Job did not reach a terminal state in time."""

    def __init__(self, message: str = "Job wait timed out") -> None:
        super().__init__(ErrorCode.JOB_TIMEOUT, message)


class JobFailedError(VolumeError):
    """Job reached a failed terminal state or disappeared."""

    def __init__(self, message: str = "Job failed") -> None:
        super().__init__(ErrorCode.JOB_FAILED, message)


class VolumeNotFoundError(VolumeError):
    """Name lookup returned no volume."""

    def __init__(self, message: str = "Volume not found") -> None:
        super().__init__(ErrorCode.VOLUME_NOT_FOUND, message)


class DeviceMissingError(VolumeError):
    """Attach reported success but the volume has no device path."""

    def __init__(self, message: str = "Device of attached volume is empty") -> None:
        super().__init__(ErrorCode.DEVICE_MISSING, message)


class CreationError(VolumeError):
    """Volume creation was rejected."""

    def __init__(self, message: str = "Volume creation failed") -> None:
        super().__init__(ErrorCode.CREATION_FAILED, message)


class DeletionError(VolumeError):
    """Volume deletion was rejected."""

    def __init__(self, message: str = "Volume deletion failed") -> None:
        super().__init__(ErrorCode.DELETION_FAILED, message)


class AttachError(VolumeError):
    """Volume attach failed."""

    def __init__(self, message: str = "Volume attach failed") -> None:
        super().__init__(ErrorCode.ATTACH_FAILED, message)


class DetachError(VolumeError):
    """Volume detach failed."""

    def __init__(self, message: str = "Volume detach failed") -> None:
        super().__init__(ErrorCode.DETACH_FAILED, message)


class MountError(VolumeError):
    """Format, mount or unmount of a device failed."""

    def __init__(self, message: str = "Mount operation failed") -> None:
        super().__init__(ErrorCode.MOUNT_FAILED, message)


def remote_error(action: str, ret_code: int | None, message: str) -> RemoteError:
    """Build the error for a rejected API call.

    Benign messages become AlreadyDoneError, everything else RemoteError.
    """
    if any(benign in message for benign in BENIGN_MESSAGES):
        return AlreadyDoneError(message, action=action, ret_code=ret_code)
    return RemoteError(message, action=action, ret_code=ret_code)
