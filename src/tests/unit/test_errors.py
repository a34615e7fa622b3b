"""Tests for error classes and remote error classification."""

import pytest

from qcvolume.core.errors import (
    AlreadyDoneError,
    AttachError,
    CapacityRangeError,
    CreationError,
    DeletionError,
    DetachError,
    DeviceMissingError,
    ErrorCode,
    JobFailedError,
    JobTimeoutError,
    MountError,
    RemoteError,
    ValidationError,
    VolumeError,
    VolumeNotFoundError,
    remote_error,
)
from qcvolume.driver.protocol import DriverStatus, OperationResult


class TestErrorClasses:
    """Each error class carries its own code."""

    @pytest.mark.parametrize(
        "error_class,expected_code",
        [
            (ValidationError, ErrorCode.VALIDATION),
            (CapacityRangeError, ErrorCode.CAPACITY_OUT_OF_RANGE),
            (RemoteError, ErrorCode.REMOTE_ERROR),
            (JobTimeoutError, ErrorCode.JOB_TIMEOUT),
            (JobFailedError, ErrorCode.JOB_FAILED),
            (VolumeNotFoundError, ErrorCode.VOLUME_NOT_FOUND),
            (DeviceMissingError, ErrorCode.DEVICE_MISSING),
            (CreationError, ErrorCode.CREATION_FAILED),
            (DeletionError, ErrorCode.DELETION_FAILED),
            (AttachError, ErrorCode.ATTACH_FAILED),
            (DetachError, ErrorCode.DETACH_FAILED),
            (MountError, ErrorCode.MOUNT_FAILED),
        ],
    )
    def test_error_codes(self, error_class: type, expected_code: ErrorCode) -> None:
        """Default construction sets the code and a message."""
        exc = error_class()
        assert exc.code == expected_code
        assert exc.message
        assert isinstance(exc, VolumeError)

    def test_custom_message(self) -> None:
        exc = AttachError("volume vol-1 busy")
        assert exc.message == "volume vol-1 busy"
        assert str(exc) == "volume vol-1 busy"

    def test_already_done_is_remote_error(self) -> None:
        """AlreadyDoneError can be caught as RemoteError."""
        exc = AlreadyDoneError("gone", action="DeleteVolumes", ret_code=2100)
        assert isinstance(exc, RemoteError)
        assert exc.code == ErrorCode.ALREADY_DONE
        assert exc.action == "DeleteVolumes"
        assert exc.ret_code == 2100
        assert exc.transient is False


class TestRemoteErrorClassification:
    """Tests for remote_error()."""

    def test_already_deleted_is_benign(self) -> None:
        exc = remote_error("DeleteVolumes", 2100, "resource [vol-1] has already been deleted")
        assert isinstance(exc, AlreadyDoneError)

    def test_already_attached_is_benign(self) -> None:
        exc = remote_error(
            "AttachVolumes",
            2400,
            "volume [vol-1] have been already attached to instance [i-1]",
        )
        assert isinstance(exc, AlreadyDoneError)

    def test_other_message_is_remote_error(self) -> None:
        exc = remote_error("AttachVolumes", 2400, "instance [i-1] is busy")
        assert type(exc) is RemoteError
        assert exc.ret_code == 2400
        assert exc.action == "AttachVolumes"

    def test_message_kept_verbatim(self) -> None:
        """Remote messages reach the driver result unchanged."""
        message = "quota exceeded for [volume], resource [vol-9]"
        result = OperationResult.from_error(remote_error("CreateVolumes", 2500, message))
        assert result.status is DriverStatus.FAILURE
        assert result.message == message
