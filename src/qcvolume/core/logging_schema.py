"""Logging field schema.

Standard fields (added to all JSON logs):
- service: Service name (qingcloud-volume)
- event: Event type (volume_attached, job_timeout, etc.)

High cardinality fields (OK in logs):
- volume_id: Volume ID
- instance_id: Instance ID
- job_id: Job ID
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.VOLUME_ATTACHED, ...})
    """

    # Volume events
    VOLUME_CREATED = "volume_created"
    VOLUME_DELETED = "volume_deleted"
    VOLUME_ALREADY_DELETED = "volume_already_deleted"
    VOLUME_ATTACHED = "volume_attached"
    VOLUME_ALREADY_ATTACHED = "volume_already_attached"
    VOLUME_DETACHED = "volume_detached"
    VOLUME_ALREADY_DETACHED = "volume_already_detached"
    VOLUME_RENAMED = "volume_renamed"
    VOLUME_PROVISIONED = "volume_provisioned"

    # Job events
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_TIMEOUT = "job_timeout"
    JOB_POLL_FAILED = "job_poll_failed"

    # Volume type detection
    VOLUME_TYPE_DETECTED = "volume_type_detected"
    VOLUME_TYPE_DETECTION_FAILED = "volume_type_detection_failed"

    # Node device events
    DEVICE_WAITING = "device_waiting"
    DEVICE_FOUND = "device_found"
    DEVICE_FORMATTED = "device_formatted"
    DEVICE_MOUNTED = "device_mounted"
    DEVICE_UNMOUNTED = "device_unmounted"

    # Driver events
    DRIVER_CALLED = "driver_called"
    DRIVER_SETUP_FAILED = "driver_setup_failed"
    RESPONSE_SUCCESS = "response_success"
    RESPONSE_FAILURE = "response_failure"
    RESPONSE_NOT_SUPPORTED = "response_not_supported"

    # Remote API events
    REMOTE_CALL_FAILED = "remote_call_failed"
    OPERATION_FAILED = "operation_failed"
