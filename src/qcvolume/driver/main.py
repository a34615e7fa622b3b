"""Command line entry point for the FlexVolume driver.

    qingcloud-flex-volume <verb> [args...]

Prints exactly one JSON result line to stdout and exits with its code.
"""

import asyncio
import logging
import os
import sys

from qcvolume.adapters import QingCloudVolumeManager
from qcvolume.config import Settings, get_settings
from qcvolume.core.logging_schema import LogEvent
from qcvolume.driver.mount import Mounter
from qcvolume.driver.plugin import USAGE, FlexVolumeDriver
from qcvolume.driver.protocol import DriverStatus, OperationResult
from qcvolume.logging import TEXT_FORMAT, setup_logging

logger = logging.getLogger(__name__)

_RESULT_EVENTS = {
    DriverStatus.SUCCESS: LogEvent.RESPONSE_SUCCESS,
    DriverStatus.FAILURE: LogEvent.RESPONSE_FAILURE,
    DriverStatus.NOT_SUPPORTED: LogEvent.RESPONSE_NOT_SUPPORTED,
}


def build_driver(settings: Settings) -> FlexVolumeDriver:
    return FlexVolumeDriver(
        lambda: QingCloudVolumeManager.from_settings(settings),
        Mounter(),
        default_fs_type=settings.volume.default_fs_type,
        device_check_interval=settings.volume.device_check_interval,
    )


async def _dispatch(driver: FlexVolumeDriver, verb: str, args: list[str]) -> OperationResult:
    try:
        return await driver.handle(verb, args)
    finally:
        try:
            await driver.close()
        except Exception as exc:
            # Keep the result when close fails
            logger.warning(
                "Failed to close driver: %s",
                exc,
                extra={"event": LogEvent.REMOTE_CALL_FAILED, "verb": verb},
            )


def report(result: OperationResult) -> int:
    """Write the result line and return the exit code."""
    level = logging.INFO if result.is_success else logging.ERROR
    logger.log(
        level,
        "Driver response: %s",
        result.status.value,
        extra={"event": _RESULT_EVENTS[result.status], "result_message": result.message},
    )
    print(result.to_json(), flush=True)
    return result.exit_code


def main(argv: list[str] | None = None, driver: FlexVolumeDriver | None = None) -> int:
    argv = sys.argv if argv is None else argv
    try:
        settings = get_settings()
        setup_logging(settings.logging)
    except Exception as exc:
        # Bad QCVOLUME_* values or an unusable log_dir
        logging.basicConfig(stream=sys.stderr, level=logging.INFO, format=TEXT_FORMAT)
        logger.exception("Driver setup failed", extra={"event": LogEvent.DRIVER_SETUP_FAILED})
        return report(OperationResult.failure(f"Invalid driver configuration: {exc}"))

    prog = os.path.basename(argv[0]) if argv else "qingcloud-flex-volume"
    if len(argv) < 2:
        return report(OperationResult.failure(f"Usage: {prog} {USAGE}"))

    verb, args = argv[1], argv[2:]
    logger.info(
        "Driver called: %s %s",
        verb,
        " ".join(args),
        extra={"event": LogEvent.DRIVER_CALLED, "verb": verb},
    )

    if driver is None:
        try:
            driver = build_driver(settings)
        except Exception as exc:
            logger.exception("Driver setup failed", extra={"event": LogEvent.DRIVER_SETUP_FAILED})
            return report(OperationResult.failure(f"Failed to create driver: {exc}"))
    result = asyncio.run(_dispatch(driver, verb, args))
    return report(result)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
