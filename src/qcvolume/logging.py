"""Log setup for the driver and the provisioner.

The FlexVolume caller reads the driver result from stdout, so records only
ever go to stderr and, when log_dir is set, to <log_dir>/<service_name>.log.
The text format is meant for a terminal; json for log collection on nodes.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from qcvolume.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(process)d] %(name)s: %(message)s"

# Loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


class VolumeJsonFormatter(jsonlogger.JsonFormatter):
    """Adds service, source location and a UTC timestamp to every record.

    Extra fields passed with extra={...} (event, volume_id, ...) are kept
    as top-level keys by the base class.
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            service=self._service,
            pid=record.process,
            filename=record.filename,
            lineno=record.lineno,
        )
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def _formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format == "json":
        return VolumeJsonFormatter(config)
    return logging.Formatter(TEXT_FORMAT)


def _handlers(config: LoggingConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_dir:
        os.makedirs(config.log_dir, mode=0o750, exist_ok=True)
        log_file = Path(config.log_dir) / f"{config.service_name}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    return handlers


def setup_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to config."""
    formatter = _formatter(config)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in _handlers(config):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
