"""Structured JSON logging."""

import logging
import sys
from datetime import datetime
from typing import Any

from pythonjsonlogger.json import JsonFormatter

LOGGER_NAMES = ("app", "providers")


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level and logger name to every line."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]):
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.utcnow().isoformat()

        if record.name:
            log_record["logger"] = record.name

        log_record["level"] = record.levelname


def setup_logging(level: str = "INFO") -> None:
    """Configure JSON logging for the application logger trees.

    Modules log through ``logging.getLogger(__name__)``, so configuring the
    ``app`` and ``providers`` parents covers every module. Calling this more
    than once does not stack handlers.
    """
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False

        if any(getattr(h, "_exposure_monitor", False) for h in logger.handlers):
            continue

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler._exposure_monitor = True
        logger.addHandler(handler)
