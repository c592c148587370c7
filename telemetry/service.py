"""
Structured logging for the session store.

This module provides structured JSON logging shared by every component.
Log lines carry timestamp, level, message and context fields; per-call
context goes in the ``extra_data`` attribute of the record.

Session events use an extra NOTICE level between INFO and WARNING:
validation failures and removals are expected, audit-worthy events rather
than warnings about the store itself.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional, Dict

NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs logs in JSON format.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level (DEBUG, INFO, NOTICE, WARNING, ERROR, CRITICAL)
    - message: The log message
    - logger: Name of the logger that produced the entry

    Additional fields can be included via the 'extra_data' attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


def configure_logging(settings: Optional[Any] = None) -> logging.Logger:
    """
    Configure structured JSON logging on the root logger.

    Args:
        settings: Settings object carrying ``log_level``. Defaults to INFO
            when omitted.

    Returns:
        The package logger, already emitting through the JSON handler.
    """
    log_level_str = "INFO"
    if settings and hasattr(settings, "log_level"):
        log_level_str = settings.log_level

    log_level = logging.getLevelName(log_level_str.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(stdout_handler)

    logger = logging.getLogger("session")
    logger.info("Logging configured", extra={
        "extra_data": {"log_level": log_level_str}
    })
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    The returned logger emits through whatever handler ``configure_logging``
    installed on the root logger.

    Args:
        name: Name for the logger (typically module name)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
