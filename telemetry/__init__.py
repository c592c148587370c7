"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- The NOTICE log level used for session events
- configure_logging to install the JSON handler
- get_logger to obtain a named logger
"""

from telemetry.service import (
    NOTICE,
    JSONFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "NOTICE",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]
