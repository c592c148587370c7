"""
Error handling module for the session store.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException class for session store exceptions
- SessionStoreUnavailable for backend connectivity failures
"""

from errors.codes import ErrorCode
from errors.exceptions import (
    AppException,
    SessionStoreUnavailable,
    missing_argument,
    session_rejected,
    session_store_unavailable,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "SessionStoreUnavailable",
    "missing_argument",
    "session_rejected",
    "session_store_unavailable",
]
