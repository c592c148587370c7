"""
Error code catalog for the session store.

This module defines all error codes used throughout the package, covering
backend connectivity, precondition failures and session validation outcomes.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session store.

    Each error code maps to the HTTP status a web layer should answer with:
    - Precondition errors (4xx): the caller passed incomplete arguments
    - Session errors (4xx): the session cannot be used for this request
    - Backend errors (5xx): Redis is unreachable or misbehaving
    """

    # Precondition errors (4xx)
    MISSING_ARGUMENT = "MISSING_ARGUMENT"
    """A required argument such as the session id was empty (HTTP 400)"""

    # Session errors (4xx)
    SESSION_INVALID = "SESSION_INVALID"
    """Session record lacks the identity fields (HTTP 401)"""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """No session stored under the id, or it idled out (HTTP 401)"""

    SESSION_EXPIRED = "SESSION_EXPIRED"
    """Session exceeded the maximum lifetime (HTTP 401)"""

    SESSION_ORIGIN_MISMATCH = "SESSION_ORIGIN_MISMATCH"
    """Session used from a different remote address (HTTP 401)"""

    # Backend errors (5xx)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """Redis unreachable or database selection rejected (HTTP 503)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.MISSING_ARGUMENT: 400,
    ErrorCode.SESSION_INVALID: 401,
    ErrorCode.SESSION_NOT_FOUND: 401,
    ErrorCode.SESSION_EXPIRED: 401,
    ErrorCode.SESSION_ORIGIN_MISMATCH: 401,
    ErrorCode.SESSION_STORE_UNAVAILABLE: 503,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
