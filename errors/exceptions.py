"""
Exception classes for the session store.

This module provides the AppException class and convenience factory
functions for creating exceptions with proper error codes and HTTP
status codes.

Store operations report failures through return values; these exceptions
are raised at the edges (connector internals, SessionValidator.require)
where a caller asks for them.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all session store errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context

    Example:
        raise AppException(
            error_code=ErrorCode.SESSION_EXPIRED,
            message="Session has timed out. Please log in again.",
            details={"session_id": session_id}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"AppException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class SessionStoreUnavailable(AppException):
    """Raised when Redis cannot be reached or rejects database selection."""

    def __init__(
        self,
        message: str = "Session store unavailable",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(
            error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
            message=message,
            details=details
        )


# Convenience factory functions for common error types

def missing_argument(
    name: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a missing argument exception."""
    return AppException(
        error_code=ErrorCode.MISSING_ARGUMENT,
        message=f"Need {name}!",
        details=details
    )


def session_store_unavailable(
    message: str = "Session store unavailable",
    details: Optional[dict[str, Any]] = None
) -> SessionStoreUnavailable:
    """Create a session store unavailable exception."""
    return SessionStoreUnavailable(message=message, details=details)


def session_rejected(
    error_code: ErrorCode,
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an exception for a session that failed validation."""
    return AppException(
        error_code=error_code,
        message=message,
        details=details
    )
