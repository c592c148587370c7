"""
Session validation state machine.

A session id starts out unchecked and ends either valid or invalid with a
reason. The checks run in a fixed order and stop at the first failure:

1. MISSING_ID: the request carried no session id
2. NOT_FOUND: no record is stored (never created, removed, or evicted by
   the backend TTL after the idle timeout)
3. MALFORMED: the record lacks UserID or UserLogin
4. ORIGIN_MISMATCH: the request comes from another remote address
   (only when ``session_check_remote_ip`` is enabled)
5. EXPIRED: the session is older than ``session_max_time``

Idle time is not checked here because the backend TTL already evicts idle
sessions, turning them into NOT_FOUND.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from errors.codes import ErrorCode
from errors.exceptions import missing_argument, session_rejected
from telemetry.service import NOTICE

logger = logging.getLogger(__name__)

MESSAGE_SESSION_INVALID = "Session invalid. Please log in again."
MESSAGE_SESSION_TIMED_OUT = "Session has timed out. Please log in again."


class InvalidReason(str, Enum):
    """Why a session id was rejected."""
    MISSING_ID = "missing-id"
    NOT_FOUND = "not-found"
    MALFORMED = "malformed"
    ORIGIN_MISMATCH = "origin-mismatch"
    EXPIRED = "expired"


REASON_ERROR_CODES: dict[InvalidReason, ErrorCode] = {
    InvalidReason.MISSING_ID: ErrorCode.MISSING_ARGUMENT,
    InvalidReason.NOT_FOUND: ErrorCode.SESSION_NOT_FOUND,
    InvalidReason.MALFORMED: ErrorCode.SESSION_INVALID,
    InvalidReason.ORIGIN_MISMATCH: ErrorCode.SESSION_ORIGIN_MISMATCH,
    InvalidReason.EXPIRED: ErrorCode.SESSION_EXPIRED,
}


@dataclass(frozen=True)
class SessionValidation:
    """
    Result of validating a session id.

    Truthy when the session is valid. ``message`` is meant for the user;
    the log line written for the failure is more detailed.
    """
    valid: bool
    reason: Optional[InvalidReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def ok(cls) -> "SessionValidation":
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: InvalidReason, message: str = MESSAGE_SESSION_INVALID) -> "SessionValidation":
        return cls(valid=False, reason=reason, message=message)


def session_age(record: dict[str, Any], now: float, default: float = 0) -> float:
    """Seconds since ``UserSessionStart``; ``default`` stands in for a missing start."""
    try:
        start = float(record.get("UserSessionStart") or default)
    except (TypeError, ValueError):
        start = default
    return now - start


class SessionValidator:
    """
    Decides whether a session id is currently usable.

    Args:
        store: Session store providing ``get_session_data`` and
            ``remove_session_id``.
        settings: Settings carrying the validation policy.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(self, store, settings, clock: Callable[[], float] = time.time):
        self.store = store
        self.settings = settings
        self.clock = clock
        self.last_result: Optional[SessionValidation] = None

    @property
    def error_message(self) -> str:
        """User-facing message for the most recent invalid outcome."""
        if self.last_result is None or self.last_result.valid:
            return ""
        return self.last_result.message

    async def validate(self, session_id: str, remote_addr: Optional[str] = None) -> SessionValidation:
        """
        Run the checks for ``session_id`` and remember the outcome.

        Args:
            session_id: The session identifier sent by the client.
            remote_addr: Remote address of the current request; "none"
                when unknown.
        """
        result = await self._evaluate(session_id, remote_addr or "none")
        self.last_result = result
        return result

    async def require(self, session_id: str, remote_addr: Optional[str] = None) -> dict[str, Any]:
        """
        Validate and return the session record.

        Raises:
            AppException: If the session is invalid, carrying the
                user-facing message.
        """
        result = await self.validate(session_id, remote_addr)
        if not result:
            if result.reason is InvalidReason.MISSING_ID:
                raise missing_argument("SessionID")
            raise session_rejected(
                REASON_ERROR_CODES[result.reason],
                result.message,
                details={"reason": result.reason.value},
            )
        return await self.store.get_session_data(session_id)

    async def _evaluate(self, session_id: str, remote_addr: str) -> SessionValidation:
        if not session_id:
            logger.error("Got no SessionID!!")
            return SessionValidation.invalid(InvalidReason.MISSING_ID)

        data = await self.store.get_session_data(session_id)
        if not data:
            return SessionValidation.invalid(InvalidReason.NOT_FOUND)

        if not data.get("UserID") or not data.get("UserLogin"):
            logger.log(NOTICE, f"SessionID: '{session_id}' is invalid!!!")
            return SessionValidation.invalid(InvalidReason.MALFORMED)

        stored_addr = data.get("UserRemoteAddr")
        if self.settings.session_check_remote_ip and stored_addr != remote_addr:
            logger.log(
                NOTICE,
                f"RemoteIP of '{session_id}' ({stored_addr}) is different from "
                f"registered IP ({remote_addr}). Invalidating session! Disable config "
                "'session_check_remote_ip' if you don't want this!",
            )
            if self.settings.session_delete_if_not_remote_id:
                await self.store.remove_session_id(session_id)
            return SessionValidation.invalid(InvalidReason.ORIGIN_MISMATCH)

        age = session_age(data, self.clock())
        if age > self.settings.session_max_time:
            logger.log(
                NOTICE,
                f"SessionID ({session_id}) too old ({int(age / 3600)} h)! Don't grant access!!!",
            )
            if self.settings.session_delete_if_time_to_old:
                await self.store.remove_session_id(session_id)
            return SessionValidation.invalid(InvalidReason.EXPIRED, MESSAGE_SESSION_TIMED_OUT)

        return SessionValidation.ok()
