"""
Session store abstraction for authentication sessions.

This module defines the interface every session backend implements. A
session is a flat record of login data stored under an opaque session id;
backends may keep records in Redis, a database table or files, but callers
only see the operations below.

Failures are reported through return values (None, empty dict, False):
a session backend that is down must degrade to "no session" rather than
raise into the request handling path.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from session.codec import SessionRecord


@dataclass
class ActiveSessionStats:
    """
    Active session counts for one user type.

    Attributes:
        total: Number of active sessions.
        per_user: Number of active sessions per login name.
    """
    total: int = 0
    per_user: dict[str, int] = field(default_factory=dict)


class SessionStore(ABC):
    """
    Abstract base class for authentication session storage.

    All methods are async to support non-blocking I/O with external
    storage systems. Implementations buffer nothing across instances;
    ``close()`` must be awaited exactly once before an instance is
    discarded so buffered updates reach the backend.
    """

    @abstractmethod
    async def check_session_id(self, session_id: str, remote_addr: str = "none") -> bool:
        """
        Check whether a session id may be used for the current request.

        Args:
            session_id: The session identifier sent by the client.
            remote_addr: Remote address of the current request.

        Returns:
            True if the session is valid. On False, the reason is available
            from ``session_id_error_message()``.
        """
        pass

    @abstractmethod
    def session_id_error_message(self) -> str:
        """User-facing message for the most recent failed check."""
        pass

    @abstractmethod
    async def get_session_data(self, session_id: str) -> SessionRecord:
        """
        Retrieve the session record, including buffered updates.

        Returns:
            The session record, or an empty dict if the session does not
            exist, has expired or cannot be decoded.
        """
        pass

    @abstractmethod
    async def create_session_id(
        self,
        remote_addr: str = "none",
        user_agent: str = "none",
        **fields: Any
    ) -> Optional[str]:
        """
        Create a new session.

        Args:
            remote_addr: Remote address of the login request.
            user_agent: User agent of the login request.
            **fields: Session fields such as UserID, UserLogin and UserType.

        Returns:
            The new session id, or None if the backend is unavailable.
        """
        pass

    @abstractmethod
    async def remove_session_id(self, session_id: str) -> bool:
        """
        Remove a session.

        This operation is idempotent - removing a non-existent session
        is not an error.
        """
        pass

    @abstractmethod
    async def update_session_id(self, session_id: str, key: str, value: Any) -> bool:
        """
        Update one field of a session.

        The update may be deferred until ``close()``; reads on the same
        instance see it immediately.
        """
        pass

    @abstractmethod
    async def get_all_session_ids(self) -> list[str]:
        """Return the ids of all stored sessions."""
        pass

    @abstractmethod
    async def get_active_sessions(self, user_type: str) -> ActiveSessionStats:
        """Count active sessions of a user type, in total and per login."""
        pass

    @abstractmethod
    async def get_expired_session_ids(self) -> tuple[list[str], list[str]]:
        """
        Find expired sessions.

        Returns:
            A pair of lists: sessions past the maximum lifetime, and
            sessions past the idle timeout.
        """
        pass

    @abstractmethod
    async def cleanup(self) -> bool:
        """Remove all sessions."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Persist buffered updates and release backend resources."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity and health of the session store.

        Note:
            This method should not raise exceptions - connectivity issues
            should be caught and result in a False return value.
        """
        pass
