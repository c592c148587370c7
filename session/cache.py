"""
Two-tier in-process view of session records.

The first tier is the read cache: the last record fetched from the backend
for each session id. The second tier is the write-back buffer: field updates
that have not been persisted yet. A lookup returns the cached record with
the pending fields laid over it, so a pending value always wins over the
cached value for the same field.

Both tiers are private to one store instance and are never shared.
"""

from typing import Any, Optional

from session.codec import SessionRecord


class SessionCache:
    """
    Read cache plus write-back buffer for one store instance.

    Example:
        cache = SessionCache()
        cache.store("abc", {"UserLogin": "root", "Theme": "Standard"})
        cache.buffer("abc", "Theme", "Dark")
        cache.lookup("abc")  # {"UserLogin": "root", "Theme": "Dark"}
    """

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}
        self._pending: dict[str, dict[str, Any]] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._records

    def lookup(self, session_id: str) -> Optional[SessionRecord]:
        """
        Return the merged record for a cached session.

        Returns:
            A new dict with pending fields overriding cached ones, or None
            when the session has no read cache entry.
        """
        record = self._records.get(session_id)
        if record is None:
            return None
        return self.merge(session_id, record)

    def merge(self, session_id: str, record: SessionRecord) -> SessionRecord:
        """Lay the pending fields of ``session_id`` over ``record``."""
        merged = dict(record)
        merged.update(self._pending.get(session_id, {}))
        return merged

    def store(self, session_id: str, record: SessionRecord) -> None:
        """Replace the read cache entry with a freshly fetched record."""
        self._records[session_id] = dict(record)

    def buffer(self, session_id: str, key: str, value: Any) -> None:
        """Record a pending field update."""
        self._pending.setdefault(session_id, {})[key] = value

    def pending(self, session_id: str) -> dict[str, Any]:
        return dict(self._pending.get(session_id, {}))

    def pending_ids(self) -> list[str]:
        """Session ids with buffered updates, in insertion order."""
        return list(self._pending)

    def discard_pending(self, session_id: str) -> None:
        self._pending.pop(session_id, None)

    def purge(self, session_id: str) -> None:
        """Drop both tiers for a session."""
        self._records.pop(session_id, None)
        self._pending.pop(session_id, None)

    def clear(self) -> None:
        self._records.clear()
        self._pending.clear()
