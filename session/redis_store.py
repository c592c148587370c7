"""
Redis-based session store implementation.

Sessions are stored as one encoded blob per key, ``OTRSSession-<id>``.
The idle timeout is enforced by Redis itself: keys are written with a TTL
of ``session_max_idle_time`` and simply disappear when it runs out.

Each store instance keeps a read cache and a write-back buffer (see
``session.cache``). Field updates are buffered and only written on
``close()``, which rewrites each touched session with the TTL Redis still
reports for it, so an update never extends a session's idle lifetime.
Reading the TTL and rewriting the key are two separate commands; another
client touching the key in between can make the rewrite use a stale TTL.
"""

import logging
import time
from typing import Any, Callable, Optional

from redis.exceptions import RedisError

from session.cache import SessionCache
from session.codec import JSONSessionCodec, SessionCodec, SessionRecord
from session.connector import RedisConnector
from session.identifiers import SessionIDGenerator
from session.store import ActiveSessionStats, SessionStore
from session.validator import SessionValidator, session_age
from telemetry.service import NOTICE

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "OTRSSession-"


class RedisSessionStore(SessionStore):
    """
    Redis-backed authentication session store.

    Example:
        store = RedisSessionStore(get_settings())
        session_id = await store.create_session_id(
            remote_addr="10.0.0.1", UserID=1, UserLogin="root", UserType="User"
        )
        if await store.check_session_id(session_id, remote_addr="10.0.0.1"):
            await store.update_session_id(session_id, "LastScreenView", "Dashboard")
        await store.close()

    Attributes:
        settings: Session settings (lifetimes, validation policy)
        connector: Lazy Redis connection
        codec: Encoder/decoder for session records
        validator: State machine behind ``check_session_id``
    """

    def __init__(
        self,
        settings,
        connector: Optional[RedisConnector] = None,
        codec: Optional[SessionCodec] = None,
        id_generator: Optional[SessionIDGenerator] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the store. No connection is made until first use.

        Args:
            settings: Settings instance (see ``config.settings.Settings``).
            connector: Redis connector. Built from settings if omitted.
            codec: Record codec. Defaults to JSON.
            id_generator: Session id source. Built from settings if omitted.
            clock: Returns the current time in epoch seconds.
        """
        self.settings = settings
        self.connector = connector or RedisConnector.from_settings(settings)
        self.codec = codec or JSONSessionCodec()
        self.id_generator = id_generator or SessionIDGenerator.from_settings(settings)
        self.clock = clock
        self.validator = SessionValidator(self, settings, clock)
        self._cache = SessionCache()
        self._closed = False

    async def __aenter__(self) -> "RedisSessionStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    async def _backend_failure(self, command: str, error: Exception) -> None:
        logger.error(f"Redis error: {error}!", extra={
            "extra_data": {"command": command}
        })
        await self.connector.reset()

    # Validation

    async def check_session_id(self, session_id: str, remote_addr: str = "none") -> bool:
        result = await self.validator.validate(session_id, remote_addr)
        return result.valid

    def session_id_error_message(self) -> str:
        return self.validator.error_message

    # Read path

    async def get_session_data(self, session_id: str) -> SessionRecord:
        """
        Retrieve session data by session ID.

        The read cache is consulted first; Redis is only read for sessions
        this instance has not fetched yet. Buffered updates are laid over
        the result either way.

        Returns:
            The merged session record, or an empty dict if the session does
            not exist, has expired, or its payload cannot be decoded. An
            undecodable payload also drops any buffered update.
        """
        if not session_id:
            logger.error("Got no SessionID!!")
            return {}

        cached = self._cache.lookup(session_id)
        if cached is not None:
            return cached

        if not await self.connector.connect():
            return {}

        try:
            content = await self.connector.client.get(self._get_key(session_id))
        except (RedisError, OSError) as e:
            await self._backend_failure("GET", e)
            return {}

        result = self.codec.decode(content)
        if not result.ok:
            if content:
                logger.debug(f"Discarding undecodable session {session_id}", extra={
                    "extra_data": {"error": result.error}
                })
            self._cache.discard_pending(session_id)
            return {}

        self._cache.store(session_id, result.record)
        return self._cache.merge(session_id, result.record)

    # Lifecycle

    async def create_session_id(
        self,
        remote_addr: str = "none",
        user_agent: str = "none",
        **fields: Any
    ) -> Optional[str]:
        if not await self.connector.connect():
            return None

        session_id = self.id_generator.new_session_id()

        data: SessionRecord = {key: fields[key] for key in sorted(fields) if key}
        data["UserSessionStart"] = int(self.clock())
        data["UserRemoteAddr"] = remote_addr or "none"
        data["UserRemoteUserAgent"] = user_agent or "none"
        data["UserChallengeToken"] = self.id_generator.new_challenge_token()

        try:
            content = self.codec.encode(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not encode new session: {e}")
            return None
        idle_time = self.settings.session_max_idle_time

        try:
            if idle_time:
                await self.connector.client.set(self._get_key(session_id), content, ex=idle_time)
            else:
                await self.connector.client.set(self._get_key(session_id), content)
        except (RedisError, OSError) as e:
            await self._backend_failure("SET", e)
            return None

        logger.debug(f"Created SessionID {session_id}", extra={
            "extra_data": {"user_login": data.get("UserLogin"), "ttl": idle_time or None}
        })
        return session_id

    async def remove_session_id(self, session_id: str) -> bool:
        if not session_id:
            logger.error("Got no SessionID!!")
            return False

        if not await self.connector.connect():
            return False

        try:
            await self.connector.client.delete(self._get_key(session_id))
        except (RedisError, OSError) as e:
            await self._backend_failure("DEL", e)
            return False

        self._cache.purge(session_id)

        logger.log(NOTICE, f"Removed SessionID {session_id}.")
        return True

    async def update_session_id(self, session_id: str, key: str, value: Any) -> bool:
        """
        Buffer a field update for ``session_id``.

        No existence check is made: an update for a session that is not in
        Redis is accepted here and silently dropped by ``close()``.
        """
        for name, given in (("SessionID", session_id), ("Key", key)):
            if not given:
                logger.error(f"Need {name}!")
                return False

        self._cache.buffer(session_id, key, value)
        return True

    async def flush_session(self, session_id: str) -> bool:
        """
        Write the merged record of one session back to Redis.

        The key keeps the TTL Redis reports for it right now. Sessions that
        no longer exist, and keys without an expiry, are skipped.

        Returns:
            True if the record was written.
        """
        data = await self.get_session_data(session_id)
        if not data:
            return False

        if not await self.connector.connect():
            return False

        key = self._get_key(session_id)
        try:
            ttl = await self.connector.client.ttl(key)
            # -2: key is gone, -1: key has no expiry
            if ttl is None or ttl <= 0:
                return False
            content = self.codec.encode(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not encode SessionID {session_id}: {e}")
            return False
        except (RedisError, OSError) as e:
            await self._backend_failure("TTL", e)
            return False

        try:
            await self.connector.client.set(key, content, ex=ttl)
        except (RedisError, OSError) as e:
            await self._backend_failure("SET", e)
            return False

        self._cache.store(session_id, data)
        self._cache.discard_pending(session_id)
        return True

    async def close(self) -> None:
        """
        Flush buffered updates once and disconnect.

        A session that fails to flush is logged and skipped so the rest
        still get written. Further calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True

        for session_id in self._cache.pending_ids():
            try:
                await self.flush_session(session_id)
            except Exception:
                logger.warning(f"Could not flush SessionID {session_id}", exc_info=True)

        await self.connector.disconnect()

    # Enumeration and reporting

    async def get_all_session_ids(self) -> list[str]:
        if not await self.connector.connect():
            return []

        try:
            keys = await self.connector.client.keys(f"{SESSION_KEY_PREFIX}*")
        except (RedisError, OSError) as e:
            await self._backend_failure("KEYS", e)
            return []

        session_ids = []
        for key in keys:
            if isinstance(key, bytes):
                try:
                    key = key.decode("utf-8")
                except UnicodeDecodeError:
                    logger.debug(f"Skipping undecodable session key {key!r}")
                    continue
            session_ids.append(key[len(SESSION_KEY_PREFIX):])
        return session_ids

    async def get_active_sessions(self, user_type: str) -> ActiveSessionStats:
        """
        Count active sessions of ``user_type``.

        Idle sessions are already evicted by Redis, so every stored session
        counts, except those opened through the internal API.
        """
        stats = ActiveSessionStats()

        for session_id in await self.get_all_session_ids():
            if not session_id:
                continue

            session = await self.get_session_data(session_id)
            if not session:
                continue

            if (session.get("SessionSource") or "") == self.settings.session_internal_source:
                continue

            if (session.get("UserType") or "") != user_type:
                continue

            stats.total += 1
            login = session.get("UserLogin")
            stats.per_user[login] = stats.per_user.get(login, 0) + 1

        return stats

    async def get_expired_session_ids(self) -> tuple[list[str], list[str]]:
        """
        Find sessions past the maximum session lifetime.

        The second list, idle-expired sessions, is always empty: Redis
        removes those on its own before they could be listed.
        """
        now = self.clock()
        expired_sessions = []

        for session_id in await self.get_all_session_ids():
            session = await self.get_session_data(session_id)
            if not session:
                continue

            if session_age(session, now, default=now) > self.settings.session_max_time:
                expired_sessions.append(session_id)

        return expired_sessions, []

    async def cleanup(self) -> bool:
        """Flush the whole selected database. There is no selective variant."""
        if not await self.connector.connect():
            return False

        try:
            await self.connector.client.flushdb()
        except (RedisError, OSError) as e:
            await self._backend_failure("FLUSHDB", e)
            return False

        self._cache.clear()
        return True

    async def health_check(self) -> bool:
        return await self.connector.health_check()
