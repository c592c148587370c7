"""
Lazy Redis connection for the session store.

The connector owns the one client a store instance uses. The client is
created on first use and reused afterwards; a failed attempt leaves the
connector disconnected so the next operation tries again. Connection
failures are logged and reported as False, never raised to the caller.
"""

import logging
from typing import Any, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from errors.exceptions import SessionStoreUnavailable, session_store_unavailable

logger = logging.getLogger(__name__)


class RedisConnector:
    """
    Holds connection state for a single Redis client.

    Attributes:
        redis_url: Redis server address (e.g., "redis://127.0.0.1:6379")
        database_number: Logical database selected on every connection
        single_connection: Use one dedicated connection instead of a pool
    """

    def __init__(
        self,
        redis_url: str,
        database_number: int = 0,
        single_connection: bool = False,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize the connector without connecting.

        Args:
            redis_url: Redis connection URL.
            database_number: Database index to select.
            single_connection: Client-variant selector.
            client_factory: Callable building a client from a URL and
                keyword options. Defaults to ``redis.asyncio.from_url``.
        """
        self.redis_url = redis_url
        self.database_number = database_number
        self.single_connection = single_connection
        self._client_factory = client_factory or redis.from_url
        self._client = None

    @classmethod
    def from_settings(cls, settings, client_factory: Optional[Callable[..., Any]] = None) -> "RedisConnector":
        return cls(
            redis_url=settings.redis_url,
            database_number=settings.redis_database_number,
            single_connection=settings.redis_single_connection,
            client_factory=client_factory,
        )

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def client(self):
        """The connected client, or None before a successful connect()."""
        return self._client

    async def connect(self) -> bool:
        """
        Establish the Redis connection if not already connected.

        The selected database is applied by the client on connection setup,
        and a PING forces that setup so an unreachable server or a rejected
        database index is detected here rather than on the first command.

        Returns:
            True if a usable client is available, False otherwise.
        """
        if self._client is not None:
            return True

        client = None
        try:
            client = self._client_factory(
                self.redis_url,
                db=self.database_number,
                single_connection_client=self.single_connection,
            )
            if not await client.ping():
                raise session_store_unavailable(
                    f"Can't select database '{self.database_number}'!"
                )
        except (RedisError, OSError, ValueError, SessionStoreUnavailable) as e:
            logger.error(f"Redis error: {e}!", extra={
                "extra_data": {
                    "redis_url": self.redis_url,
                    "database_number": self.database_number,
                }
            })
            if client is not None:
                await self._close_quietly(client)
            return False

        self._client = client
        logger.debug("Connected to Redis", extra={
            "extra_data": {
                "redis_url": self.redis_url,
                "database_number": self.database_number,
                "single_connection": self.single_connection,
            }
        })
        return True

    async def reset(self) -> None:
        """Drop a client whose connection broke so the next call reconnects."""
        client, self._client = self._client, None
        if client is not None:
            await self._close_quietly(client)

    async def disconnect(self) -> None:
        """
        Close the Redis connection.

        Should be called during application shutdown to cleanly
        release resources.
        """
        await self.reset()

    async def health_check(self) -> bool:
        """
        Check connectivity of the Redis backend.

        Returns:
            True if Redis answers PING, False otherwise. Never raises.
        """
        if not await self.connect():
            return False

        try:
            return await self._client.ping() is True
        except (RedisError, OSError):
            return False

    @staticmethod
    async def _close_quietly(client) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Ignoring error while closing Redis client: {e}")
