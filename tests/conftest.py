"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from redis.exceptions import ConnectionError as RedisConnectionError

# Hypothesis configuration for property-based testing
from hypothesis import settings as hypothesis_settings, Verbosity, Phase

from config.settings import Settings
from session.connector import RedisConnector
from session.redis_store import RedisSessionStore

# Default profile: balanced for local development
hypothesis_settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
hypothesis_settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
hypothesis_settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

NOW = 1_700_000_000


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_settings() -> Settings:
    """Settings with the defaults used across store tests."""
    return Settings(
        _env_file=None,
        redis_url="redis://127.0.0.1:6379",
        redis_database_number=1,
        session_max_idle_time=7200,
        session_max_time=57600,
        session_check_remote_ip=True,
        session_delete_if_not_remote_id=True,
        session_delete_if_time_to_old=True,
        session_internal_source="GenericInterface",
        system_id="10",
    )


@pytest.fixture
def redis_server() -> FakeServer:
    """An in-memory Redis server shared by every client of one test."""
    return FakeServer()


@pytest.fixture
def backend(redis_server, session_settings) -> FakeAsyncRedis:
    """Direct client on the store's database, for arranging and inspecting keys."""
    return FakeAsyncRedis(server=redis_server, db=session_settings.redis_database_number)


@pytest.fixture
def client_factory(redis_server):
    """Client factory handing out fakeredis clients bound to ``redis_server``."""
    def factory(url, **options):
        return FakeAsyncRedis(server=redis_server, db=options.get("db", 0))
    return factory


@pytest.fixture
def store(session_settings, client_factory, clock) -> RedisSessionStore:
    connector = RedisConnector.from_settings(session_settings, client_factory=client_factory)
    return RedisSessionStore(session_settings, connector=connector, clock=clock)


@pytest.fixture
def unreachable_client() -> MagicMock:
    """A Redis client whose server refuses connections."""
    mock = MagicMock()
    mock.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def offline_store(session_settings, unreachable_client, clock) -> RedisSessionStore:
    connector = RedisConnector.from_settings(
        session_settings, client_factory=lambda url, **options: unreachable_client
    )
    return RedisSessionStore(session_settings, connector=connector, clock=clock)
