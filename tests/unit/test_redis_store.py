"""
Unit tests for the Redis session store.

Tests cover:
- Session creation and the canonical fields
- The read path (cache, write-back overlay, decode failures)
- Removal
- TTL-preserving flush on close
- Enumeration and reporting
- Degradation when Redis is unreachable
"""

import json

import pytest

from session.redis_store import RedisSessionStore, SESSION_KEY_PREFIX
from session.store import ActiveSessionStats


def _key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


async def _put(backend, session_id: str, record: dict, ttl: int = 300) -> None:
    await backend.set(_key(session_id), json.dumps(record), ex=ttl)


class TestCreateSession:
    """Tests for create_session_id."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store, clock):
        """Test that created fields come back with the canonical fields."""
        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        data = await store.get_session_data(session_id)

        assert data["UserID"] == 1
        assert data["UserLogin"] == "root"
        assert data["UserSessionStart"] == clock.now
        assert data["UserRemoteAddr"]
        assert data["UserChallengeToken"]

    @pytest.mark.asyncio
    async def test_session_id_carries_system_id(self, store):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        assert session_id.startswith("10")
        assert len(session_id) == 2 + 32

    @pytest.mark.asyncio
    async def test_request_context_is_recorded(self, store):
        session_id = await store.create_session_id(
            remote_addr="10.0.0.1", user_agent="Mozilla/5.0", UserID=1, UserLogin="root"
        )

        data = await store.get_session_data(session_id)

        assert data["UserRemoteAddr"] == "10.0.0.1"
        assert data["UserRemoteUserAgent"] == "Mozilla/5.0"

    @pytest.mark.asyncio
    async def test_missing_request_context_defaults_to_none(self, store):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        data = await store.get_session_data(session_id)

        assert data["UserRemoteAddr"] == "none"
        assert data["UserRemoteUserAgent"] == "none"

    @pytest.mark.asyncio
    async def test_empty_field_names_are_dropped(self, store, backend):
        session_id = await store.create_session_id(**{"": "x", "UserID": 1, "UserLogin": "root"})

        stored = json.loads(await backend.get(_key(session_id)))

        assert "" not in stored

    @pytest.mark.asyncio
    async def test_canonical_fields_override_caller_fields(self, store):
        session_id = await store.create_session_id(
            remote_addr="10.0.0.1", UserID=1, UserLogin="root", UserRemoteAddr="spoofed"
        )

        data = await store.get_session_data(session_id)

        assert data["UserRemoteAddr"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_key_expires_after_idle_time(self, store, backend):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        ttl = await backend.ttl(_key(session_id))

        assert 7190 <= ttl <= 7200

    @pytest.mark.asyncio
    async def test_no_idle_time_means_no_expiry(self, session_settings, store, backend):
        store.settings = session_settings.model_copy(update={"session_max_idle_time": 0})

        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        assert await backend.ttl(_key(session_id)) == -1

    @pytest.mark.asyncio
    async def test_session_ids_are_unique(self, store):
        ids = {await store.create_session_id(UserID=1, UserLogin="root") for _ in range(20)}

        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_unencodable_field_returns_none(self, store, backend):
        assert await store.create_session_id(UserID=1, UserLogin="root", Avatar=object()) is None
        assert await backend.keys(f"{SESSION_KEY_PREFIX}*") == []


class TestGetSessionData:
    """Tests for the read path."""

    @pytest.mark.asyncio
    async def test_unknown_session_returns_empty(self, store):
        assert await store.get_session_data("does-not-exist") == {}

    @pytest.mark.asyncio
    async def test_empty_session_id_returns_empty(self, store):
        assert await store.get_session_data("") == {}

    @pytest.mark.asyncio
    async def test_result_is_cached(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        first = await store.get_session_data("abc")

        await _put(backend, "abc", {"UserID": 2, "UserLogin": "changed"})
        second = await store.get_session_data("abc")

        assert second == first

    @pytest.mark.asyncio
    async def test_buffered_update_visible_before_flush(self, store, backend):
        """Test that a buffered update is read back while Redis is unchanged."""
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})

        assert await store.update_session_id("abc", "Foo", "Bar") is True
        data = await store.get_session_data("abc")

        assert data["Foo"] == "Bar"
        assert "Foo" not in json.loads(await backend.get(_key("abc")))

    @pytest.mark.asyncio
    async def test_buffered_update_overrides_cached_field(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root", "Theme": "Standard"})
        await store.get_session_data("abc")

        await store.update_session_id("abc", "Theme", "Dark")

        assert (await store.get_session_data("abc"))["Theme"] == "Dark"

    @pytest.mark.asyncio
    async def test_returned_record_is_a_copy(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})

        data = await store.get_session_data("abc")
        data["UserLogin"] = "mutated"

        assert (await store.get_session_data("abc"))["UserLogin"] == "root"

    @pytest.mark.asyncio
    async def test_corrupt_blob_returns_empty_and_drops_update(self, store, backend):
        """Test that an undecodable record reads as absent without raising."""
        await backend.set(_key("abc"), b"\x80\x04not json")
        await store.update_session_id("abc", "Foo", "Bar")

        assert await store.get_session_data("abc") == {}

        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        assert "Foo" not in await store.get_session_data("abc")

    @pytest.mark.asyncio
    async def test_non_mapping_blob_returns_empty(self, store, backend):
        await backend.set(_key("abc"), json.dumps(["UserID", 1]))

        assert await store.get_session_data("abc") == {}


    @pytest.mark.asyncio
    async def test_deeply_nested_payload_returns_empty(self, store, backend):
        """Test that a payload too deep to decode reads as absent and drops the update."""
        await backend.set(_key("abc"), b"[" * 100_000, ex=300)
        await store.update_session_id("abc", "Foo", "Bar")

        assert await store.get_session_data("abc") == {}

        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        await store.close()

        assert "Foo" not in json.loads(await backend.get(_key("abc")))


class TestUpdateSession:
    """Tests for update_session_id."""

    @pytest.mark.asyncio
    async def test_missing_session_id_fails(self, store):
        assert await store.update_session_id("", "Foo", "Bar") is False

    @pytest.mark.asyncio
    async def test_missing_key_fails(self, store):
        assert await store.update_session_id("abc", "", "Bar") is False

    @pytest.mark.asyncio
    async def test_update_for_unknown_session_is_accepted(self, store):
        assert await store.update_session_id("nobody", "Foo", "Bar") is True


class TestRemoveSession:
    """Tests for remove_session_id."""

    @pytest.mark.asyncio
    async def test_remove_deletes_key_and_cache(self, store, backend):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")
        await store.get_session_data(session_id)
        await store.update_session_id(session_id, "Foo", "Bar")

        assert await store.remove_session_id(session_id) is True

        assert await backend.exists(_key(session_id)) == 0
        assert await store.get_session_data(session_id) == {}

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, store):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")

        assert await store.remove_session_id(session_id) is True
        assert await store.remove_session_id(session_id) is True

    @pytest.mark.asyncio
    async def test_remove_without_session_id_fails(self, store):
        assert await store.remove_session_id("") is False


class TestFlushOnClose:
    """Tests for the TTL-preserving write-back."""

    @pytest.mark.asyncio
    async def test_close_persists_update_and_keeps_ttl(self, store, backend):
        """Test that the flushed key keeps its remaining TTL."""
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"}, ttl=300)
        await store.update_session_id("abc", "Foo", "Bar")

        await store.close()

        assert json.loads(await backend.get(_key("abc")))["Foo"] == "Bar"
        assert 295 <= await backend.ttl(_key("abc")) <= 300

    @pytest.mark.asyncio
    async def test_flush_skips_keys_without_expiry(self, store, backend):
        await backend.set(_key("abc"), json.dumps({"UserID": 1, "UserLogin": "root"}))
        await store.update_session_id("abc", "Foo", "Bar")

        assert await store.flush_session("abc") is False
        assert "Foo" not in json.loads(await backend.get(_key("abc")))
        assert await backend.ttl(_key("abc")) == -1

    @pytest.mark.asyncio
    async def test_update_for_vanished_session_is_dropped(self, store, backend):
        await store.update_session_id("nobody", "Foo", "Bar")

        await store.close()

        assert await backend.exists(_key("nobody")) == 0

    @pytest.mark.asyncio
    async def test_flush_skips_key_evicted_after_read(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        await store.get_session_data("abc")
        await store.update_session_id("abc", "Foo", "Bar")
        await backend.delete(_key("abc"))

        assert await store.flush_session("abc") is False
        assert await backend.exists(_key("abc")) == 0

    @pytest.mark.asyncio
    async def test_one_failing_session_does_not_block_others(self, store, backend):
        await _put(backend, "good", {"UserID": 1, "UserLogin": "root"})
        await _put(backend, "bad", {"UserID": 2, "UserLogin": "admin"})
        await store.update_session_id("bad", "Unserializable", object())
        await store.update_session_id("good", "Foo", "Bar")

        await store.close()

        assert json.loads(await backend.get(_key("good")))["Foo"] == "Bar"

    @pytest.mark.asyncio
    async def test_flush_of_unencodable_value_returns_false(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        await store.update_session_id("abc", "Unserializable", object())

        assert await store.flush_session("abc") is False
        assert json.loads(await backend.get(_key("abc"))) == {"UserID": 1, "UserLogin": "root"}
        assert store.connector.connected is True

    @pytest.mark.asyncio
    async def test_close_runs_once(self, store, backend):
        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        await store.update_session_id("abc", "Foo", "Bar")
        await store.close()
        await backend.set(_key("abc"), json.dumps({"UserID": 1, "UserLogin": "root"}), ex=300)

        await store.close()

        assert "Foo" not in json.loads(await backend.get(_key("abc")))

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self, session_settings, client_factory, clock, backend):
        from session.connector import RedisConnector

        await _put(backend, "abc", {"UserID": 1, "UserLogin": "root"})
        connector = RedisConnector.from_settings(session_settings, client_factory=client_factory)

        async with RedisSessionStore(session_settings, connector=connector, clock=clock) as store:
            await store.update_session_id("abc", "Foo", "Bar")

        assert json.loads(await backend.get(_key("abc")))["Foo"] == "Bar"
        assert connector.connected is False


class TestEnumeration:
    """Tests for listing and reporting."""

    @pytest.mark.asyncio
    async def test_get_all_session_ids(self, store, backend):
        await _put(backend, "a", {"UserID": 1, "UserLogin": "root"})
        await _put(backend, "b", {"UserID": 2, "UserLogin": "admin"})
        await backend.set("unrelated", "x")

        assert sorted(await store.get_all_session_ids()) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_undecodable_key_is_skipped(self, store, backend):
        await _put(backend, "a", {"UserID": 1, "UserLogin": "root", "UserType": "User"})
        await backend.set(SESSION_KEY_PREFIX.encode() + b"\xff\xfe", b"x", ex=300)

        assert await store.get_all_session_ids() == ["a"]
        assert (await store.get_active_sessions("User")).total == 1
        assert await store.get_expired_session_ids() == ([], [])

    @pytest.mark.asyncio
    async def test_active_sessions_exclude_internal_source(self, store, backend):
        """Test that internal API sessions are not counted."""
        await _put(backend, "a", {"UserID": 1, "UserLogin": "root", "UserType": "User"})
        await _put(backend, "b", {"UserID": 1, "UserLogin": "root", "UserType": "User"})
        await _put(backend, "c", {
            "UserID": 2, "UserLogin": "api", "UserType": "User",
            "SessionSource": "GenericInterface",
        })

        stats = await store.get_active_sessions("User")

        assert stats == ActiveSessionStats(total=2, per_user={"root": 2})

    @pytest.mark.asyncio
    async def test_active_sessions_filter_by_user_type(self, store, backend):
        await _put(backend, "a", {"UserID": 1, "UserLogin": "root", "UserType": "User"})
        await _put(backend, "b", {"UserID": 7, "UserLogin": "jdoe", "UserType": "Customer"})

        stats = await store.get_active_sessions("Customer")

        assert stats.total == 1
        assert stats.per_user == {"jdoe": 1}

    @pytest.mark.asyncio
    async def test_active_sessions_skip_undecodable(self, store, backend):
        await _put(backend, "a", {"UserID": 1, "UserLogin": "root", "UserType": "User"})
        await backend.set(_key("broken"), b"garbage")

        assert (await store.get_active_sessions("User")).total == 1

    @pytest.mark.asyncio
    async def test_expired_session_ids(self, store, backend, clock):
        await _put(backend, "old", {
            "UserID": 1, "UserLogin": "root", "UserSessionStart": clock.now - 57601,
        })
        await _put(backend, "fresh", {
            "UserID": 1, "UserLogin": "root", "UserSessionStart": clock.now - 60,
        })
        await _put(backend, "nostart", {"UserID": 1, "UserLogin": "root"})

        expired, idle = await store.get_expired_session_ids()

        assert expired == ["old"]
        assert idle == []

    @pytest.mark.asyncio
    async def test_cleanup_flushes_database(self, store, backend):
        session_id = await store.create_session_id(UserID=1, UserLogin="root")
        await store.get_session_data(session_id)

        assert await store.cleanup() is True

        assert await store.get_all_session_ids() == []
        assert await store.get_session_data(session_id) == {}


class TestUnreachableBackend:
    """Tests for degradation when Redis cannot be reached."""

    @pytest.mark.asyncio
    async def test_operations_return_empty_results(self, offline_store):
        assert await offline_store.create_session_id(UserID=1, UserLogin="root") is None
        assert await offline_store.get_session_data("abc") == {}
        assert await offline_store.remove_session_id("abc") is False
        assert await offline_store.get_all_session_ids() == []
        assert await offline_store.get_active_sessions("User") == ActiveSessionStats()
        assert await offline_store.get_expired_session_ids() == ([], [])
        assert await offline_store.cleanup() is False
        assert await offline_store.health_check() is False

    @pytest.mark.asyncio
    async def test_check_session_id_fails_closed(self, offline_store):
        assert await offline_store.check_session_id("abc") is False

    @pytest.mark.asyncio
    async def test_close_does_not_raise(self, offline_store):
        await offline_store.update_session_id("abc", "Foo", "Bar")

        await offline_store.close()

    @pytest.mark.asyncio
    async def test_health_check_when_reachable(self, store):
        assert await store.health_check() is True
