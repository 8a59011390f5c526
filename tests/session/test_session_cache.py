"""Tests for the session cache backends."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import redis

from abac_gate.config import CacheConfig
from abac_gate.exceptions import CacheUnavailableError, PolicyResolutionFailure
from abac_gate.session.cache import InMemorySessionCache, RedisSessionCache, create_session_cache


# ============================================================================
# In-Memory Backend
# ============================================================================


class TestInMemorySessionCache:
    """Tests for InMemorySessionCache TTL behavior."""

    def test_get_returns_value_within_ttl(self, cache, clock) -> None:
        # Arrange
        cache.set("session:a", "payload", 60)

        # Act
        clock.advance(60)

        # Assert
        assert cache.get("session:a") == "payload"

    def test_entry_gone_after_ttl(self, cache, clock) -> None:
        cache.set("session:a", "payload", 60)

        clock.advance(61)

        assert cache.get("session:a") is None
        assert cache.scan("session:") == []

    def test_set_overwrites_and_resets_ttl(self, cache, clock) -> None:
        cache.set("k", "v1", 10)
        clock.advance(8)
        cache.set("k", "v2", 10)
        clock.advance(8)

        assert cache.get("k") == "v2"

    def test_delete_reports_whether_present(self, cache) -> None:
        cache.set("k", "v", 10)

        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_scan_filters_by_prefix_and_drops_expired(self, cache, clock) -> None:
        # Arrange
        cache.set("session:a", "1", 100)
        cache.set("session:b", "2", 10)
        cache.set("other:c", "3", 100)

        # Act
        clock.advance(11)

        # Assert
        assert cache.scan("session:") == ["session:a"]

    def test_index_members_add_and_remove(self, cache) -> None:
        cache.index_add("subject_sessions:u1", "s1", 100)
        cache.index_add("subject_sessions:u1", "s2", 100)
        cache.index_remove("subject_sessions:u1", "s1")

        assert cache.index_members("subject_sessions:u1") == {"s2"}

    def test_index_removed_when_emptied(self, cache) -> None:
        cache.index_add("idx", "s1", 100)
        cache.index_remove("idx", "s1")
        cache.index_remove("idx", "s1")

        assert cache.index_members("idx") == set()

    def test_index_ttl_refreshed_on_add(self, cache, clock) -> None:
        """The index outlives its newest member, not its oldest."""
        # Arrange
        cache.index_add("idx", "s1", 100)
        clock.advance(90)
        cache.index_add("idx", "s2", 100)

        # Act
        clock.advance(50)

        # Assert
        assert cache.index_members("idx") == {"s1", "s2"}

    def test_index_expires(self, cache, clock) -> None:
        cache.index_add("idx", "s1", 100)
        clock.advance(101)

        assert cache.index_members("idx") == set()

    def test_expired_index_restarts_empty(self, cache, clock) -> None:
        cache.index_add("idx", "old", 10)
        clock.advance(11)
        cache.index_add("idx", "new", 10)

        assert cache.index_members("idx") == {"new"}

    def test_close_clears_everything(self, cache) -> None:
        cache.set("k", "v", 10)
        cache.index_add("idx", "s1", 10)

        cache.close()

        assert cache.get("k") is None
        assert cache.index_members("idx") == set()


# ============================================================================
# Redis Backend
# ============================================================================


@pytest.fixture
def redis_client() -> MagicMock:
    """Mock redis client standing in for a live server."""
    return MagicMock(spec=redis.Redis)


class TestRedisSessionCache:
    """Tests for RedisSessionCache command mapping and error wrapping."""

    def test_set_uses_setex(self, redis_client: MagicMock) -> None:
        RedisSessionCache(redis_client).set("session:a", "payload", 900)

        redis_client.setex.assert_called_once_with("session:a", 900, "payload")

    def test_get_and_delete(self, redis_client: MagicMock) -> None:
        # Arrange
        redis_client.get.return_value = "payload"
        redis_client.delete.return_value = 1
        cache = RedisSessionCache(redis_client)

        # Act / Assert
        assert cache.get("session:a") == "payload"
        assert cache.delete("session:a") is True

    def test_scan_matches_prefix(self, redis_client: MagicMock) -> None:
        redis_client.scan_iter.return_value = iter(["session:a", "session:b"])

        assert RedisSessionCache(redis_client).scan("session:") == ["session:a", "session:b"]
        redis_client.scan_iter.assert_called_once_with(match="session:*")

    def test_index_add_sets_member_and_ttl_atomically(self, redis_client: MagicMock) -> None:
        # Arrange
        pipe = MagicMock()
        redis_client.pipeline.return_value = pipe

        # Act
        RedisSessionCache(redis_client).index_add("idx", "s1", 900)

        # Assert
        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipe.sadd.assert_called_once_with("idx", "s1")
        pipe.expire.assert_called_once_with("idx", 900)
        pipe.execute.assert_called_once()

    def test_index_members(self, redis_client: MagicMock) -> None:
        redis_client.smembers.return_value = {"s1", "s2"}

        assert RedisSessionCache(redis_client).index_members("idx") == {"s1", "s2"}

    @pytest.mark.parametrize(
        ("operation", "args"),
        [
            ("get", ("k",)),
            ("set", ("k", "v", 10)),
            ("delete", ("k",)),
            ("index_members", ("idx",)),
            ("index_remove", ("idx", "s1")),
        ],
    )
    def test_redis_errors_become_cache_unavailable(
        self, redis_client: MagicMock, operation: str, args: tuple
    ) -> None:
        """Connection failures surface as a resolution failure, never a miss."""
        # Arrange
        for method in ("get", "setex", "delete", "smembers", "srem"):
            getattr(redis_client, method).side_effect = redis.ConnectionError("connection refused")
        cache = RedisSessionCache(redis_client)

        # Act / Assert
        with pytest.raises(CacheUnavailableError) as exc_info:
            getattr(cache, operation)(*args)
        assert isinstance(exc_info.value, PolicyResolutionFailure)
        assert exc_info.value.failure_type == "cache_unavailable"


class TestCreateSessionCache:
    """Tests for backend selection."""

    def test_memory_backend(self) -> None:
        assert isinstance(create_session_cache(CacheConfig()), InMemorySessionCache)

    def test_redis_backend(self) -> None:
        """Client creation is lazy, so no server is needed here."""
        cache = create_session_cache(CacheConfig(backend="redis", redis_url="redis://localhost:6390/1"))
        try:
            assert isinstance(cache, RedisSessionCache)
        finally:
            cache.close()
