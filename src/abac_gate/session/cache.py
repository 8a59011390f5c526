"""TTL cache backends for Session Snapshots.

Two kinds of entries live in the cache:
- Snapshot entries: key -> serialized Session Snapshot, with a TTL
- Index entries: key -> set of session ids for one subject, with a TTL
  refreshed on every add (so the index outlives its newest session)

Backends:
- InMemorySessionCache: dicts guarded by a lock, single process only,
  data lost on restart. Suitable for tests and single-instance deployments.
- RedisSessionCache: shared across processes.

Backend failures raise CacheUnavailableError so the Permission Gate can
fail closed with an explicit UNAVAILABLE outcome.
"""

from __future__ import annotations

__all__ = [
    "InMemorySessionCache",
    "RedisSessionCache",
    "SessionCache",
    "create_session_cache",
]

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Protocol

import redis

from abac_gate.constants import APP_NAME
from abac_gate.exceptions import CacheUnavailableError

if TYPE_CHECKING:
    from abac_gate.config import CacheConfig

_logger = logging.getLogger(f"{APP_NAME}.cache")


class SessionCache(Protocol):
    """Operations the Session Snapshot Manager needs from a TTL cache."""

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def get(self, key: str) -> str | None: ...

    def delete(self, key: str) -> bool: ...

    def scan(self, prefix: str) -> list[str]: ...

    def index_add(self, key: str, member: str, ttl_seconds: int) -> None: ...

    def index_remove(self, key: str, member: str) -> None: ...

    def index_members(self, key: str) -> set[str]: ...

    def close(self) -> None: ...


# =============================================================================
# In-Memory Backend
# =============================================================================


class InMemorySessionCache:
    """In-memory TTL cache using Python dicts.

    Expired entries are dropped lazily when touched; there is no sweeper.

    Args:
        clock: Time source for TTL bookkeeping. Defaults to UTC now.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._indexes: dict[str, tuple[set[str], datetime]] = {}
        self._lock = threading.Lock()

    def _expiry(self, ttl_seconds: int) -> datetime:
        return self._clock() + timedelta(seconds=ttl_seconds)

    def _is_expired(self, expires_at: datetime) -> bool:
        return self._clock() > expires_at

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._expiry(ttl_seconds))

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._is_expired(expires_at):
                del self._entries[key]
                return None
            return value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def scan(self, prefix: str) -> list[str]:
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if self._is_expired(expires_at)]
            for key in expired:
                del self._entries[key]
            return [key for key in self._entries if key.startswith(prefix)]

    def index_add(self, key: str, member: str, ttl_seconds: int) -> None:
        with self._lock:
            members, expires_at = self._indexes.get(key, (set(), self._clock()))
            if self._is_expired(expires_at):
                members = set()
            members.add(member)
            self._indexes[key] = (members, self._expiry(ttl_seconds))

    def index_remove(self, key: str, member: str) -> None:
        with self._lock:
            entry = self._indexes.get(key)
            if entry is None:
                return
            members, _ = entry
            members.discard(member)
            if not members:
                del self._indexes[key]

    def index_members(self, key: str) -> set[str]:
        with self._lock:
            entry = self._indexes.get(key)
            if entry is None:
                return set()
            members, expires_at = entry
            if self._is_expired(expires_at):
                del self._indexes[key]
                return set()
            return set(members)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
            self._indexes.clear()


# =============================================================================
# Redis Backend
# =============================================================================


class RedisSessionCache:
    """Redis-backed TTL cache.

    Snapshot entries are plain strings written with SETEX; subject indexes
    are Redis sets whose TTL is reset on every add.

    Args:
        client: Connected redis client (decode_responses=True).
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionCache":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as e:
            _logger.error(
                {
                    "event": "cache_unavailable",
                    "message": f"Session cache operation failed: {operation}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
            raise CacheUnavailableError(f"Session cache unavailable during {operation}: {e}") from e

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._guard("set"):
            self._client.setex(key, ttl_seconds, value)

    def get(self, key: str) -> str | None:
        with self._guard("get"):
            return self._client.get(key)

    def delete(self, key: str) -> bool:
        with self._guard("delete"):
            return bool(self._client.delete(key))

    def scan(self, prefix: str) -> list[str]:
        with self._guard("scan"):
            return list(self._client.scan_iter(match=f"{prefix}*"))

    def index_add(self, key: str, member: str, ttl_seconds: int) -> None:
        with self._guard("index_add"):
            pipe = self._client.pipeline(transaction=True)
            pipe.sadd(key, member)
            pipe.expire(key, ttl_seconds)
            pipe.execute()

    def index_remove(self, key: str, member: str) -> None:
        with self._guard("index_remove"):
            self._client.srem(key, member)

    def index_members(self, key: str) -> set[str]:
        with self._guard("index_members"):
            return set(self._client.smembers(key))

    def close(self) -> None:
        self._client.close()


def create_session_cache(
    config: "CacheConfig",
    clock: Callable[[], datetime] | None = None,
) -> InMemorySessionCache | RedisSessionCache:
    """Create the cache backend named in config.

    Args:
        config: Cache configuration.
        clock: Time source for the in-memory backend.

    Returns:
        A SessionCache implementation.
    """
    if config.backend == "redis":
        _logger.info({"event": "cache_backend", "message": "Using Redis session cache", "backend": "redis"})
        return RedisSessionCache.from_url(config.redis_url)
    return InMemorySessionCache(clock=clock)
