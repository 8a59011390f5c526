"""Session Snapshot Manager.

Owns every write to the session cache: creation, access extension,
explicit refresh and destruction. Evaluation only ever reads snapshots.

Cache layout (prefixes configurable):
    session:<session_id>            -> SessionSnapshot JSON, TTL = remaining lifetime
    subject_sessions:<subject_id>   -> set of that subject's session ids

Staleness: mutations in the persistent store do not reach live snapshots.
A subject keeps operating under its snapshot until the snapshot expires or
refresh_session_data / refresh_all_user_sessions is called.

Expiry is lazy: an expired snapshot is deleted when it is next read.
Concurrent extensions of the same session are last-write-wins.
"""

from __future__ import annotations

__all__ = [
    "SessionManager",
]

import logging
import math
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from abac_gate.config import SessionConfig
from abac_gate.constants import APP_NAME, SESSION_ID_BYTES, SESSION_KEY_PREFIX, SUBJECT_INDEX_PREFIX
from abac_gate.exceptions import SubjectNotFoundError
from abac_gate.pips.aggregator import load_session_user
from abac_gate.pips.store import PolicyStore
from abac_gate.session.cache import SessionCache
from abac_gate.session.models import SessionSnapshot

_logger = logging.getLogger(f"{APP_NAME}.session")


class SessionManager:
    """Create, read, extend, refresh and destroy Session Snapshots.

    Store and cache are injected; their lifecycle belongs to the caller
    (see bootstrap.build_service).

    Usage:
        manager = SessionManager(store, cache, SessionConfig(ttl_seconds=900))
        session_id = manager.create_session(subject_id)
        snapshot = manager.get_session(session_id)  # None once expired
        manager.refresh_session_data(session_id)    # after a permission change
        manager.destroy_all_user_sessions(subject_id)
    """

    def __init__(
        self,
        store: PolicyStore,
        cache: SessionCache,
        config: SessionConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        key_prefix: str = SESSION_KEY_PREFIX,
        index_prefix: str = SUBJECT_INDEX_PREFIX,
    ) -> None:
        """Initialize the session manager.

        Args:
            store: Persistent policy store (read-only use).
            cache: TTL cache holding the snapshots.
            config: Lifetime and extension settings.
            clock: Time source. Defaults to UTC now.
            key_prefix: Prefix for snapshot keys.
            index_prefix: Prefix for subject index keys.
        """
        self._store = store
        self._cache = cache
        self._config = config or SessionConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._key_prefix = key_prefix
        self._index_prefix = index_prefix

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def store(self) -> PolicyStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Cache helpers
    # =========================================================================

    def _session_key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    def _index_key(self, subject_id: str) -> str:
        return f"{self._index_prefix}{subject_id}"

    @property
    def _ttl(self) -> timedelta:
        return timedelta(seconds=self._config.ttl_seconds)

    def _write(self, snapshot: SessionSnapshot, now: datetime) -> None:
        # Cache TTL tracks the snapshot's own expiry so both vanish together
        ttl_seconds = max(1, math.ceil((snapshot.expires_at - now).total_seconds()))
        self._cache.set(self._session_key(snapshot.session_id), snapshot.model_dump_json(), ttl_seconds)
        # The index must outlive every session it lists, so it always gets the full lifetime
        self._cache.index_add(self._index_key(snapshot.subject_id), snapshot.session_id, self._config.ttl_seconds)

    def _parse(self, session_id: str, raw: str) -> SessionSnapshot | None:
        try:
            return SessionSnapshot.model_validate_json(raw)
        except ValidationError as e:
            _logger.warning(
                {
                    "event": "session_corrupt",
                    "message": "Discarding unreadable session snapshot",
                    "session_id": session_id,
                    "error_message": str(e),
                }
            )
            return None

    def _read(self, session_id: str) -> SessionSnapshot | None:
        raw = self._cache.get(self._session_key(session_id))
        if raw is None:
            return None
        snapshot = self._parse(session_id, raw)
        if snapshot is None:
            self._cache.delete(self._session_key(session_id))
        return snapshot

    def _remove(self, session_id: str, subject_id: str | None) -> bool:
        deleted = self._cache.delete(self._session_key(session_id))
        if subject_id is not None:
            self._cache.index_remove(self._index_key(subject_id), session_id)
        return deleted

    def _read_live(self, session_id: str, now: datetime) -> SessionSnapshot | None:
        """Read a snapshot, deleting it if it has expired."""
        snapshot = self._read(session_id)
        if snapshot is None:
            return None
        if snapshot.is_expired(now):
            self._remove(session_id, snapshot.subject_id)
            _logger.info(
                {
                    "event": "session_expired",
                    "message": "Session expired",
                    "session_id": session_id,
                    "subject_id": snapshot.subject_id,
                }
            )
            return None
        return snapshot

    def _can_extend(self, snapshot: SessionSnapshot) -> bool:
        cap = self._config.max_extensions
        return cap is None or snapshot.extension_count < cap

    def _extend(self, snapshot: SessionSnapshot, now: datetime) -> SessionSnapshot:
        if self._can_extend(snapshot):
            update = {
                "last_accessed_at": now,
                "expires_at": now + self._ttl,
                "extension_count": snapshot.extension_count + 1,
            }
        else:
            update = {"last_accessed_at": now}
        extended = snapshot.model_copy(update=update)
        self._write(extended, now)
        return extended

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_session(self, subject_id: str) -> str:
        """Materialize a snapshot for a subject and store it.

        Args:
            subject_id: Verified subject id.

        Returns:
            New session id (cryptographically random).

        Raises:
            SubjectNotFoundError: If the subject does not exist.
            StoreUnavailableError: If the store cannot be queried.
            CacheUnavailableError: If the snapshot cannot be written.
        """
        now = self.now()
        user = load_session_user(self._store, subject_id, now)
        if user is None:
            raise SubjectNotFoundError(subject_id)

        session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
        snapshot = SessionSnapshot(
            session_id=session_id,
            user=user,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + self._ttl,
        )
        self._write(snapshot, now)

        _logger.info(
            {
                "event": "session_created",
                "message": f"Session created for subject {subject_id}",
                "session_id": session_id,
                "subject_id": subject_id,
                "policy_count": len(user.policies),
                "role_count": len(user.roles),
            }
        )
        return session_id

    def get_session(self, session_id: str) -> SessionSnapshot | None:
        """Read a snapshot, applying lazy expiry and sliding extension.

        Args:
            session_id: Session to read.

        Returns:
            The (possibly extended) snapshot, or None if absent or expired.

        Raises:
            CacheUnavailableError: If the cache cannot be read.
        """
        now = self.now()
        snapshot = self._read_live(session_id, now)
        if snapshot is None or not self._config.extend_on_access:
            return snapshot
        return self._extend(snapshot, now)

    def peek_session(self, session_id: str) -> SessionSnapshot | None:
        """Read a snapshot without touching its access time or expiry.

        Used by management surfaces. Expired snapshots are still removed.
        """
        return self._read_live(session_id, self.now())

    def extend_session(self, session_id: str) -> bool:
        """Explicitly push a session's expiry forward by one lifetime.

        Returns:
            True if extended. False if the session is absent, expired, or
            has used up its extensions.
        """
        now = self.now()
        snapshot = self._read_live(session_id, now)
        if snapshot is None or not self._can_extend(snapshot):
            return False
        self._extend(snapshot, now)
        return True

    def refresh_session_data(self, session_id: str) -> SessionSnapshot | None:
        """Re-materialize a snapshot from the store, keeping its identity.

        Session id, creation time and expiry are preserved; roles and
        policies are reloaded. If the subject no longer exists the session
        is destroyed.

        Returns:
            The refreshed snapshot, or None if the session is gone.

        Raises:
            StoreUnavailableError: If the store cannot be queried.
            CacheUnavailableError: If the cache cannot be read or written.
        """
        now = self.now()
        snapshot = self._read_live(session_id, now)
        if snapshot is None:
            return None

        user = load_session_user(self._store, snapshot.subject_id, now)
        if user is None:
            self._remove(session_id, snapshot.subject_id)
            _logger.warning(
                {
                    "event": "session_subject_gone",
                    "message": "Subject no longer exists; session destroyed",
                    "session_id": session_id,
                    "subject_id": snapshot.subject_id,
                }
            )
            return None

        refreshed = snapshot.model_copy(update={"user": user, "last_accessed_at": now})
        self._write(refreshed, now)

        _logger.info(
            {
                "event": "session_refreshed",
                "message": "Session data refreshed from store",
                "session_id": session_id,
                "subject_id": snapshot.subject_id,
                "policy_count": len(user.policies),
            }
        )
        return refreshed

    def destroy_session(self, session_id: str) -> bool:
        """Delete one session.

        An unreadable entry still counts as a session and is deleted.

        Returns:
            True if a cache entry was deleted.
        """
        raw = self._cache.get(self._session_key(session_id))
        if raw is None:
            return False
        snapshot = self._parse(session_id, raw)
        deleted = self._remove(session_id, snapshot.subject_id if snapshot else None)
        if deleted:
            _logger.info({"event": "session_destroyed", "message": "Session destroyed", "session_id": session_id})
        return deleted

    def destroy_all_user_sessions(self, subject_id: str) -> int:
        """Delete every session of a subject via the subject index.

        Returns:
            Number of snapshots deleted.
        """
        count = 0
        for session_id in self._cache.index_members(self._index_key(subject_id)):
            if self._remove(session_id, subject_id):
                count += 1

        _logger.info(
            {
                "event": "sessions_destroyed",
                "message": f"Destroyed {count} session(s) for subject {subject_id}",
                "subject_id": subject_id,
                "count": count,
            }
        )
        return count

    def list_user_sessions(self, subject_id: str) -> list[SessionSnapshot]:
        """Live sessions of a subject, oldest first. Does not extend them."""
        now = self.now()
        sessions: list[SessionSnapshot] = []
        for session_id in self._cache.index_members(self._index_key(subject_id)):
            snapshot = self._read_live(session_id, now)
            if snapshot is None:
                # Entry already evicted by the cache; drop the dangling id
                self._cache.index_remove(self._index_key(subject_id), session_id)
                continue
            sessions.append(snapshot)
        return sorted(sessions, key=lambda snapshot: snapshot.created_at)

    def refresh_all_user_sessions(self, subject_id: str) -> int:
        """Refresh every live session of a subject from the store.

        Returns:
            Number of sessions refreshed.
        """
        count = 0
        for session_id in self._cache.index_members(self._index_key(subject_id)):
            if self.refresh_session_data(session_id) is not None:
                count += 1
        return count

    def all_session_ids(self) -> list[str]:
        """Ids of every session currently in the cache (full key scan)."""
        prefix_length = len(self._key_prefix)
        return sorted(key[prefix_length:] for key in self._cache.scan(self._key_prefix))
