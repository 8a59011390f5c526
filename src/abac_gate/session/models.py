"""Session Snapshot model.

A Session Snapshot is a time-bounded materialization of a subject's roles
and policies, stored only in the session cache. The persistent store stays
the source of truth; a snapshot goes stale until it expires or is refreshed.

Lifecycle:
    CREATED -> ACTIVE -> EXPIRED
                      -> DESTROYED

CREATED and ACTIVE differ only in whether the snapshot was ever read.
EXPIRED is derived from expires_at. DESTROYED means the entry is gone.
"""

from __future__ import annotations

__all__ = [
    "SessionSnapshot",
    "SessionState",
]

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from abac_gate.pips.aggregator import SessionUser


class SessionState(str, Enum):
    """Session Snapshot lifecycle state."""

    CREATED = "created"
    ACTIVE = "active"
    EXPIRED = "expired"
    DESTROYED = "destroyed"


class SessionSnapshot(BaseModel):
    """Cached authorization snapshot for one session.

    Attributes:
        session_id: Cryptographically random session identifier.
        user: Subject with resolved roles and merged policies.
        created_at: Creation time (UTC).
        last_accessed_at: Last successful read (UTC).
        expires_at: Expiry time (UTC); reads after this return nothing.
        extension_count: Number of sliding extensions applied so far.
    """

    session_id: str
    user: SessionUser
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    extension_count: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def subject_id(self) -> str:
        return self.user.id

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def state(self, now: datetime) -> SessionState:
        """Lifecycle state at a given time (never DESTROYED; that is absence)."""
        if self.is_expired(now):
            return SessionState.EXPIRED
        if self.last_accessed_at == self.created_at and self.extension_count == 0:
            return SessionState.CREATED
        return SessionState.ACTIVE

    def remaining_seconds(self, now: datetime) -> int:
        """Whole seconds until expiry (0 once expired)."""
        return max(0, int((self.expires_at - now).total_seconds()))
