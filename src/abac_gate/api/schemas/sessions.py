"""Session API schemas."""

from __future__ import annotations

__all__ = [
    "CreateSessionRequest",
    "DestroySessionsResponse",
    "ExtendSessionResponse",
    "RefreshSessionsResponse",
    "SessionCreatedResponse",
    "SessionResponse",
]

from datetime import datetime

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Request to materialize a session for an already-verified subject."""

    subject_id: str = Field(min_length=1)


class SessionCreatedResponse(BaseModel):
    """Response for session creation."""

    session_id: str
    subject_id: str
    expires_at: datetime


class SessionResponse(BaseModel):
    """Session Snapshot summary.

    Policies are listed by id only; rule contents are not exposed. The
    session id is never echoed: it is the bearer credential for the gate.
    """

    subject_id: str
    subject_name: str
    subject_status: str
    state: str
    roles: list[str]
    policy_ids: list[str]
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    extension_count: int


class ExtendSessionResponse(BaseModel):
    """Response for explicit session extension."""

    extended: bool
    expires_at: datetime | None = None


class DestroySessionsResponse(BaseModel):
    """Response for session destruction (single or bulk)."""

    destroyed: int
    status: str


class RefreshSessionsResponse(BaseModel):
    """Response for bulk refresh of a subject's sessions."""

    refreshed: int
    status: str
