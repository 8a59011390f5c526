"""Session API endpoints.

Creation, inspection, refresh and destruction of Session Snapshots.
Creation expects a subject id that the identity layer has already
verified; every route except /current requires the management token
(see security.py). Summaries never include session ids.

Routes mounted at: /api/sessions
"""

from __future__ import annotations

__all__ = ["router"]

from datetime import datetime

from fastapi import APIRouter

from abac_gate.api.deps import SessionDep, SessionManagerDep
from abac_gate.api.errors import APIError, ErrorCode
from abac_gate.api.schemas import (
    CreateSessionRequest,
    DestroySessionsResponse,
    ErrorResponse,
    ExtendSessionResponse,
    RefreshSessionsResponse,
    SessionCreatedResponse,
    SessionResponse,
)
from abac_gate.exceptions import SubjectNotFoundError
from abac_gate.session.models import SessionSnapshot

router = APIRouter(
    responses={
        401: {"model": ErrorResponse, "description": "Management token or session missing"},
        404:{"model": ErrorResponse, "description": "Session or subject not found"},
        503: {"model": ErrorResponse, "description": "Session cache or store unavailable"},
    }
)


def _to_response(snapshot: SessionSnapshot, now: datetime) -> SessionResponse:
    return SessionResponse(
        subject_id=snapshot.subject_id,
        subject_name=snapshot.user.name,
        subject_status=snapshot.user.status.value,
        state=snapshot.state(now).value,
        roles=[role.name for role in snapshot.user.roles],
        policy_ids=[policy.id for policy in snapshot.user.policies],
        created_at=snapshot.created_at,
        last_accessed_at=snapshot.last_accessed_at,
        expires_at=snapshot.expires_at,
        extension_count=snapshot.extension_count,
    )


def _not_found(session_id: str) -> APIError:
    return APIError(
        status_code=404,
        code=ErrorCode.SESSION_NOT_FOUND,
        message="Session not found or expired",
        details={"session_id": session_id},
    )


@router.post("", status_code=201, response_model=SessionCreatedResponse)
def create_session(body: CreateSessionRequest, manager: SessionManagerDep) -> SessionCreatedResponse:
    """Materialize a Session Snapshot for a verified subject."""
    try:
        session_id = manager.create_session(body.subject_id)
    except SubjectNotFoundError:
        raise APIError(
            status_code=404,
            code=ErrorCode.SUBJECT_NOT_FOUND,
            message="Subject not found",
            details={"subject_id": body.subject_id},
        )

    snapshot = manager.peek_session(session_id)
    if snapshot is None:
        raise _not_found(session_id)
    return SessionCreatedResponse(
        session_id=session_id,
        subject_id=body.subject_id,
        expires_at=snapshot.expires_at,
    )


@router.get("/current", response_model=SessionResponse)
def get_current_session(snapshot: SessionDep, manager: SessionManagerDep) -> SessionResponse:
    """The caller's own session (from X-Session-Id). Counts as an access."""
    return _to_response(snapshot, manager.now())


@router.get("/subjects/{subject_id}", response_model=list[SessionResponse])
def list_subject_sessions(subject_id: str, manager: SessionManagerDep) -> list[SessionResponse]:
    """Live sessions of a subject, oldest first."""
    now = manager.now()
    return [_to_response(snapshot, now) for snapshot in manager.list_user_sessions(subject_id)]


@router.delete("/subjects/{subject_id}", response_model=DestroySessionsResponse)
def destroy_subject_sessions(subject_id: str, manager: SessionManagerDep) -> DestroySessionsResponse:
    """Destroy every session of a subject (e.g. after a ban)."""
    count = manager.destroy_all_user_sessions(subject_id)
    return DestroySessionsResponse(destroyed=count, status="ok")


@router.post("/subjects/{subject_id}/refresh", response_model=RefreshSessionsResponse)
def refresh_subject_sessions(subject_id: str, manager: SessionManagerDep) -> RefreshSessionsResponse:
    """Reload roles and policies for every live session of a subject."""
    count = manager.refresh_all_user_sessions(subject_id)
    return RefreshSessionsResponse(refreshed=count, status="ok")


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, manager: SessionManagerDep) -> SessionResponse:
    """Inspect a session without extending it."""
    snapshot = manager.peek_session(session_id)
    if snapshot is None:
        raise _not_found(session_id)
    return _to_response(snapshot, manager.now())


@router.post("/{session_id}/refresh", response_model=SessionResponse)
def refresh_session(session_id: str, manager: SessionManagerDep) -> SessionResponse:
    """Reload a session's roles and policies from the store."""
    snapshot = manager.refresh_session_data(session_id)
    if snapshot is None:
        raise _not_found(session_id)
    return _to_response(snapshot, manager.now())


@router.post("/{session_id}/extend", response_model=ExtendSessionResponse)
def extend_session(session_id: str, manager: SessionManagerDep) -> ExtendSessionResponse:
    """Push a session's expiry forward by one lifetime, if allowed."""
    if not manager.extend_session(session_id):
        if manager.peek_session(session_id) is None:
            raise _not_found(session_id)
        return ExtendSessionResponse(extended=False)

    snapshot = manager.peek_session(session_id)
    return ExtendSessionResponse(
        extended=True,
        expires_at=snapshot.expires_at if snapshot else None,
    )


@router.delete("/{session_id}", response_model=DestroySessionsResponse)
def destroy_session(session_id: str, manager: SessionManagerDep) -> DestroySessionsResponse:
    """Destroy one session (logout)."""
    if not manager.destroy_session(session_id):
        raise _not_found(session_id)
    return DestroySessionsResponse(destroyed=1, status="ok")
