"""Shared dependencies for API routes.

FastAPI convention: deps.py contains reusable request dependencies.
All route files import dependencies from here rather than defining their
own helper functions.

Usage with Annotated (recommended):
    from abac_gate.api.deps import GateDep, SessionIdDep

    @router.get("/entries/{entry_id}")
    async def read_entry(
        entry_id: str,
        _: Annotated[SessionSnapshot, Depends(permission_required("entries", "read"))],
    ) -> EntryResponse:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_client_info",
    "get_gate",
    "get_service",
    "get_session_id",
    "get_session_manager",
    "outcome_to_api_error",
    "permission_required",
    "require_session",
    # Type aliases for Annotated pattern
    "ClientInfoDep",
    "GateDep",
    "ServiceDep",
    "SessionDep",
    "SessionIdDep",
    "SessionManagerDep",
]

from typing import Annotated, Any, Callable

from fastapi import Depends, Header, HTTPException, Request

from abac_gate.api.errors import APIError, ErrorCode
from abac_gate.bootstrap import AbacService
from abac_gate.exceptions import PolicyResolutionFailure
from abac_gate.pep.gate import AuthError, AuthorizationOutcome, ClientInfo, PermissionGate
from abac_gate.session.manager import SessionManager
from abac_gate.session.models import SessionSnapshot

SESSION_HEADER = "X-Session-Id"


# =============================================================================
# Factory for State Getters
# =============================================================================


def _create_state_getter(
    attr_name: str,
    type_hint: str,
    error_detail: str,
) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "service").
        type_hint: Type name for the generated docstring.
        error_detail: Error message for HTTPException.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise HTTPException(status_code=503, detail=error_detail)
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises HTTPException 503 if not available."
    return getter


# =============================================================================
# Dependency Functions
# =============================================================================

get_service: Callable[[Request], AbacService] = _create_state_getter(
    "service",
    "AbacService",
    "Authorization service not available.",
)


def get_gate(service: Annotated[AbacService, Depends(get_service)]) -> PermissionGate:
    """Get the Permission Gate from the running service."""
    return service.gate


def get_session_manager(service: Annotated[AbacService, Depends(get_service)]) -> SessionManager:
    """Get the Session Snapshot Manager from the running service."""
    return service.session_manager


def get_client_info(request: Request) -> ClientInfo:
    """Build the request environment (client address and user agent)."""
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_session_id(x_session_id: Annotated[str | None, Header(alias=SESSION_HEADER)] = None) -> str | None:
    """Read the session id from the X-Session-Id header (None if absent)."""
    return x_session_id or None


def outcome_to_api_error(outcome: AuthorizationOutcome) -> APIError:
    """Convert a failed gate outcome into a structured APIError.

    Forbidden responses carry only the caller-safe message. The detailed
    reason and matching policy ids stay in the decision audit log.
    """
    if outcome.error == AuthError.UNAUTHENTICATED:
        return APIError(
            status_code=401,
            code=ErrorCode.AUTH_REQUIRED,
            message=outcome.message,
            headers={"WWW-Authenticate": SESSION_HEADER},
        )
    if outcome.error == AuthError.UNAVAILABLE:
        return APIError(
            status_code=503,
            code=ErrorCode.AUTH_UNAVAILABLE,
            message=outcome.message,
        )
    return APIError(
        status_code=403,
        code=ErrorCode.AUTH_FORBIDDEN,
        message=outcome.message,
    )


def require_session(
    session_id: Annotated[str | None, Depends(get_session_id)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionSnapshot:
    """Resolve the caller's Session Snapshot.

    Raises:
        APIError: 401 if the session is missing, expired or inactive;
            503 if the session cache is unavailable.
    """
    if session_id is None:
        raise APIError(
            status_code=401,
            code=ErrorCode.AUTH_REQUIRED,
            message="Authentication required",
            headers={"WWW-Authenticate": SESSION_HEADER},
        )

    try:
        snapshot = manager.get_session(session_id)
    except PolicyResolutionFailure:
        raise APIError(
            status_code=503,
            code=ErrorCode.AUTH_UNAVAILABLE,
            message="Authorization service unavailable",
        )

    if snapshot is None:
        raise APIError(
            status_code=401,
            code=ErrorCode.AUTH_REQUIRED,
            message="Authentication required",
            headers={"WWW-Authenticate": SESSION_HEADER},
        )
    if not snapshot.user.is_active:
        raise APIError(
            status_code=401,
            code=ErrorCode.AUTH_REQUIRED,
            message="Account is not active",
        )
    return snapshot


def permission_required(
    resource_type: str,
    action_type: str,
) -> Callable[..., SessionSnapshot]:
    """Create a dependency that enforces one resource/action permission.

    Path parameters are passed to the gate as resource attributes, so a
    route like ``/entries/{id}`` can be matched by rules on ``resource.id``.

    Args:
        resource_type: Resource type to check.
        action_type: Action to check.

    Returns:
        Dependency returning the caller's snapshot on ALLOW.
    """

    def dependency(
        request: Request,
        session_id: Annotated[str | None, Depends(get_session_id)],
        gate: Annotated[PermissionGate, Depends(get_gate)],
        client: Annotated[ClientInfo, Depends(get_client_info)],
    ) -> SessionSnapshot:
        resource_attrs = dict(request.path_params) or None
        outcome = gate.require_permission(session_id, resource_type, action_type, resource_attrs, client)
        if not outcome.ok:
            raise outcome_to_api_error(outcome)
        assert outcome.session is not None
        return outcome.session

    dependency.__name__ = f"require_{action_type}_{resource_type}"
    return dependency


# =============================================================================
# Type Aliases for Annotated Pattern
# =============================================================================

ServiceDep = Annotated[AbacService, Depends(get_service)]
GateDep = Annotated[PermissionGate, Depends(get_gate)]
SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
ClientInfoDep = Annotated[ClientInfo, Depends(get_client_info)]
SessionIdDep = Annotated[str | None, Depends(get_session_id)]
SessionDep = Annotated[SessionSnapshot, Depends(require_session)]
