"""Permission Gate - the enforcement point callers use.

Every check runs the same pipeline:
1. Fetch the Session Snapshot (absent, expired, or non-ACTIVE subject
   -> UNAUTHENTICATED)
2. Select applicable policies from the snapshot (never the store)
3. Match policies and combine decisions in the PolicyEngine
4. Log the decision to the audit log

Failures of the cache (or the store, for callers that refresh through the
gate) never fail open: they produce an UNAVAILABLE outcome with an
UNRESOLVED evaluation, distinct from an evaluated DENY.

require_* methods return an AuthorizationOutcome instead of raising, so
callers can tell UNAUTHENTICATED, FORBIDDEN and UNAVAILABLE apart without
exception-based branching. Boundaries that prefer exceptions call
outcome.raise_for_error().
"""

from __future__ import annotations

__all__ = [
    "AuthError",
    "AuthorizationOutcome",
    "ClientInfo",
    "PermissionGate",
    "PermissionRequest",
]

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from abac_gate.constants import APP_NAME, FIELD_RESOURCE_TYPE
from abac_gate.exceptions import (
    AuthorizationError,
    AuthorizationUnavailableError,
    ForbiddenError,
    PolicyResolutionFailure,
    UnauthenticatedError,
)
from abac_gate.pdp.decision import Decision, EvaluationResult
from abac_gate.pdp.engine import PolicyEngine
from abac_gate.pips.aggregator import applicable_policies
from abac_gate.session.manager import SessionManager
from abac_gate.session.models import SessionSnapshot
from abac_gate.telemetry.audit.decision_logger import DecisionEventLogger

_logger = logging.getLogger(f"{APP_NAME}.gate")


class AuthError(str, Enum):
    """Why a require_* call did not succeed."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    UNAVAILABLE = "UNAVAILABLE"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[AuthError, int] = {
    AuthError.UNAUTHENTICATED: 401,
    AuthError.FORBIDDEN: 403,
    AuthError.UNAVAILABLE: 503,
}


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """Request environment supplied by the transport."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class PermissionRequest:
    """One resource/action pair for batch checks."""

    resource_type: str
    action_type: str
    resource_attrs: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class AuthorizationOutcome:
    """Result of a require_* call.

    Attributes:
        error: None on success, otherwise why the request was refused.
        message: Caller-safe message (never contains policy internals).
        result: Evaluation result, when an evaluation (or fail-closed
            evaluation) happened.
        session: Snapshot the check ran against, if one was found.
        resource_type: Requested resource type.
        action_type: Requested action.
    """

    error: AuthError | None = None
    message: str = ""
    result: EvaluationResult | None = None
    session: SessionSnapshot | None = field(default=None, repr=False)
    resource_type: str | None = None
    action_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else self.error.status_code

    @property
    def reason(self) -> str | None:
        """Audit reason (for logs only; do not return to untrusted callers)."""
        return self.result.reason if self.result is not None else None

    def to_exception(self) -> AuthorizationError | None:
        """Convert a failed outcome into the matching exception."""
        if self.error is None:
            return None
        if self.error == AuthError.UNAUTHENTICATED:
            return UnauthenticatedError(self.message)
        if self.error == AuthError.UNAVAILABLE:
            return AuthorizationUnavailableError(self.message)
        return ForbiddenError(
            self.message,
            reason=self.reason,
            resource_type=self.resource_type,
            action_type=self.action_type,
            matching_policy_ids=list(self.result.matching_policy_ids) if self.result else None,
        )

    def raise_for_error(self) -> None:
        """Raise the matching AuthorizationError if the outcome is not ok."""
        error = self.to_exception()
        if error is not None:
            raise error


def _fold_field(field_id: str, extra: Mapping[str, Any] | None) -> dict[str, Any]:
    attrs = dict(extra or {})
    existing = attrs.get("field")
    field_attrs = dict(existing) if isinstance(existing, Mapping) else {}
    field_attrs["id"] = field_id
    attrs["field"] = field_attrs
    return attrs


class PermissionGate:
    """Checks whether a session may perform an action on a resource.

    Usage:
        gate = PermissionGate(session_manager, PolicyEngine())

        if gate.check_permission(session_id, "entries", "read", {"ownerId": owner}):
            ...

        outcome = gate.require_permission(session_id, "entries", "publish")
        if not outcome.ok:
            return error_response(outcome.status_code, outcome.message)
    """

    def __init__(
        self,
        session_manager: SessionManager,
        engine: PolicyEngine | None = None,
        decision_logger: DecisionEventLogger | None = None,
    ) -> None:
        """Initialize the gate.

        Args:
            session_manager: Source of Session Snapshots.
            engine: Policy engine. Defaults to one sharing the manager's clock.
            decision_logger: Optional audit logger, one event per check.
        """
        self._sessions = session_manager
        self._engine = engine or PolicyEngine(clock=session_manager.now)
        self._decision_logger = decision_logger

    @property
    def session_manager(self) -> SessionManager:
        return self._sessions

    # =========================================================================
    # Core pipeline
    # =========================================================================

    def _authorize(
        self,
        session_id: str | None,
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None,
        environment: ClientInfo | None,
        *,
        field_id: str | None = None,
    ) -> AuthorizationOutcome:
        environment = environment or ClientInfo()
        snapshot: SessionSnapshot | None = None

        try:
            snapshot = self._sessions.get_session(session_id) if session_id else None
        except PolicyResolutionFailure as e:
            _logger.error(
                {
                    "event": "authorization_unavailable",
                    "message": "Session snapshot could not be resolved; failing closed",
                    "failure_type": e.failure_type,
                    "resource_type": resource_type,
                    "action_type": action_type,
                }
            )
            result = EvaluationResult.unresolved(f"Authorization data unavailable ({e.failure_type})")
            outcome = AuthorizationOutcome(
                error=AuthError.UNAVAILABLE,
                message="Authorization service unavailable",
                result=result,
                resource_type=resource_type,
                action_type=action_type,
            )
            self._audit(outcome, session_id, resource_attrs, field_id, environment)
            return outcome

        if snapshot is None:
            outcome = self._unauthenticated("Authentication required", resource_type, action_type)
            self._audit(outcome, session_id, resource_attrs, field_id, environment)
            return outcome

        if not snapshot.user.is_active:
            outcome = self._unauthenticated("Account is not active", resource_type, action_type, snapshot)
            self._audit(outcome, session_id, resource_attrs, field_id, environment)
            return outcome

        result = self._engine.evaluate(
            snapshot.user.to_subject(),
            applicable_policies(snapshot.user, resource_type, action_type),
            resource_type,
            action_type,
            resource_attrs,
            ip_address=environment.ip_address,
            user_agent=environment.user_agent,
        )

        if result.allowed:
            outcome = AuthorizationOutcome(
                result=result,
                session=snapshot,
                resource_type=resource_type,
                action_type=action_type,
            )
        else:
            target = f"field {field_id}" if field_id is not None else resource_type
            outcome = AuthorizationOutcome(
                error=AuthError.FORBIDDEN,
                message=f"Insufficient permissions. Cannot {action_type} {target}",
                result=result,
                session=snapshot,
                resource_type=resource_type,
                action_type=action_type,
            )

        self._audit(outcome, session_id, resource_attrs, field_id, environment)
        return outcome

    @staticmethod
    def _unauthenticated(
        message: str,
        resource_type: str,
        action_type: str,
        snapshot: SessionSnapshot | None = None,
    ) -> AuthorizationOutcome:
        return AuthorizationOutcome(
            error=AuthError.UNAUTHENTICATED,
            message=message,
            result=EvaluationResult(
                decision=Decision.DENY,
                matching_policy_ids=(),
                reason=message,
                evaluation_time_ms=0.0,
            ),
            session=snapshot,
            resource_type=resource_type,
            action_type=action_type,
        )

    def _audit(
        self,
        outcome: AuthorizationOutcome,
        session_id: str | None,
        resource_attrs: dict[str, Any] | None,
        field_id: str | None,
        environment: ClientInfo,
    ) -> None:
        if self._decision_logger is None or outcome.result is None:
            return
        self._decision_logger.log(
            outcome.result,
            outcome="ok" if outcome.ok else outcome.error.value,
            resource_type=outcome.resource_type or "",
            action_type=outcome.action_type or "",
            session_id=session_id,
            subject_id=outcome.session.subject_id if outcome.session else None,
            resource_attrs=resource_attrs,
            field_id=field_id,
            ip_address=environment.ip_address,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def require_permission(
        self,
        session_id: str | None,
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> AuthorizationOutcome:
        """Authorize one action, returning a typed outcome.

        Args:
            session_id: Session id from the transport (None = no session).
            resource_type: Requested resource type.
            action_type: Requested action.
            resource_attrs: Caller-supplied resource attributes.
            environment: Client address and user agent.

        Returns:
            AuthorizationOutcome. outcome.ok is True only for ALLOW.
        """
        return self._authorize(session_id, resource_type, action_type, resource_attrs, environment)

    def check_permission(
        self,
        session_id: str | None,
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> bool:
        """True only if the session is valid and the decision is ALLOW."""
        return self.require_permission(session_id, resource_type, action_type, resource_attrs, environment).ok

    def evaluate(
        self,
        session_id: str | None,
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> EvaluationResult:
        """Audit-oriented evaluation: decision, matching ids, reason, timing, status.

        Always returns a result (DENY for missing sessions and unavailable
        data), never raises.
        """
        outcome = self.require_permission(session_id, resource_type, action_type, resource_attrs, environment)
        assert outcome.result is not None  # Every _authorize path attaches a result
        return outcome.result

    def require_field_permission(
        self,
        session_id: str | None,
        field_id: str,
        action_type: str,
        extra: Mapping[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> AuthorizationOutcome:
        """Authorize an action on one field.

        The field id is folded into the resource attributes as
        ``field.id`` and checked against the ``fields`` resource type.
        """
        return self._authorize(
            session_id,
            FIELD_RESOURCE_TYPE,
            action_type,
            _fold_field(field_id, extra),
            environment,
            field_id=field_id,
        )

    def has_field_permission(
        self,
        session_id: str | None,
        field_id: str,
        action_type: str,
        extra: Mapping[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> bool:
        return self.require_field_permission(session_id, field_id, action_type, extra, environment).ok

    def require_any_permission(
        self,
        session_id: str | None,
        resource_type: str,
        action_types: Sequence[str],
        resource_attrs: dict[str, Any] | None = None,
        environment: ClientInfo | None = None,
    ) -> AuthorizationOutcome:
        """Authorize if at least one of several actions is allowed.

        Stops at the first allowed action. UNAUTHENTICATED and UNAVAILABLE
        short-circuit, since no other action could succeed either.
        """
        last: AuthorizationOutcome | None = None
        for action_type in action_types:
            outcome = self._authorize(session_id, resource_type, action_type, resource_attrs, environment)
            if outcome.ok or outcome.error != AuthError.FORBIDDEN:
                return outcome
            last = outcome

        if last is None:
            return AuthorizationOutcome(
                error=AuthError.FORBIDDEN,
                message=f"Insufficient permissions. No actions requested on {resource_type}",
                resource_type=resource_type,
            )

        return AuthorizationOutcome(
            error=AuthError.FORBIDDEN,
            message=f"Insufficient permissions. Required one of: {', '.join(action_types)} on {resource_type}",
            result=last.result,
            session=last.session,
            resource_type=resource_type,
            action_type=last.action_type,
        )

    def check_permissions(
        self,
        session_id: str | None,
        requests: Sequence[PermissionRequest],
        environment: ClientInfo | None = None,
    ) -> list[bool]:
        """Check several resource/action pairs, in order."""
        return [
            self.check_permission(session_id, request.resource_type, request.action_type, request.resource_attrs, environment)
            for request in requests
        ]
