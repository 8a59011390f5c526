"""Custom exceptions for abac-gate.

Exceptions are organized into three categories:

Authorization Outcomes (surfaced to the caller):
    - AuthorizationError: Base with HTTP-style status code and error code
    - UnauthenticatedError: No valid session (401)
    - ForbiddenError: Session valid, decision is DENY (403)
    - AuthorizationUnavailableError: Decision inputs could not be resolved (503)

Resolution Failures (store/cache unavailable, always fail closed):
    - PolicyResolutionFailure: Base for unavailable collaborators
    - StoreUnavailableError: Persistent store query failed
    - CacheUnavailableError: TTL cache operation failed

Lookup and Setup Errors:
    - SubjectNotFoundError: Session requested for an unknown subject
    - ConfigurationError: Configured store settings unusable

The Permission Gate itself never raises these for control flow; it returns an
AuthorizationOutcome. The exception types exist for boundaries that do want
to raise (HTTP layer, CLI) via AuthorizationOutcome.raise_for_error().

Usage:
    from abac_gate.exceptions import ForbiddenError, StoreUnavailableError
"""

from __future__ import annotations

__all__ = [
    "AuthorizationError",
    "AuthorizationUnavailableError",
    "CacheUnavailableError",
    "ConfigurationError",
    "ForbiddenError",
    "PolicyResolutionFailure",
    "StoreUnavailableError",
    "SubjectNotFoundError",
    "UnauthenticatedError",
]

from typing import Any


# =============================================================================
# Authorization Outcomes
# =============================================================================


class AuthorizationError(Exception):
    """Base exception for authorization outcomes surfaced to callers.

    Attributes:
        status_code: HTTP-style status code for transport layers.
        code: Machine-readable error code.
        message: Human-readable message safe to show untrusted callers.
    """

    status_code: int = 500
    code: str = "AUTHORIZATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_error_data(self) -> dict[str, Any]:
        """Convert to a JSON-serializable error body."""
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return self.message


class UnauthenticatedError(AuthorizationError):
    """No session, an expired session, or a session of a non-active subject.

    Never retried by the engine; the caller must establish a new session.
    """

    status_code = 401
    code = "UNAUTHENTICATED"


class ForbiddenError(AuthorizationError):
    """Session is valid but the policy decision is DENY.

    The audit reason is kept on the exception for logging. It is not part of
    to_error_data() so policy internals do not leak to untrusted callers.

    Attributes:
        reason: Audit-oriented explanation from the decision combinator.
        resource_type: Resource type that was requested.
        action_type: Action that was requested.
        matching_policy_ids: Policies that determined the outcome.
    """

    status_code = 403
    code = "FORBIDDEN"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
        matching_policy_ids: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.resource_type = resource_type
        self.action_type = action_type
        self.matching_policy_ids = matching_policy_ids or []

    def to_error_data(self) -> dict[str, Any]:
        data = super().to_error_data()
        if self.resource_type is not None:
            data["resource"] = self.resource_type
        if self.action_type is not None:
            data["action"] = self.action_type
        return data

    def __repr__(self) -> str:
        parts = [f"ForbiddenError({self.message!r}"]
        if self.resource_type is not None:
            parts.append(f", resource_type={self.resource_type!r}")
        if self.action_type is not None:
            parts.append(f", action_type={self.action_type!r}")
        if self.matching_policy_ids:
            parts.append(f", matching_policy_ids={self.matching_policy_ids!r}")
        parts.append(")")
        return "".join(parts)


class AuthorizationUnavailableError(AuthorizationError):
    """Store or cache could not be reached; the request was failed closed.

    Distinct from ForbiddenError: nothing was evaluated.
    """

    status_code = 503
    code = "UNAVAILABLE"


# =============================================================================
# Resolution Failures
# =============================================================================


class PolicyResolutionFailure(Exception):
    """Base for failures that prevent resolving applicable policies.

    Always handled by failing closed (DENY). Never allowed to fail open.
    """

    failure_type: str = "resolution_failure"


class StoreUnavailableError(PolicyResolutionFailure):
    """The persistent store could not be queried."""

    failure_type = "store_unavailable"


class CacheUnavailableError(PolicyResolutionFailure):
    """The TTL cache could not be read or written."""

    failure_type = "cache_unavailable"


# =============================================================================
# Lookup and Setup Errors
# =============================================================================


class SubjectNotFoundError(LookupError):
    """No subject with the given id exists in the persistent store."""

    def __init__(self, subject_id: str) -> None:
        super().__init__(f"Subject not found: {subject_id}")
        self.subject_id = subject_id


class ConfigurationError(Exception):
    """Configuration is invalid or incomplete.

    Raised when:
    - store.database_url is malformed or names an unavailable dialect
    """
