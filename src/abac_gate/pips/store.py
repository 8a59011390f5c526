"""Read repository over the persistent policy store.

The engine only reads from the store, and only when a Session Snapshot is
materialized (session creation or explicit refresh). Evaluation itself
never touches the store.

The store returns assignments unfiltered by time; expiry is applied by
the aggregator against an injected clock so that tests and callers agree
on "now".

Any SQLAlchemy failure is wrapped in StoreUnavailableError, which the
Permission Gate turns into a fail-closed UNAVAILABLE outcome.
"""

from __future__ import annotations

__all__ = [
    "PolicyAssignment",
    "PolicyStore",
    "RoleAssignment",
    "SqlPolicyStore",
    "SubjectRecord",
]

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from abac_gate.constants import APP_NAME
from abac_gate.context import SubjectStatus
from abac_gate.exceptions import StoreUnavailableError
from abac_gate.pdp.policy import Policy, PolicyRule
from abac_gate.pips.models import AbacPolicy, AbacPolicyRule, Role, RolePolicy, User, UserPolicy, UserRole

_logger = logging.getLogger(f"{APP_NAME}.store")


@dataclass(frozen=True, slots=True)
class SubjectRecord:
    """Identity fields the engine reads for a subject."""

    id: str
    name: str
    status: SubjectStatus
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class RoleAssignment:
    """A subject's role assignment."""

    role_id: str
    role_name: str
    assigned_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PolicyAssignment:
    """A policy assigned to a role or directly to a subject.

    Attributes:
        policy: The assigned policy with all of its rules.
        role_id: Granting role for role assignments, None for direct ones.
        assigned_by: Subject id of whoever made the assignment.
        assigned_at: Assignment time.
        expires_at: Optional expiry; expired assignments are ignored.
        reason: Optional audit note.
    """

    policy: Policy
    role_id: str | None = None
    assigned_by: str | None = None
    assigned_at: datetime | None = None
    expires_at: datetime | None = None
    reason: str | None = None


class PolicyStore(Protocol):
    """What the aggregator needs from the persistent store."""

    def get_subject(self, subject_id: str) -> SubjectRecord | None: ...

    def get_role_assignments(self, subject_id: str) -> list[RoleAssignment]: ...

    def get_role_policy_assignments(self, role_ids: Sequence[str]) -> list[PolicyAssignment]: ...

    def get_direct_policy_assignments(self, subject_id: str) -> list[PolicyAssignment]: ...


# =============================================================================
# Conversion
# =============================================================================


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_rule(row: AbacPolicyRule) -> PolicyRule:
    return PolicyRule(
        id=row.id,
        policy_id=row.policy_id,
        attribute_path=row.attribute_path,
        operator=row.operator,
        expected_value=row.expected_value or "",
        value_type=row.value_type,
        order=row.order or 0,
        is_active=bool(row.is_active),
        description=row.description,
    )


def _to_policy(row: AbacPolicy) -> Policy:
    return Policy(
        id=row.id,
        name=row.name,
        description=row.description,
        effect=row.effect,
        priority=row.priority,
        resource_type=row.resource_type,
        action_type=row.action_type,
        rule_connector=row.rule_connector,
        is_active=bool(row.is_active),
        rules=[_to_rule(rule) for rule in row.rules],
        created_by=row.created_by,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_assignments(links: Sequence[RolePolicy | UserPolicy]) -> list[PolicyAssignment]:
    assignments: list[PolicyAssignment] = []
    for link in links:
        try:
            policy = _to_policy(link.policy)
        except ValidationError as e:
            # A malformed policy row can never apply; skip it rather than fail the snapshot
            _logger.warning(
                {
                    "event": "policy_skipped",
                    "message": f"Skipping malformed policy {link.policy_id}",
                    "error_message": str(e),
                }
            )
            continue
        assignments.append(
            PolicyAssignment(
                policy=policy,
                role_id=getattr(link, "role_id", None),
                assigned_by=link.assigned_by,
                assigned_at=_aware(link.assigned_at),
                expires_at=_aware(link.expires_at),
                reason=link.reason,
            )
        )
    return assignments


def _to_status(value: str) -> SubjectStatus:
    try:
        return SubjectStatus(value)
    except ValueError:
        # Unknown lifecycle states are treated like any other non-ACTIVE state
        return SubjectStatus.INACTIVE


# =============================================================================
# SQLAlchemy Store
# =============================================================================


class SqlPolicyStore:
    """PolicyStore backed by SQLAlchemy.

    The engine is injected; its lifecycle (creation, dispose) belongs to the
    service bootstrap.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            _logger.error(
                {
                    "event": "store_unavailable",
                    "message": f"Policy store query failed: {operation}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
            raise StoreUnavailableError(f"Policy store unavailable during {operation}: {e}") from e
        finally:
            session.close()

    def get_subject(self, subject_id: str) -> SubjectRecord | None:
        with self._session("get_subject") as session:
            user = session.get(User, subject_id)
            if user is None:
                return None
            return SubjectRecord(
                id=user.id,
                name=user.name,
                status=_to_status(user.status),
                created_at=_aware(user.created_at),
            )

    def get_role_assignments(self, subject_id: str) -> list[RoleAssignment]:
        with self._session("get_role_assignments") as session:
            rows = (
                session.query(UserRole, Role)
                .join(Role, Role.id == UserRole.role_id)
                .filter(UserRole.user_id == subject_id)
                .order_by(UserRole.assigned_at, UserRole.id)
                .all()
            )
            return [
                RoleAssignment(
                    role_id=role.id,
                    role_name=role.name,
                    assigned_at=_aware(link.assigned_at),
                    expires_at=_aware(link.expires_at),
                )
                for link, role in rows
            ]

    def get_role_policy_assignments(self, role_ids: Sequence[str]) -> list[PolicyAssignment]:
        if not role_ids:
            return []
        with self._session("get_role_policy_assignments") as session:
            links = (
                session.query(RolePolicy)
                .join(AbacPolicy, AbacPolicy.id == RolePolicy.policy_id)
                .options(selectinload(RolePolicy.policy).selectinload(AbacPolicy.rules))
                .filter(RolePolicy.role_id.in_(list(role_ids)))
                .order_by(AbacPolicy.created_at, AbacPolicy.id)
                .all()
            )
            return _to_assignments(links)

    def get_direct_policy_assignments(self, subject_id: str) -> list[PolicyAssignment]:
        with self._session("get_direct_policy_assignments") as session:
            links = (
                session.query(UserPolicy)
                .join(AbacPolicy, AbacPolicy.id == UserPolicy.policy_id)
                .options(selectinload(UserPolicy.policy).selectinload(AbacPolicy.rules))
                .filter(UserPolicy.user_id == subject_id)
                .order_by(AbacPolicy.created_at, AbacPolicy.id)
                .all()
            )
            return _to_assignments(links)
