"""Policy aggregation - which policies apply to a subject.

Two stages:

1. Materialization (load_session_user): read the subject, its roles and
   every policy reachable through an unexpired role assignment or an
   unexpired direct assignment. Role-to-policy assignments honor their own
   expiry too. Policies are deduplicated by id (role-inherited first, so a
   policy granted both ways is tagged ROLE), inactive policies and inactive
   rules are dropped, and the result is ordered by creation time. This is
   what the Session Snapshot embeds.

2. Selection (applicable_policies): filter the materialized policies to a
   resource/action pair and order them by descending priority. The sort is
   stable, so equal priorities keep creation order.

Subjects that are not ACTIVE materialize with no policies and select
nothing: fail closed, not an error.
"""

from __future__ import annotations

__all__ = [
    "RoleGrant",
    "SessionUser",
    "applicable_policies",
    "load_session_user",
]

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from abac_gate.constants import APP_NAME
from abac_gate.context import Subject, SubjectStatus
from abac_gate.pdp.policy import Policy, PolicySource
from abac_gate.pips.store import PolicyAssignment, PolicyStore

_logger = logging.getLogger(f"{APP_NAME}.aggregator")


class RoleGrant(BaseModel):
    """A role the subject currently holds."""

    id: str
    name: str
    expires_at: datetime | None = None

    model_config = ConfigDict(frozen=True)


class SessionUser(BaseModel):
    """Subject as embedded in a Session Snapshot.

    Attributes:
        id: Subject id.
        name: Display name.
        status: Lifecycle status at materialization time.
        created_at: Account creation time.
        roles: Unexpired role assignments.
        policies: Deduplicated, active, rule-inlined policies.
    """

    id: str
    name: str = ""
    status: SubjectStatus = SubjectStatus.ACTIVE
    created_at: datetime | None = None
    roles: list[RoleGrant] = Field(default_factory=list)
    policies: list[Policy] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == SubjectStatus.ACTIVE

    def to_subject(self) -> Subject:
        """Build the evaluation-context subject."""
        return Subject(
            id=self.id,
            roles=tuple(role.name for role in self.roles),
            status=self.status,
            created_at=self.created_at,
        )


def _unexpired(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is None or expires_at > now


def _materialize(assignment: PolicyAssignment, source: PolicySource) -> Policy:
    policy = assignment.policy
    return policy.model_copy(
        update={
            "rules": [rule for rule in policy.rules if rule.is_active],
            "source": source,
            "role_id": assignment.role_id if source == PolicySource.ROLE else None,
        }
    )


def _creation_key(policy: Policy) -> tuple[bool, datetime | None]:
    # Policies without a creation time sort after those with one
    return (policy.created_at is None, policy.created_at)


def load_session_user(store: PolicyStore, subject_id: str, now: datetime) -> SessionUser | None:
    """Materialize a subject with its roles and merged policy set.

    Args:
        store: Persistent policy store.
        subject_id: Subject to load.
        now: Reference time for assignment expiry (timezone-aware).

    Returns:
        SessionUser, or None if the subject does not exist.

    Raises:
        StoreUnavailableError: If the store cannot be queried.
    """
    record = store.get_subject(subject_id)
    if record is None:
        return None

    roles = [
        RoleGrant(id=assignment.role_id, name=assignment.role_name, expires_at=assignment.expires_at)
        for assignment in store.get_role_assignments(subject_id)
        if _unexpired(assignment.expires_at, now)
    ]

    if record.status != SubjectStatus.ACTIVE:
        _logger.info(
            {
                "event": "subject_not_active",
                "message": f"Subject {subject_id} is {record.status.value}; no policies materialized",
                "subject_id": subject_id,
            }
        )
        return SessionUser(
            id=record.id,
            name=record.name,
            status=record.status,
            created_at=record.created_at,
            roles=roles,
        )

    sources = [
        (assignment, PolicySource.ROLE)
        for assignment in store.get_role_policy_assignments([role.id for role in roles])
    ]
    sources += [(assignment, PolicySource.DIRECT) for assignment in store.get_direct_policy_assignments(subject_id)]

    policies: dict[str, Policy] = {}
    for assignment, source in sources:
        policy = assignment.policy
        if not policy.is_active or not _unexpired(assignment.expires_at, now):
            continue
        if policy.id in policies:
            continue
        policies[policy.id] = _materialize(assignment, source)

    return SessionUser(
        id=record.id,
        name=record.name,
        status=record.status,
        created_at=record.created_at,
        roles=roles,
        policies=sorted(policies.values(), key=_creation_key),
    )


def applicable_policies(user: SessionUser | None, resource_type: str, action_type: str) -> list[Policy]:
    """Select the policies that apply to a resource/action pair.

    Args:
        user: Materialized subject (None for an unknown subject).
        resource_type: Requested resource type.
        action_type: Requested action.

    Returns:
        Applicable policies, highest priority first. Empty for unknown or
        non-ACTIVE subjects.
    """
    if user is None or not user.is_active:
        return []
    matching = [policy for policy in user.policies if policy.applies_to(resource_type, action_type)]
    return sorted(matching, key=lambda policy: -policy.priority)
