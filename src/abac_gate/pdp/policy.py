"""Policy models for ABAC policy evaluation.

These are the engine's view of policies: immutable, rule-inlined copies
materialized from the persistent store into the Session Snapshot.

Policy structure:
    Policy
    ├── id, name, description
    ├── effect: ALLOW | DENY
    ├── priority: int (higher = evaluated/reported first)
    ├── resource_type: exactly one of RESOURCE_TYPES
    ├── action_type: exactly one of ACTION_TYPES
    ├── rule_connector: AND | OR
    ├── is_active
    ├── source / role_id: how the subject got this policy
    └── rules: List[PolicyRule]
        └── PolicyRule
            ├── attribute_path: "subject.id", "resource.ownerId", ...
            ├── operator: "eq", "in", "regex", ...
            ├── expected_value: raw string as stored
            └── value_type: how to coerce expected_value

Design principles:
1. A policy with zero active rules matches unconditionally (blanket policy)
2. Deny-overrides combining: any matching DENY beats every ALLOW
3. Default to DENY if nothing matches
4. Rule operator and value type stay raw strings so malformed stored data
   loads and then fails to match, instead of failing the whole snapshot
"""

from __future__ import annotations

__all__ = [
    "Effect",
    "Policy",
    "PolicyRule",
    "PolicySource",
    "RuleConnector",
]

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from abac_gate.constants import ACTION_TYPES, DEFAULT_POLICY_PRIORITY, RESOURCE_TYPES


class Effect(str, Enum):
    """What happens when a policy matches."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class RuleConnector(str, Enum):
    """How a policy's rules combine."""

    AND = "AND"
    OR = "OR"


class PolicySource(str, Enum):
    """How the subject obtained a policy."""

    ROLE = "ROLE"
    DIRECT = "DIRECT"


class PolicyRule(BaseModel):
    """A single attribute comparison within a policy.

    Attributes:
        id: Rule identifier.
        policy_id: Owning policy.
        attribute_path: Dot-delimited path into the evaluation context.
        operator: Comparison operator (see constants.OPERATORS).
        expected_value: Raw stored value, coerced per value_type at evaluation.
        value_type: string | number | boolean | uuid | datetime | array.
        order: Presentation and tie-break order only.
        is_active: Inactive rules are ignored entirely.
        description: Optional human-readable description.
    """

    id: str
    policy_id: str | None = None
    attribute_path: str
    operator: str
    expected_value: str = ""
    value_type: str = "string"
    order: int = 0
    is_active: bool = True
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class Policy(BaseModel):
    """A named rule set with an effect, scoped to one resource/action pair.

    Attributes:
        id: Policy identifier.
        name: Unique policy name (used in audit reasons).
        description: Optional description.
        effect: ALLOW or DENY.
        priority: Higher = evaluated and reported first.
        resource_type: Exactly one resource type.
        action_type: Exactly one action type.
        rule_connector: AND (all rules) or OR (any rule).
        is_active: Inactive policies are never applicable.
        rules: Ordered rules.
        created_by: Subject id of the author.
        created_at: Creation timestamp (tie-break for equal priorities).
        updated_at: Last modification timestamp.
        source: ROLE (inherited) or DIRECT (assigned to the subject).
        role_id: Granting role, for role-inherited policies.
    """

    id: str
    name: str
    description: str | None = None
    effect: Effect
    priority: int = DEFAULT_POLICY_PRIORITY
    resource_type: str
    action_type: str
    rule_connector: RuleConnector = RuleConnector.AND
    is_active: bool = True
    rules: list[PolicyRule] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    source: PolicySource = PolicySource.DIRECT
    role_id: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("resource_type")
    @classmethod
    def validate_resource_type(cls, v: str) -> str:
        if v not in RESOURCE_TYPES:
            raise ValueError(f"Unknown resource type {v!r}. Expected one of: {', '.join(RESOURCE_TYPES)}")
        return v

    @field_validator("action_type")
    @classmethod
    def validate_action_type(cls, v: str) -> str:
        if v not in ACTION_TYPES:
            raise ValueError(f"Unknown action type {v!r}. Expected one of: {', '.join(ACTION_TYPES)}")
        return v

    @property
    def active_rules(self) -> list[PolicyRule]:
        """Active rules in evaluation order."""
        return sorted((rule for rule in self.rules if rule.is_active), key=lambda rule: rule.order)

    def applies_to(self, resource_type: str, action_type: str) -> bool:
        """Check whether this policy is applicable to a resource/action pair."""
        return self.is_active and self.resource_type == resource_type and self.action_type == action_type
