"""Pydantic model for the decision audit log (audit/decisions.jsonl).

One DecisionEvent per Permission Gate evaluation. The detailed reason is
recorded here; HTTP callers only ever see a generic message.

Note: 'time' is None when created, populated by ISO8601Formatter during logging.
"""

from __future__ import annotations

__all__ = [
    "DecisionEvent",
]

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DecisionEvent(BaseModel):
    """One authorization decision.

    Attributes:
        time: ISO 8601 timestamp, added by the formatter.
        event: Always "decision".
        decision: ALLOW or DENY.
        status: "evaluated", or "unresolved" when store/cache failed.
        outcome: Gate outcome (ok, UNAUTHENTICATED, FORBIDDEN, UNAVAILABLE).
        session_id: Session the check ran under.
        subject_id: Subject from the snapshot, if one was found.
        resource_type: Requested resource type.
        action_type: Requested action.
        resource_id: Resource id, if supplied.
        field_id: Field id for field-level checks.
        matching_policy_ids: Policies that produced the decision.
        reason: Human-readable explanation.
        evaluation_time_ms: Evaluation time.
        ip_address: Client address, if known.
    """

    time: str | None = Field(
        None,
        description="ISO 8601 timestamp, added by formatter during serialization",
    )
    event: Literal["decision"] = "decision"

    decision: Literal["ALLOW", "DENY"]
    status: Literal["evaluated", "unresolved"] = "evaluated"
    outcome: str

    session_id: str | None = None
    subject_id: str | None = None

    resource_type: str
    action_type: str
    resource_id: str | None = None
    field_id: str | None = None

    matching_policy_ids: list[str] = Field(default_factory=list)
    reason: str
    evaluation_time_ms: float = 0.0

    ip_address: str | None = None

    model_config = ConfigDict(extra="forbid")
