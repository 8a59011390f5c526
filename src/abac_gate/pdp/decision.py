"""Decision types for policy evaluation outcomes.

These values define the possible outcomes of policy evaluation, used by
the engine to communicate decisions to the Permission Gate and audit log.
"""

from __future__ import annotations

__all__ = [
    "Decision",
    "EvaluationResult",
    "EvaluationStatus",
    "PolicyDecision",
]

from dataclasses import dataclass, field
from enum import Enum


class Decision(str, Enum):
    """Policy decision outcome.

    Inherits from str for easy serialization and comparison.

    Attributes:
        ALLOW: Request is permitted.
        DENY: Request is blocked (explicitly, by default, or failed closed).
    """

    ALLOW = "ALLOW"
    DENY = "DENY"


class EvaluationStatus(str, Enum):
    """Whether a decision came from evaluating policies at all.

    Attributes:
        EVALUATED: Policies were resolved and combined.
        UNRESOLVED: Store or cache was unavailable; DENY without evaluation.
    """

    EVALUATED = "evaluated"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    """Output of the decision combinator.

    Attributes:
        effect: ALLOW or DENY.
        matching_policy_ids: Policies that produced the effect, highest priority first.
        reason: Human-readable explanation for the audit trail.
    """

    effect: Decision
    matching_policy_ids: tuple[str, ...]
    reason: str

    @property
    def allowed(self) -> bool:
        return self.effect == Decision.ALLOW


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Audit-oriented result of a full evaluation.

    Attributes:
        decision: ALLOW or DENY.
        matching_policy_ids: Policies that produced the decision.
        reason: Human-readable explanation.
        evaluation_time_ms: Wall-clock time spent evaluating.
        status: EVALUATED, or UNRESOLVED when inputs could not be resolved.
        evaluated_policy_ids: Every applicable policy that was evaluated.
    """

    decision: Decision
    matching_policy_ids: tuple[str, ...]
    reason: str
    evaluation_time_ms: float
    status: EvaluationStatus = EvaluationStatus.EVALUATED
    evaluated_policy_ids: tuple[str, ...] = field(default=())

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOW

    @classmethod
    def unresolved(cls, reason: str, evaluation_time_ms: float = 0.0) -> "EvaluationResult":
        """Fail-closed result for when store or cache was unavailable."""
        return cls(
            decision=Decision.DENY,
            matching_policy_ids=(),
            reason=reason,
            evaluation_time_ms=evaluation_time_ms,
            status=EvaluationStatus.UNRESOLVED,
        )
