"""Policy engine - evaluate an EvaluationContext against applicable policies.

Evaluation flow:
1. Caller supplies the applicable policies (see pips.aggregator), ordered
   by descending priority
2. Each policy is matched by combining its active rules with its connector
3. Matched policies are combined: DENY overrides ALLOW
4. No match (including no applicable policies) -> DENY

Design principles:
1. Zero active rules = blanket policy, always matches when applicable
2. AND: every active rule holds. OR: at least one active rule holds
3. Any matching DENY wins regardless of priority or ALLOW count
4. Priority only orders policies for reporting (reason, matching ids)
5. Default to DENY if no policy matches (zero trust)

The engine is stateless and side-effect free. It never reads the store or
the cache; the Permission Gate hands it policies from the Session Snapshot.
"""

from __future__ import annotations

__all__ = [
    "PolicyEngine",
    "decide",
    "evaluate_policy",
]

import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Callable

from abac_gate.constants import DEFAULT_DENY_REASON
from abac_gate.context import EvaluationContext, Subject, build_evaluation_context
from abac_gate.pdp.decision import Decision, EvaluationResult, PolicyDecision
from abac_gate.pdp.matcher import evaluate_rule
from abac_gate.pdp.policy import Effect, Policy, RuleConnector


def evaluate_policy(policy: Policy, context: EvaluationContext) -> bool:
    """Check whether a policy's rules hold for a context.

    Inactive rules are excluded entirely, for both AND and OR.

    Args:
        policy: Policy to match.
        context: Request-scoped evaluation context.

    Returns:
        True if the policy matches.
    """
    rules = policy.active_rules
    if not rules:
        return True

    results = (evaluate_rule(rule, context) for rule in rules)
    if policy.rule_connector == RuleConnector.OR:
        return any(results)
    return all(results)


def _by_priority(policies: Sequence[Policy]) -> list[Policy]:
    # sorted() is stable, so equal priorities keep their given order
    return sorted(policies, key=lambda policy: -policy.priority)


def decide(matched_policies: Sequence[Policy]) -> PolicyDecision:
    """Combine matched policies into a single decision (deny-overrides).

    Args:
        matched_policies: Policies whose rules matched the context.

    Returns:
        PolicyDecision. DENY if any DENY policy matched, ALLOW if only ALLOW
        policies matched, default DENY otherwise.
    """
    ordered = _by_priority(matched_policies)
    denies = [policy for policy in ordered if policy.effect == Effect.DENY]
    allows = [policy for policy in ordered if policy.effect == Effect.ALLOW]

    if denies:
        top = denies[0]
        return PolicyDecision(
            effect=Decision.DENY,
            matching_policy_ids=tuple(policy.id for policy in denies),
            reason=f"Access denied by policy: {top.name} (priority: {top.priority})",
        )

    if allows:
        top = allows[0]
        return PolicyDecision(
            effect=Decision.ALLOW,
            matching_policy_ids=tuple(policy.id for policy in allows),
            reason=f"Access granted by policy: {top.name} (priority: {top.priority})",
        )

    return PolicyDecision(effect=Decision.DENY, matching_policy_ids=(), reason=DEFAULT_DENY_REASON)


class PolicyEngine:
    """Policy evaluation engine.

    Evaluates applicable policies against an evaluation context using the
    deny-overrides combining algorithm:
    - If ANY matching policy says DENY -> DENY
    - Else if ANY matching policy says ALLOW -> ALLOW
    - Else -> DENY (default)
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the policy engine.

        Args:
            clock: Time source for environment.currentTime. Defaults to UTC now.
        """
        self._clock = clock

    def matching_policies(self, policies: Sequence[Policy], context: EvaluationContext) -> list[Policy]:
        """Return the policies (in given order) whose rules hold for a context."""
        return [policy for policy in policies if evaluate_policy(policy, context)]

    def evaluate_context(self, policies: Sequence[Policy], context: EvaluationContext) -> EvaluationResult:
        """Evaluate applicable policies against a prebuilt context.

        Args:
            policies: Applicable policies, highest priority first.
            context: Request-scoped evaluation context.

        Returns:
            EvaluationResult with decision, matching ids, reason and timing.
        """
        start = time.perf_counter()
        decision = decide(self.matching_policies(policies, context))
        elapsed_ms = (time.perf_counter() - start) * 1000

        return EvaluationResult(
            decision=decision.effect,
            matching_policy_ids=decision.matching_policy_ids,
            reason=decision.reason,
            evaluation_time_ms=elapsed_ms,
            evaluated_policy_ids=tuple(policy.id for policy in policies),
        )

    def evaluate(
        self,
        subject: Subject,
        policies: Sequence[Policy],
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None = None,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EvaluationResult:
        """Build the evaluation context for a request and evaluate it.

        Args:
            subject: Subject from the Session Snapshot.
            policies: Applicable policies for resource_type/action_type.
            resource_type: Requested resource type.
            action_type: Requested action.
            resource_attrs: Caller-supplied resource attributes.
            ip_address: Client address (optional).
            user_agent: Client user agent (optional).

        Returns:
            EvaluationResult.
        """
        context = build_evaluation_context(
            subject,
            resource_type,
            action_type,
            resource_attrs,
            ip_address=ip_address,
            user_agent=user_agent,
            clock=self._clock,
        )
        return self.evaluate_context(policies, context)

    def is_allowed(
        self,
        subject: Subject,
        policies: Sequence[Policy],
        resource_type: str,
        action_type: str,
        resource_attrs: dict[str, Any] | None = None,
    ) -> bool:
        return self.evaluate(subject, policies, resource_type, action_type, resource_attrs).allowed
