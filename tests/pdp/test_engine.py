"""Unit tests for policy matching and deny-overrides combining.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from pydantic import ValidationError

from abac_gate.constants import DEFAULT_DENY_REASON
from abac_gate.context import Subject, build_evaluation_context
from abac_gate.pdp import Decision, EvaluationStatus, PolicyEngine, decide, evaluate_policy
from abac_gate.pdp.policy import Effect, Policy, PolicyRule, RuleConnector

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
SUBJECT = Subject(id="user-1", roles=("editor",))


def _policy(
    policy_id: str,
    effect: str = "ALLOW",
    priority: int = 100,
    rules: list[PolicyRule] | None = None,
    connector: str = "AND",
    **kwargs: Any,
) -> Policy:
    return Policy(
        id=policy_id,
        name=f"policy-{policy_id}",
        effect=effect,
        priority=priority,
        resource_type=kwargs.pop("resource_type", "entries"),
        action_type=kwargs.pop("action_type", "read"),
        rule_connector=connector,
        rules=rules or [],
        **kwargs,
    )


def _rule(
    rule_id: str,
    path: str,
    operator: str,
    expected: str,
    *,
    order: int = 0,
    is_active: bool = True,
    value_type: str = "string",
) -> PolicyRule:
    return PolicyRule(
        id=rule_id,
        attribute_path=path,
        operator=operator,
        expected_value=expected,
        order=order,
        is_active=is_active,
        value_type=value_type,
    )


def _context(resource_attrs: dict[str, Any] | None = None):
    return build_evaluation_context(SUBJECT, "entries", "read", resource_attrs, current_time=NOW)


OWNER_RULE = _rule("r-owner", "resource.ownerId", "eq", "user-1")
DRAFT_RULE = _rule("r-draft", "resource.status", "eq", "draft", order=1)


# ============================================================================
# Policy Model
# ============================================================================


class TestPolicyModel:
    """Policy validation against the closed vocabularies."""

    def test_rejects_unknown_resource_type(self) -> None:
        with pytest.raises(ValidationError, match="Unknown resource type"):
            _policy("p1", resource_type="widgets")

    def test_rejects_unknown_action_type(self) -> None:
        with pytest.raises(ValidationError, match="Unknown action type"):
            _policy("p1", action_type="frobnicate")

    def test_applies_to_exact_pair_only(self) -> None:
        policy = _policy("p1")

        assert policy.applies_to("entries", "read") is True
        assert policy.applies_to("entries", "update") is False
        assert policy.applies_to("assets", "read") is False

    def test_inactive_policy_never_applies(self) -> None:
        assert _policy("p1", is_active=False).applies_to("entries", "read") is False

    def test_active_rules_sorted_by_order(self) -> None:
        policy = _policy(
            "p1",
            rules=[
                _rule("b", "subject.id", "eq", "x", order=2),
                _rule("a", "subject.id", "eq", "x", order=1),
                _rule("c", "subject.id", "eq", "x", order=0, is_active=False),
            ],
        )

        assert [rule.id for rule in policy.active_rules] == ["a", "b"]


# ============================================================================
# Policy Matching
# ============================================================================


class TestEvaluatePolicy:
    """Combining a policy's rules with its connector."""

    def test_zero_rules_is_blanket_match(self) -> None:
        """A policy with no rules matches whenever it is applicable."""
        assert evaluate_policy(_policy("p1"), _context()) is True

    def test_only_inactive_rules_is_blanket_match(self) -> None:
        policy = _policy("p1", rules=[_rule("r", "subject.id", "eq", "someone-else", is_active=False)])

        assert evaluate_policy(policy, _context()) is True

    def test_and_requires_every_rule(self) -> None:
        # Arrange
        policy = _policy("p1", rules=[OWNER_RULE, DRAFT_RULE])

        # Act / Assert
        assert evaluate_policy(policy, _context({"ownerId": "user-1", "status": "draft"})) is True
        assert evaluate_policy(policy, _context({"ownerId": "user-1", "status": "published"})) is False

    def test_or_requires_any_rule(self) -> None:
        # Arrange
        policy = _policy("p1", rules=[OWNER_RULE, DRAFT_RULE], connector="OR")

        # Act / Assert
        assert evaluate_policy(policy, _context({"ownerId": "user-2", "status": "draft"})) is True
        assert evaluate_policy(policy, _context({"ownerId": "user-2", "status": "published"})) is False

    @pytest.mark.parametrize("connector", ["AND", "OR"])
    def test_inactive_rules_are_excluded(self, connector: str) -> None:
        """An inactive failing rule neither blocks AND nor satisfies OR."""
        failing = _rule("r-off", "subject.id", "eq", "nobody", is_active=False)
        passing_off = _rule("r-off-2", "subject.id", "eq", "user-1", is_active=False)
        policy = _policy("p1", rules=[OWNER_RULE, failing, passing_off], connector=connector)

        assert evaluate_policy(policy, _context({"ownerId": "user-1"})) is True
        assert evaluate_policy(policy, _context({"ownerId": "user-2"})) is False

    def test_malformed_rule_does_not_raise(self) -> None:
        policy = _policy(
            "p1",
            rules=[_rule("bad", "resource.slug", "regex", "(unclosed"), OWNER_RULE],
            connector="OR",
        )

        assert evaluate_policy(policy, _context({"ownerId": "user-1", "slug": "x"})) is True


# ============================================================================
# Decision Combinator
# ============================================================================


class TestDecide:
    """Deny-overrides combining over matched policies."""

    def test_nothing_matched_is_default_deny(self) -> None:
        # Act
        decision = decide([])

        # Assert
        assert decision.effect == Decision.DENY
        assert decision.matching_policy_ids == ()
        assert decision.reason == DEFAULT_DENY_REASON

    def test_single_allow(self) -> None:
        decision = decide([_policy("p1", priority=10)])

        assert decision.effect == Decision.ALLOW
        assert decision.matching_policy_ids == ("p1",)
        assert decision.reason == "Access granted by policy: policy-p1 (priority: 10)"

    def test_deny_overrides_higher_priority_allow(self) -> None:
        """A low-priority DENY still beats a high-priority ALLOW."""
        # Arrange
        allow = _policy("allow", priority=1000)
        deny = _policy("deny", effect="DENY", priority=1)

        # Act
        decision = decide([allow, deny])

        # Assert
        assert decision.effect == Decision.DENY
        assert decision.matching_policy_ids == ("deny",)
        assert decision.reason == "Access denied by policy: policy-deny (priority: 1)"

    def test_deny_ids_cover_every_matched_deny_by_priority(self) -> None:
        decision = decide(
            [
                _policy("d-low", effect="DENY", priority=5),
                _policy("allow", priority=50),
                _policy("d-high", effect="DENY", priority=20),
            ]
        )

        assert decision.matching_policy_ids == ("d-high", "d-low")
        assert "policy-d-high" in decision.reason

    def test_allow_ids_cover_every_matched_allow(self) -> None:
        decision = decide([_policy("a1", priority=10), _policy("a2", priority=30)])

        assert decision.matching_policy_ids == ("a2", "a1")
        assert decision.reason == "Access granted by policy: policy-a2 (priority: 30)"

    def test_equal_priority_keeps_given_order(self) -> None:
        decision = decide([_policy("first"), _policy("second")])

        assert decision.matching_policy_ids == ("first", "second")
        assert "policy-first" in decision.reason

    def test_decision_is_independent_of_input_order(self) -> None:
        allow = _policy("allow", priority=100)
        deny = _policy("deny", effect="DENY", priority=100)

        assert decide([allow, deny]).effect == decide([deny, allow]).effect == Decision.DENY


# ============================================================================
# PolicyEngine
# ============================================================================


class TestPolicyEngine:
    """End-to-end evaluation over applicable policies."""

    def test_owner_can_read_own_entry(self) -> None:
        # Arrange
        engine = PolicyEngine(clock=lambda: NOW)
        policies = [_policy("own", rules=[OWNER_RULE])]

        # Act
        result = engine.evaluate(SUBJECT, policies, "entries", "read", {"ownerId": "user-1"})

        # Assert
        assert result.allowed is True
        assert result.decision == Decision.ALLOW
        assert result.matching_policy_ids == ("own",)
        assert result.status == EvaluationStatus.EVALUATED
        assert result.evaluated_policy_ids == ("own",)
        assert result.evaluation_time_ms >= 0

    def test_no_applicable_policies_is_default_deny(self) -> None:
        result = PolicyEngine().evaluate(SUBJECT, [], "entries", "read")

        assert result.decision == Decision.DENY
        assert result.reason == DEFAULT_DENY_REASON
        assert result.evaluated_policy_ids == ()

    def test_unmatched_policies_are_evaluated_but_not_matching(self) -> None:
        engine = PolicyEngine(clock=lambda: NOW)
        policies = [_policy("own", rules=[OWNER_RULE])]

        result = engine.evaluate(SUBJECT, policies, "entries", "read", {"ownerId": "user-2"})

        assert result.decision == Decision.DENY
        assert result.matching_policy_ids == ()
        assert result.evaluated_policy_ids == ("own",)

    def test_clock_drives_environment_time(self) -> None:
        """Time-window rules read environment.currentTime from the engine clock."""
        # Arrange
        window = _policy(
            "business-hours",
            rules=[
                _rule("after", "environment.currentTime", "gte", "2025-01-15T09:00:00Z", value_type="datetime"),
                _rule("before", "environment.currentTime", "lt", "2025-01-15T17:00:00Z", order=1, value_type="datetime"),
            ],
        )

        # Act
        at_noon = PolicyEngine(clock=lambda: NOW).evaluate(SUBJECT, [window], "entries", "read")
        at_night = PolicyEngine(clock=lambda: NOW + timedelta(hours=8)).evaluate(SUBJECT, [window], "entries", "read")

        # Assert
        assert at_noon.allowed is True
        assert at_night.allowed is False

    def test_environment_attributes_reach_rules(self) -> None:
        policy = _policy("office", rules=[_rule("ip", "environment.ipAddress", "starts_with", "10.")])
        engine = PolicyEngine(clock=lambda: NOW)

        inside = engine.evaluate(SUBJECT, [policy], "entries", "read", ip_address="10.1.2.3")
        outside = engine.evaluate(SUBJECT, [policy], "entries", "read", ip_address="192.168.0.1")

        assert inside.allowed is True
        assert outside.allowed is False

    def test_is_allowed_shortcut(self) -> None:
        engine = PolicyEngine(clock=lambda: NOW)

        assert engine.is_allowed(SUBJECT, [_policy("all")], "entries", "read") is True
        assert engine.is_allowed(SUBJECT, [_policy("none", effect=Effect.DENY)], "entries", "read") is False

    def test_connector_enum_accepted(self) -> None:
        policy = _policy("p", connector=RuleConnector.OR, rules=[OWNER_RULE])

        assert policy.rule_connector == RuleConnector.OR
