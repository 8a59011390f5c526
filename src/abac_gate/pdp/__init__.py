"""Policy Decision Point (PDP) - Policy evaluation engine.

This module evaluates policies against an EvaluationContext:

- context/: Builds EvaluationContext for a request
- pdp/ (this module): Evaluates policies against context
- pep/: The Permission Gate callers use

The PDP is intentionally stateless and side-effect free.
Store and cache access happens in pips/ and session/.

Structure:
    decision.py       - Decision enums and result types
    policy.py         - Policy models (Policy, PolicyRule, etc.)
    matcher.py        - Rule evaluation (operators, value coercion)
    engine.py         - Policy matching, decision combining, PolicyEngine
"""

from abac_gate.pdp.decision import Decision, EvaluationResult, EvaluationStatus, PolicyDecision
from abac_gate.pdp.engine import PolicyEngine, decide, evaluate_policy
from abac_gate.pdp.matcher import coerce_expected_value, compare_values, evaluate_rule
from abac_gate.pdp.policy import Effect, Policy, PolicyRule, PolicySource, RuleConnector

__all__ = [
    # Decision
    "Decision",
    "EvaluationResult",
    "EvaluationStatus",
    "PolicyDecision",
    # Engine
    "PolicyEngine",
    "decide",
    "evaluate_policy",
    # Rules
    "coerce_expected_value",
    "compare_values",
    "evaluate_rule",
    # Policy models
    "Effect",
    "Policy",
    "PolicyRule",
    "PolicySource",
    "RuleConnector",
]
