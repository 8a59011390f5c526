"""Rule evaluation for ABAC policies.

This module interprets a single PolicyRule against an EvaluationContext:
- Attribute resolution: via context.attributes (missing path -> MISSING)
- Expected value coercion: by the rule's declared value type
- Comparison: one function per operator

Evaluation is pure and never raises on malformed stored data:
- Unparseable expected values fall back to the raw string
- Invalid regex patterns never match
- Unknown operators never match (logged as a warning)

Design note: equality is strict. Booleans never equal numbers and strings
never equal numbers, so a rule stored as ``"5"`` with value type string
does not match the integer 5.
"""

from __future__ import annotations

__all__ = [
    "OPERATOR_FUNCTIONS",
    "coerce_expected_value",
    "compare_values",
    "evaluate_rule",
]

import json
import logging
import math
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from abac_gate.constants import APP_NAME
from abac_gate.context import EvaluationContext, is_missing, resolve_attribute
from abac_gate.pdp.policy import PolicyRule

_logger = logging.getLogger(f"{APP_NAME}.pdp.matcher")


# =============================================================================
# Expected Value Coercion
# =============================================================================


def _parse_number(raw: str) -> Any:
    try:
        return int(raw)
    except (TypeError, ValueError):
        pass
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return raw
    if not math.isfinite(number):
        return raw
    return number


def _parse_datetime(raw: str) -> Any:
    try:
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except (AttributeError, TypeError, ValueError):
        return raw
    return _as_utc(parsed)


def _parse_array(raw: str) -> Any:
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return raw
    return parsed if isinstance(parsed, list) else [parsed]


_COERCERS: dict[str, Callable[[str], Any]] = {
    "string": lambda raw: raw,
    "uuid": lambda raw: raw,
    "number": _parse_number,
    "boolean": lambda raw: raw == "true",
    "datetime": _parse_datetime,
    "array": _parse_array,
}


def coerce_expected_value(raw: str, value_type: str) -> Any:
    """Coerce a stored expected value according to its declared type.

    Args:
        raw: Value as stored on the rule.
        value_type: string | number | boolean | uuid | datetime | array.

    Returns:
        The coerced value, or the raw string when parsing fails or the
        value type is unknown.
    """
    coercer = _COERCERS.get(value_type)
    if coercer is None:
        return raw
    return coercer(raw)


# =============================================================================
# Comparison Helpers
# =============================================================================


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never counts as numeric here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_null(value: Any) -> bool:
    return value is None or is_missing(value)


def _strict_equals(actual: Any, expected: Any) -> bool:
    if is_missing(actual):
        return False
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if isinstance(actual, datetime) and isinstance(expected, datetime):
        return _as_utc(actual) == _as_utc(expected)
    if type(actual) is not type(expected):
        return False
    return bool(actual == expected)


def _ordering_operands(actual: Any, expected: Any) -> tuple[Any, Any] | None:
    """Return comparable operands, or None if ordering does not apply."""
    if _is_number(actual) and _is_number(expected):
        return actual, expected
    if isinstance(actual, datetime) and isinstance(expected, datetime):
        return _as_utc(actual), _as_utc(expected)
    return None


def _stringify(value: Any) -> str:
    if _is_null(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _normalize_actual(actual: Any, expected: Any) -> Any:
    """Parse ISO strings on the actual side when the rule expects a datetime."""
    if isinstance(expected, datetime):
        if isinstance(actual, str):
            parsed = _parse_datetime(actual)
            return parsed if isinstance(parsed, datetime) else actual
        if isinstance(actual, datetime):
            return _as_utc(actual)
    return actual


# =============================================================================
# Operators
# =============================================================================


def _op_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, list) and any(_strict_equals(actual, item) for item in expected)


def _op_not_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, list) and not any(_strict_equals(actual, item) for item in expected)


def _ordering(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def op(actual: Any, expected: Any) -> bool:
        operands = _ordering_operands(actual, expected)
        return operands is not None and compare(*operands)

    return op


def _op_contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, (list, tuple)):
        return any(_strict_equals(item, expected) for item in actual)
    return False


def _op_starts_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and actual.startswith(expected)


def _op_ends_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and actual.endswith(expected)


def _op_regex(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, str):
        return False
    try:
        pattern = re.compile(expected)
    except re.error:
        return False
    return pattern.search(_stringify(actual)) is not None


OPERATOR_FUNCTIONS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": _strict_equals,
    "ne": lambda actual, expected: not _strict_equals(actual, expected),
    "in": _op_in,
    "not_in": _op_not_in,
    "gt": _ordering(lambda a, b: a > b),
    "gte": _ordering(lambda a, b: a >= b),
    "lt": _ordering(lambda a, b: a < b),
    "lte": _ordering(lambda a, b: a <= b),
    "contains": _op_contains,
    "starts_with": _op_starts_with,
    "ends_with": _op_ends_with,
    "is_null": lambda actual, _expected: _is_null(actual),
    "is_not_null": lambda actual, _expected: not _is_null(actual),
    "regex": _op_regex,
}


def compare_values(actual: Any, operator: str, expected: Any) -> bool:
    """Apply an operator to a resolved actual value and a coerced expected value.

    Args:
        actual: Value resolved from the context (may be MISSING).
        operator: Operator name.
        expected: Coerced expected value.

    Returns:
        True if the comparison holds. False for unknown operators and for
        operand types the operator does not support.
    """
    op = OPERATOR_FUNCTIONS.get(operator)
    if op is None:
        _logger.warning({"event": "unknown_operator", "message": f"Unknown operator: {operator}"})
        return False

    try:
        return op(_normalize_actual(actual, expected), expected)
    except (TypeError, ValueError) as e:
        _logger.warning(
            {
                "event": "rule_comparison_failed",
                "message": f"Comparison failed for operator {operator}: {e}",
            }
        )
        return False


def evaluate_rule(rule: PolicyRule, context: EvaluationContext) -> bool:
    """Evaluate one rule against an evaluation context.

    Args:
        rule: Rule to evaluate.
        context: Request-scoped evaluation context.

    Returns:
        True if the rule holds for this context.
    """
    actual = resolve_attribute(rule.attribute_path, context)
    expected = coerce_expected_value(rule.expected_value, rule.value_type)
    return compare_values(actual, rule.operator, expected)
