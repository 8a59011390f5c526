"""Attribute path resolution for rule evaluation.

Rules name the value they test with a dot-delimited path such as
``subject.id``, ``resource.ownerId`` or ``environment.currentTime``.

Resolution is table-driven rather than reflective:
- ``subject.*``, ``action.*`` and ``environment.*`` paths come from a fixed
  table of extractors over the typed context. Unknown paths are MISSING.
- ``resource.*`` paths walk the caller-supplied resource attributes segment
  by segment, since those attributes are open-ended by nature.

A path that cannot be resolved yields MISSING, never an exception.
"""

from __future__ import annotations

__all__ = [
    "ATTRIBUTE_EXTRACTORS",
    "MISSING",
    "is_missing",
    "resolve_attribute",
]

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Final

if TYPE_CHECKING:
    from abac_gate.context.context import EvaluationContext


class _Missing:
    """Sentinel for an attribute path that resolved to nothing."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


# Fixed attribute table. camelCase names are the ones stored in existing
# policy rows; snake_case aliases are accepted for rules written in Python.
ATTRIBUTE_EXTRACTORS: dict[str, Callable[["EvaluationContext"], Any]] = {
    # Subject
    "subject.id": lambda ctx: ctx.subject.id,
    "subject.roles": lambda ctx: list(ctx.subject.roles),
    "subject.role": lambda ctx: list(ctx.subject.roles),
    "subject.status": lambda ctx: ctx.subject.status.value,
    "subject.createdAt": lambda ctx: ctx.subject.created_at,
    "subject.created_at": lambda ctx: ctx.subject.created_at,
    # Action
    "action.type": lambda ctx: ctx.action.type,
    # Environment
    "environment.currentTime": lambda ctx: ctx.environment.current_time,
    "environment.current_time": lambda ctx: ctx.environment.current_time,
    "environment.ipAddress": lambda ctx: ctx.environment.ip_address,
    "environment.ip_address": lambda ctx: ctx.environment.ip_address,
    "environment.userAgent": lambda ctx: ctx.environment.user_agent,
    "environment.user_agent": lambda ctx: ctx.environment.user_agent,
}

_RESOURCE_ROOT = "resource"


def _walk(value: Any, segments: list[str]) -> Any:
    for segment in segments:
        if isinstance(value, Mapping) and segment in value:
            value = value[segment]
        else:
            return MISSING
    return value


def resolve_attribute(path: str, context: "EvaluationContext") -> Any:
    """Resolve an attribute path against an evaluation context.

    Args:
        path: Dot-delimited attribute path.
        context: Context to read from.

    Returns:
        The attribute value, None for known-but-unset optional attributes,
        or MISSING when the path does not resolve.
    """
    extractor = ATTRIBUTE_EXTRACTORS.get(path)
    if extractor is not None:
        return extractor(context)

    root, _, rest = path.partition(".")
    if root != _RESOURCE_ROOT or not rest:
        return MISSING

    segments = rest.split(".")
    if any(not segment for segment in segments):
        return MISSING

    attributes = context.resource.as_attributes()
    value = _walk(attributes, segments)

    # Callers sometimes pass pre-flattened keys ({"collection.id": ...})
    if value is MISSING and len(segments) > 1:
        value = attributes.get(rest, MISSING)

    return value
