"""EvaluationContext and builder - complete context for policy evaluation.

The context is request-scoped and never persisted. It is built from the
Session Snapshot's subject plus what the caller knows about the resource
and environment.
"""

from __future__ import annotations

__all__ = [
    "EvaluationContext",
    "build_evaluation_context",
]

from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from abac_gate.context.action import Action
from abac_gate.context.environment import Environment
from abac_gate.context.resource import Resource
from abac_gate.context.subject import Subject


class EvaluationContext(BaseModel):
    """Complete context for ABAC policy evaluation.

    Follows the standard ABAC model:
    - Subject: WHO is making the request
    - Action: WHAT operation is being performed
    - Resource: ON WHAT (the target)
    - Environment: Contextual information
    """

    subject: Subject
    action: Action
    resource: Resource
    environment: Environment

    model_config = ConfigDict(frozen=True)


def build_evaluation_context(
    subject: Subject,
    resource_type: str,
    action_type: str,
    resource_attrs: dict[str, Any] | None = None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    current_time: datetime | None = None,
    clock: Callable[[], datetime] | None = None,
) -> EvaluationContext:
    """Build an EvaluationContext from request components.

    Args:
        subject: Subject taken from the Session Snapshot.
        resource_type: Requested resource type.
        action_type: Requested action.
        resource_attrs: Caller-supplied resource attributes. An ``id`` key
            becomes the resource id.
        ip_address: Client address (optional).
        user_agent: Client user agent (optional).
        current_time: Explicit evaluation time. Overrides clock.
        clock: Time source used when current_time is not given.

    Returns:
        EvaluationContext ready for the rule evaluator.
    """
    attrs = dict(resource_attrs or {})
    resource_id = attrs.get("id")

    if current_time is None:
        current_time = clock() if clock is not None else datetime.now(timezone.utc)

    return EvaluationContext(
        subject=subject,
        action=Action(type=action_type),
        resource=Resource(
            type=resource_type,
            id=str(resource_id) if resource_id is not None else None,
            attributes=attrs,
        ),
        environment=Environment(
            current_time=current_time,
            ip_address=ip_address,
            user_agent=user_agent,
        ),
    )
