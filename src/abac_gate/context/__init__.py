"""Context building for ABAC policy evaluation.

This module builds EvaluationContext for policy decisions:

- context/ (this module): Builds the evaluation context for a request
- pdp/: Policy Decision Point - evaluates policies
- pep/: Policy Enforcement Point - the gate callers use

Structure:
    subject.py        - Subject model (WHO)
    action.py         - Action model (WHAT operation)
    resource.py       - Resource model (ON WHAT)
    environment.py    - Environment model (CONTEXT)
    context.py        - EvaluationContext + builder
    attributes.py     - Attribute path table and resolution
"""

from abac_gate.context.action import Action
from abac_gate.context.attributes import MISSING, is_missing, resolve_attribute
from abac_gate.context.context import EvaluationContext, build_evaluation_context
from abac_gate.context.environment import Environment
from abac_gate.context.resource import Resource
from abac_gate.context.subject import Subject, SubjectStatus

__all__ = [
    # Subject (WHO)
    "Subject",
    "SubjectStatus",
    # Action (WHAT)
    "Action",
    # Resource (ON WHAT)
    "Resource",
    # Environment
    "Environment",
    # Context
    "EvaluationContext",
    "build_evaluation_context",
    # Attributes
    "MISSING",
    "is_missing",
    "resolve_attribute",
]
