"""Audit logging for authorization decisions."""

from abac_gate.telemetry.audit.decision_logger import (
    DecisionEventLogger,
    create_decision_logger,
)

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
]
