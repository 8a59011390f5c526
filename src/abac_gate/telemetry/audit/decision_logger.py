"""Decision logging for the Permission Gate.

This module provides logging for authorization decisions (ALLOW, DENY).
Logs are written to <log_dir>/audit/decisions.jsonl.

Decision logs are controlled by logging.audit_decisions, not by log_level.
"""

from __future__ import annotations

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
]

import logging
from pathlib import Path
from typing import Any

from abac_gate.constants import APP_NAME
from abac_gate.pdp.decision import EvaluationResult
from abac_gate.telemetry.models.decision import DecisionEvent
from abac_gate.utils.logging.logger_setup import setup_jsonl_logger
from abac_gate.utils.logging.logging_helpers import serialize_audit_event

DECISION_LOGGER_NAME = f"{APP_NAME}.audit.decisions"


def create_decision_logger(log_path: Path) -> logging.Logger:
    """Create logger for decision events.

    Args:
        log_path: Path to decisions.jsonl file.

    Returns:
        Configured logger instance.
    """
    return setup_jsonl_logger(DECISION_LOGGER_NAME, log_path, log_level=logging.INFO)


class DecisionEventLogger:
    """Logs authorization decision events to decisions.jsonl."""

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize decision event logger.

        Args:
            logger: Logger for decision events (decisions.jsonl).
        """
        self._logger = logger

    def log(
        self,
        result: EvaluationResult,
        *,
        outcome: str,
        resource_type: str,
        action_type: str,
        session_id: str | None = None,
        subject_id: str | None = None,
        resource_attrs: dict[str, Any] | None = None,
        field_id: str | None = None,
        ip_address: str | None = None,
    ) -> DecisionEvent:
        """Log one gate evaluation.

        Args:
            result: Evaluation result (decision, reason, timing, status).
            outcome: Gate outcome ("ok" or the AuthError name).
            resource_type: Requested resource type.
            action_type: Requested action.
            session_id: Session the check ran under.
            subject_id: Subject from the snapshot.
            resource_attrs: Caller-supplied attributes (only the id is logged).
            field_id: Field id for field-level checks.
            ip_address: Client address.

        Returns:
            The logged event.
        """
        resource_id = (resource_attrs or {}).get("id")

        event = DecisionEvent(
            decision=result.decision.value,
            status=result.status.value,
            outcome=outcome,
            session_id=session_id,
            subject_id=subject_id,
            resource_type=resource_type,
            action_type=action_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            field_id=field_id,
            matching_policy_ids=list(result.matching_policy_ids),
            reason=result.reason,
            evaluation_time_ms=round(result.evaluation_time_ms, 3),
            ip_address=ip_address,
        )
        self._logger.info(serialize_audit_event(event))
        return event
