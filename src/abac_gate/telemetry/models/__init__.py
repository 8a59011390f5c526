"""Pydantic models for log events.

Models define the structured event DATA; ISO8601Formatter adds the timestamp.
"""

from abac_gate.telemetry.models.decision import DecisionEvent

__all__ = [
    "DecisionEvent",
]
