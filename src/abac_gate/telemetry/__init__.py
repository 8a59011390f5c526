"""Telemetry domain: decision audit logging.

Structure:
    audit/          Decision audit log (audit/decisions.jsonl)
                    - DecisionEventLogger: one event per gate evaluation
    models/         Pydantic models for log event types

System logs (system/system.jsonl) are set up in utils/logging.
"""

__all__: list[str] = []
