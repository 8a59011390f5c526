"""Evaluation API schemas."""

from __future__ import annotations

__all__ = [
    "BatchEvaluateRequest",
    "BatchEvaluateResponse",
    "EvaluateRequest",
    "EvaluateResponse",
]

from typing import Any

from pydantic import BaseModel, Field


class EvaluateRequest(BaseModel):
    """One resource/action check for the caller's session."""

    resource_type: str = Field(min_length=1)
    action_type: str = Field(min_length=1)
    resource_attrs: dict[str, Any] | None = None


class EvaluateResponse(BaseModel):
    """Audit-oriented evaluation result.

    status is "unresolved" when authorization data could not be loaded;
    the decision is then always DENY.
    """

    decision: str
    allowed: bool
    matching_policy_ids: list[str]
    reason: str
    evaluation_time_ms: float
    status: str


class BatchEvaluateRequest(BaseModel):
    """Several checks against the same session."""

    checks: list[EvaluateRequest] = Field(min_length=1)


class BatchEvaluateResponse(BaseModel):
    """Per-check results, in request order."""

    results: list[bool]
