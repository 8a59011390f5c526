"""Evaluation API endpoints.

Lets a caller ask what the gate would decide for its own session
(X-Session-Id). The full reason is returned here because the caller is
only ever explaining its own permissions; enforcement failures elsewhere
carry a generic message.

Routes mounted at: /api/evaluate
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from abac_gate.api.deps import ClientInfoDep, GateDep, SessionIdDep
from abac_gate.api.schemas import (
    BatchEvaluateRequest,
    BatchEvaluateResponse,
    ErrorResponse,
    EvaluateRequest,
    EvaluateResponse,
)
from abac_gate.pep.gate import PermissionRequest

router = APIRouter(responses={422: {"model": ErrorResponse, "description": "Invalid request body"}})


@router.post("", response_model=EvaluateResponse)
def evaluate(
    body: EvaluateRequest,
    gate: GateDep,
    session_id: SessionIdDep,
    client: ClientInfoDep,
) -> EvaluateResponse:
    """Evaluate one resource/action pair.

    Always answers 200: a missing session or unavailable cache shows up as
    a DENY (status "unresolved" for the latter), never as an error.
    """
    result = gate.evaluate(session_id, body.resource_type, body.action_type, body.resource_attrs, client)
    return EvaluateResponse(
        decision=result.decision.value,
        allowed=result.allowed,
        matching_policy_ids=list(result.matching_policy_ids),
        reason=result.reason,
        evaluation_time_ms=result.evaluation_time_ms,
        status=result.status.value,
    )


@router.post("/batch", response_model=BatchEvaluateResponse)
def evaluate_batch(
    body: BatchEvaluateRequest,
    gate: GateDep,
    session_id: SessionIdDep,
    client: ClientInfoDep,
) -> BatchEvaluateResponse:
    """Evaluate several resource/action pairs, in order."""
    requests = [PermissionRequest(c.resource_type, c.action_type, c.resource_attrs) for c in body.checks]
    return BatchEvaluateResponse(results=gate.check_permissions(session_id, requests, client))
