"""API schemas (Pydantic models) for request/response validation.

Centralized schemas for all API routes.
"""

from __future__ import annotations

# Error schemas (for API documentation)
from abac_gate.api.schemas.errors import (
    ErrorDetail,
    ErrorResponse,
    ValidationErrorItem,
)

# Evaluation schemas
from abac_gate.api.schemas.evaluate import (
    BatchEvaluateRequest,
    BatchEvaluateResponse,
    EvaluateRequest,
    EvaluateResponse,
)

# Session schemas
from abac_gate.api.schemas.sessions import (
    CreateSessionRequest,
    DestroySessionsResponse,
    ExtendSessionResponse,
    RefreshSessionsResponse,
    SessionCreatedResponse,
    SessionResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ErrorResponse",
    "ValidationErrorItem",
    # Evaluation
    "BatchEvaluateRequest",
    "BatchEvaluateResponse",
    "EvaluateRequest",
    "EvaluateResponse",
    # Sessions
    "CreateSessionRequest",
    "DestroySessionsResponse",
    "ExtendSessionResponse",
    "RefreshSessionsResponse",
    "SessionCreatedResponse",
    "SessionResponse",
]
