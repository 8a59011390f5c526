"""Error body schemas.

Every non-2xx response from the API has the shape ErrorResponse. The
exception handlers in api/errors.py build their bodies from these models,
and routers reference ErrorResponse in their ``responses=`` declarations.
"""

from __future__ import annotations

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "ValidationErrorItem",
]

from typing import Any

from pydantic import BaseModel, Field


class ValidationErrorItem(BaseModel):
    """One request validation failure (422 only)."""

    loc: list[str | int]
    msg: str
    type: str


class ErrorDetail(BaseModel):
    """What went wrong, in a form clients can branch on.

    Attributes:
        code: Stable error code (see api.errors.ErrorCode).
        message: Caller-safe message. Never names policies or rules.
        details: Identifiers the caller sent (session_id, subject_id).
        validation_errors: Field-level failures for 422 responses.
    """

    code: str = Field(examples=["AUTH_FORBIDDEN", "SESSION_NOT_FOUND"])
    message: str = Field(examples=["Insufficient permissions. Cannot publish entries"])
    details: dict[str, Any] | None = None
    validation_errors: list[ValidationErrorItem] | None = None

    def to_body(self) -> dict[str, Any]:
        """The JSON body: ``{"detail": {...}}`` without unset fields."""
        return {"detail": self.model_dump(mode="json", exclude_none=True)}


class ErrorResponse(BaseModel):
    """Full error response body."""

    detail: ErrorDetail
