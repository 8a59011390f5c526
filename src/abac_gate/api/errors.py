"""Structured API errors.

Every error the API returns, whether raised by a route, by a dependency
(permission_required, require_session), by request validation or by a
store/cache outage, is rendered as:

    {
        "detail": {
            "code": "AUTH_FORBIDDEN",
            "message": "Insufficient permissions. Cannot publish entries"
        }
    }

Routes raise APIError with an ErrorCode; the handlers registered in
server.create_app() take care of the rest.
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "http_exception_handler",
    "resolution_failure_handler",
    "validation_error_handler",
]

import logging
from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from abac_gate.api.schemas.errors import ErrorDetail, ValidationErrorItem
from abac_gate.constants import APP_NAME
from abac_gate.exceptions import PolicyResolutionFailure

_logger = logging.getLogger(f"{APP_NAME}.api")


class ErrorCode(str, Enum):
    """Error codes clients can branch on.

    - AUTH_*: the Permission Gate said no, or could not answer
    - SESSION_* / SUBJECT_*: lookups by id
    - everything else: generic HTTP failures
    """

    # Gate outcomes (401, 403, 503)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    AUTH_UNAVAILABLE = "AUTH_UNAVAILABLE"

    # Lookups (404)
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SUBJECT_NOT_FOUND = "SUBJECT_NOT_FOUND"

    # Generic
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    403: ErrorCode.AUTH_FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    503: ErrorCode.AUTH_UNAVAILABLE,
}


class APIError(HTTPException):
    """HTTPException carrying an ErrorCode and a caller-safe message.

    Attributes:
        code: Error code.
        error_detail: The body's ``detail`` object.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize structured API error.

        Args:
            status_code: HTTP status code.
            code: Error code.
            message: Caller-safe message.
            details: Identifiers worth echoing back (session_id, subject_id).
            headers: Extra response headers (e.g. WWW-Authenticate on 401).
        """
        self.code = code
        self.error_detail = ErrorDetail(code=code.value, message=message, details=details or None)
        super().__init__(
            status_code=status_code,
            detail=self.error_detail.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError, keeping its headers."""
    return JSONResponse(status_code=exc.status_code, content=exc.error_detail.to_body(), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 422 VALIDATION_ERROR.

    A single failure is summarized as ``<field>: <msg>`` (the "body" prefix
    is dropped); several are summarized by count. The full list is always
    included under validation_errors.
    """
    items = [
        ValidationErrorItem(loc=list(e.get("loc", [])), msg=e.get("msg", ""), type=e.get("type", ""))
        for e in exc.errors()
    ]

    if len(items) == 1:
        field_name = ".".join(str(part) for part in items[0].loc if part != "body")
        message = f"{field_name}: {items[0].msg}" if field_name else items[0].msg
    else:
        message = f"{len(items)} validation errors" if items else "Validation error"

    detail = ErrorDetail(
        code=ErrorCode.VALIDATION_ERROR.value,
        message=message,
        validation_errors=items,
    )
    return JSONResponse(status_code=422, content=detail.to_body())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render plain HTTPExceptions (unknown routes, wrong methods, missing state).

    Already-structured details (an APIError that reached this handler) pass
    through unchanged.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc, APIError):
        return JSONResponse(status_code=exc.status_code, content=exc.error_detail.to_body(), headers=headers)

    detail = ErrorDetail(
        code=_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR).value,
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code}",
    )
    return JSONResponse(status_code=exc.status_code, content=detail.to_body(), headers=headers)


async def resolution_failure_handler(request: Request, exc: PolicyResolutionFailure) -> JSONResponse:
    """Map store/cache unavailability to 503 AUTH_UNAVAILABLE.

    Management routes call the session manager directly; any store or cache
    failure they hit surfaces here instead of as a 500.
    """
    _logger.error(
        {
            "event": "api_resolution_failure",
            "message": "Authorization data unavailable",
            "failure_type": exc.failure_type,
            "path": request.url.path,
        }
    )
    detail = ErrorDetail(
        code=ErrorCode.AUTH_UNAVAILABLE.value,
        message="Authorization service unavailable",
    )
    return JSONResponse(status_code=503, content=detail.to_body())
