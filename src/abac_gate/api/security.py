"""Management token and security middleware for the API.

Two kinds of caller reach the API:
- End users, identified only by a session id in X-Session-Id. They may
  read their own session (/api/sessions/current) and ask for decisions
  (/api/evaluate). The session id is their bearer credential.
- The identity layer and operators, who mint, list, refresh and destroy
  sessions. They must present the management token as
  ``Authorization: Bearer <token>``.

Session management therefore never works with a session id alone: minting
a session for an arbitrary subject, or listing a subject's sessions, would
otherwise hand out credentials the Permission Gate accepts.

Token lifecycle:
- Supplied via ``abac-gate serve --token`` / ABAC_GATE_API_TOKEN, or
  generated on startup (32 bytes, hex encoded)
- No token configured: management routes refuse every request
"""

from __future__ import annotations

__all__ = [
    "MANAGEMENT_PREFIX",
    "SESSION_AUTH_ENDPOINTS",
    "SecurityMiddleware",
    "generate_token",
    "validate_token",
]

import hmac
import logging
import secrets

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from abac_gate.api.errors import ErrorCode
from abac_gate.api.schemas.errors import ErrorDetail
from abac_gate.constants import APP_NAME

_logger = logging.getLogger(f"{APP_NAME}.api")

MANAGEMENT_PREFIX = "/api/sessions"

# Under MANAGEMENT_PREFIX but authenticated by the session header instead
SESSION_AUTH_ENDPOINTS = ("/api/sessions/current",)


# =============================================================================
# Token Management
# =============================================================================


def generate_token() -> str:
    """Generate a management token.

    Returns:
        64-character hex string (32 bytes of randomness).
    """
    return secrets.token_hex(32)


def validate_token(provided: str, expected: str) -> bool:
    """Compare tokens in constant time."""
    return hmac.compare_digest(provided.encode(), expected.encode())


# =============================================================================
# Security Middleware
# =============================================================================


class SecurityMiddleware(BaseHTTPMiddleware):
    """Guards the management routes and hardens API responses.

    1. Management token for MANAGEMENT_PREFIX (except SESSION_AUTH_ENDPOINTS)
    2. Security response headers on /api/* responses

    Routes outside /api/ belong to the host application and are left to
    permission_required.
    """

    def __init__(self, app: ASGIApp, token: str | None = None) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            token: Management token. None closes the management routes.
        """
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if self._is_management_path(path) and not self._check_auth(request):
            _logger.warning(
                {
                    "event": "unauthorized_request_rejected",
                    "message": f"Rejected unauthorized request: {request.method} {path}",
                    "method": request.method,
                    "path": path,
                    "token_configured": self.token is not None,
                }
            )
            detail = ErrorDetail(code=ErrorCode.AUTH_REQUIRED.value, message="Management token required")
            response: Response = JSONResponse(
                status_code=401,
                content=detail.to_body(),
                headers={"WWW-Authenticate": "Bearer"},
            )
        else:
            response = await call_next(request)

        if path.startswith("/api/"):
            self._add_security_headers(response)
        return response

    def _is_management_path(self, path: str) -> bool:
        path = path.rstrip("/")
        if path in SESSION_AUTH_ENDPOINTS:
            return False
        return path == MANAGEMENT_PREFIX or path.startswith(MANAGEMENT_PREFIX + "/")

    def _check_auth(self, request: Request) -> bool:
        if self.token is None:
            return False
        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            return False
        return validate_token(auth_header[7:], self.token)

    def _add_security_headers(self, response: Response) -> None:
        # Session summaries and decisions must not be cached by intermediaries
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-Content-Type-Options"] = "nosniff"
