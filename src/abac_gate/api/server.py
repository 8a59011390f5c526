"""FastAPI server exposing sessions and decision evaluation.

Currently implements:
- Sessions API (/api/sessions) - Session Snapshot lifecycle
- Evaluate API (/api/evaluate) - decision explanation for the caller's session

Security:
- Session management (/api/sessions/*): management token as Bearer
- /api/sessions/current and /api/evaluate: X-Session-Id only
- /api/* responses: no-store and nosniff headers

Host applications protect their own routes with
deps.permission_required(resource_type, action_type) against the same
app.state.service.

Usage:
    service = build_service(config)
    app = create_app(service, token=generate_token(), owns_service=True)

    For standalone development:
        uv run abac-gate serve --port 8766
"""

from __future__ import annotations

__all__ = ["create_app"]

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from abac_gate.bootstrap import AbacService
from abac_gate.exceptions import PolicyResolutionFailure

from .errors import (
    APIError,
    api_error_handler,
    http_exception_handler,
    resolution_failure_handler,
    validation_error_handler,
)
from .routes import evaluate, sessions
from .security import SecurityMiddleware


def create_app(
    service: AbacService,
    *,
    token: str | None = None,
    owns_service: bool = False,
) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        service: Built authorization service, stored on app.state.service.
        token: Management token for the session management routes. If None,
            those routes reject every request; end-user routes still work.
        owns_service: Close the service when the app shuts down.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_service:
            service.close()

    app = FastAPI(
        title="abac-gate API",
        description="Session and authorization API for abac-gate",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.service = service

    app.add_middleware(SecurityMiddleware, token=token)

    # Register exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(PolicyResolutionFailure, resolution_failure_handler)

    # Mount API routes
    app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
    app.include_router(evaluate.router, prefix="/api/evaluate", tags=["evaluate"])

    return app
