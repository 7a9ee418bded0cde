"""
API middleware stack.

- Request ID injection (X-Request-ID header, bound into log context)
- Structured request/response logging
- Exception handlers for timer errors and unhandled failures
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import Environment, get_settings
from shared.utils.logging import get_logger
from scorer.store import MatchNotFound
from scorer.timer_control import InvalidTimerTransition

logger = get_logger(__name__)

_QUIET_PATHS = ("/health", "/ready", "/metrics")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Injects a unique X-Request-ID header into every request/response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one structured line per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=path,
            status=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            client=request.client.host if request.client else "unknown",
        )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers mapping domain errors to HTTP responses."""

    @app.exception_handler(InvalidTimerTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTimerTransition) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "error": "invalid_timer_transition",
                "message": str(exc),
                "command": exc.command.value,
                "status": exc.status.value,
            },
        )

    @app.exception_handler(MatchNotFound)
    async def match_not_found_handler(request: Request, exc: MatchNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            },
        )


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    origins = settings.cors_origins
    if settings.environment == Environment.PRODUCTION and origins == ["*"]:
        logger.warning("cors_wildcard_in_production")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> FastAPI:
    """Apply all middleware to the FastAPI app in the correct order."""
    setup_cors(app)
    # Last added runs first: the request id is bound before the access log line.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_exception_handlers(app)
    return app
