"""API middleware: CORS, request logging, and error handling.

Starlette middleware is a stack (last added, first executed).  main.py
adds ErrorHandlingMiddleware first and RequestLoggingMiddleware second,
so the request flows RequestLogging -> ErrorHandling -> route and the
logging middleware sees the final status code after errors have been
converted to JSON.

Application errors are converted by exception handlers registered with
:func:`install_error_handlers`; ErrorHandlingMiddleware is the last line
for anything unexpected.  Either way the client receives
``{"error": message}`` and never a stack trace.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from initiative_rag.api.schemas import ErrorResponse
from initiative_rag.utils.errors import InitiativeRAGError
from initiative_rag.utils.logging import bind_request_context, clear_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the JSON error body used by every failure path."""
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; set ``CORS_ORIGINS`` in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    A ``request_id`` is bound to the structlog context for the lifetime of
    the request so every event the request emits can be correlated.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        bind_request_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )
            clear_request_context()


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


async def _handle_application_error(request: Request, exc: InitiativeRAGError) -> JSONResponse:
    log = _logger.warning if exc.http_status < 500 else _logger.error
    log(
        "application_error",
        error_type=type(exc).__name__,
        message=exc.message,
        provider=exc.provider_name,
        status=exc.http_status,
        retryable=exc.retryable,
        path=str(request.url.path),
    )
    return error_response(exc.http_status, exc.message)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid request')}" if field else "invalid request"
    _logger.warning("request_validation_failed", path=str(request.url.path), detail=message)
    return error_response(400, message)


def install_error_handlers(app: FastAPI) -> None:
    """Map application errors and request validation failures to ``{"error": ...}``."""
    app.add_exception_handler(InitiativeRAGError, _handle_application_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert anything that escaped the exception handlers into a 500.

    The stack trace is logged server-side; the client only sees
    ``{"error": "Internal server error"}``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except InitiativeRAGError as exc:
            return await _handle_application_error(request, exc)
        except Exception:
            _logger.exception(
                "unhandled_error",
                method=request.method,
                path=str(request.url.path),
            )
            return error_response(500, "Internal server error")
