"""
Shared API Middleware
======================

Request tracing, access logging and the exception handlers that turn the
application exception taxonomy into JSON error bodies.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.core import (
    ApplicationException,
    ConfigUnavailableException,
    DomainException,
    ValidationException,
)
from src.shared.infrastructure.logging import bind_correlation_id, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation ID.

    The caller's header wins; otherwise a UUID4 is minted. The ID is bound
    to the logging context for the rest of the request and echoed back.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)

        try:
            response = await call_next(request)
        finally:
            bind_correlation_id(None)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access log line per request, with status and elapsed time."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        context = {
            "correlation_id": _correlation_id(request),
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            context["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.error("Request raised", extra={**context, "error": str(e)})
            raise

        context["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)
        context["status_code"] = response.status_code
        logger.info("Request served", extra=context)
        return response


def _error_body(request: Request, detail: str, details: Optional[dict] = None) -> dict:
    return {
        "detail": detail,
        "details": details or {},
        "correlation_id": _correlation_id(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def status_code_for(exc: ApplicationException) -> int:
    """HTTP status for an application exception."""
    if isinstance(exc, ValidationException):
        return 422
    if isinstance(exc, ConfigUnavailableException):
        return 404
    if isinstance(exc, DomainException):
        return 409
    return 400


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning(
        exc.message,
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "exception": type(exc).__name__,
            "status_code": status_code,
        }
    )
    return JSONResponse(status_code=status_code, content=_error_body(request, exc.message, exc.details))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler for anything the application did not anticipate.

    The exception text is only echoed back in development.
    """
    logger.exception(
        "Unhandled exception",
        extra={
            "correlation_id": _correlation_id(request),
            "method": request.method,
            "path": request.url.path,
            "exception": type(exc).__name__,
        }
    )

    settings = getattr(request.app.state, "settings", None)
    body = _error_body(request, "Internal server error")
    body["debug_info"] = str(exc) if getattr(settings, "environment", None) == "development" else None
    return JSONResponse(status_code=500, content=body)
