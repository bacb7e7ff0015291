"""Global exception handlers for consistent error responses.

Every rejection and failure is rendered as the gateway envelope::

    {"success": false, "message": "...", "request_id": "..."}

Design:
- AppError subclasses → status from ``STATUS_BY_ERROR`` (401, 403, 404, 429, ...)
- UpstreamError → upstream status, upstream body under ``data``
- FastAPI request validation → 400
- Unexpected Exception → generic 500 (safety net, no detail leaked)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.core.errors import (
    AppError,
    ClientBlockedError,
    CredentialInvalidError,
    NotFoundAppError,
    OriginRejectedError,
    RateLimitedError,
    UpstreamError,
    UpstreamUnreachableError,
    ValidationAppError,
)
from gateway.core.logging import get_request_id

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AppError], int] = {
    ValidationAppError: 400,
    CredentialInvalidError: 401,
    ClientBlockedError: 403,
    OriginRejectedError: 403,
    NotFoundAppError: 404,
    RateLimitedError: 429,
    UpstreamUnreachableError: 500,
}


def error_envelope(message: str, **extra: Any) -> dict[str, Any]:
    """Build the rejection body shared by all error responses."""
    content: dict[str, Any] = {
        "success": False,
        "message": message,
        "request_id": get_request_id(),
    }
    content.update({key: value for key, value in extra.items() if value is not None})
    return content


def status_for(exc: AppError) -> int:
    if isinstance(exc, UpstreamError):
        return exc.status_code
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle gateway errors with the envelope and the mapped status.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the envelope and any error-specific headers.
    """
    status_code = status_for(exc)

    logger.info(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "method": request.method,
            "path": request.url.path,
        },
    )

    headers: dict[str, str] | None = None
    extra: dict[str, Any] = {}
    if isinstance(exc, RateLimitedError):
        headers = exc.headers or None
    elif isinstance(exc, UpstreamError):
        headers = exc.headers or None
        extra = {"error": exc.error_detail}
    elif isinstance(exc, UpstreamUnreachableError):
        extra = {"error": exc.error_detail}

    content = error_envelope(exc.message, **extra)
    if isinstance(exc, UpstreamError):
        # Relayed as-is, even when the upstream body is empty or null
        content["data"] = exc.data

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as 400 envelopes."""
    logger.info(
        "request_validation_failed",
        extra={"method": request.method, "path": request.url.path, "error_count": len(exc.errors())},
    )
    return JSONResponse(
        status_code=400,
        content=error_envelope("Invalid request", errors=jsonable_encoder(exc.errors())),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method) as envelopes."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=error_envelope("An unexpected error occurred. Please try again later."),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
