"""HTTP middleware for request correlation and response hardening.

Every request/response pair carries a request ID for log correlation:
- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and the total duration into the response headers
- Clears context after request completion to prevent context leaks

Security headers are added to every response, including rejections, and
responses of rate-limited routes carry the limiter's ``RateLimit-*`` headers.

Usage:
    app.middleware("http")(rate_limit_headers_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from gateway.core.logging import clear_request_id, set_request_id
from gateway.core.rate_limit import RATE_LIMIT_STATE_ATTR

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store, max-age=0",
}

HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the request ID header (``LOG_REQUEST_ID_HEADER``,
    default X-Request-ID), that value is used; otherwise a new UUID is
    generated. The ID is stored in contextvars for log correlation and echoed
    back in the response headers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response with request ID and duration headers added.

    Example:
        >>> # Headers: {"X-Request-ID": "req-abc-123"}
        >>> # Response includes:
        >>> # {"X-Request-ID": "req-abc-123", "X-Request-Duration-ms": "1.42"}
    """

    header_name = request.app.state.gateway.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add clickjacking, MIME sniffing, referrer and caching headers.

    ``Strict-Transport-Security`` is only sent in production.
    """

    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if request.app.state.gateway.settings.is_production:
        response.headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
    return response


async def rate_limit_headers_middleware(request: Request, call_next) -> Response:
    """Add the ``RateLimit-*`` headers recorded by the route-class limiters.

    Rejections already carry their own headers and are left untouched.
    """

    response: Response = await call_next(request)
    for name, value in getattr(request.state, RATE_LIMIT_STATE_ATTR, {}).items():
        response.headers.setdefault(name, value)
    return response
