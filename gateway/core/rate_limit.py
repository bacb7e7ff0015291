"""Route-class rate limiting dependencies.

This module wires the fixed-window limiters of the service container into the
HTTP layer. Each route class (general, proxy, auth) has its own limiter and
its own message; counters are never shared between classes.

Rate limiting strategy:
- One fixed window per client address and route class.
- Every rejection is reported to the violation sink (auth class: twice),
  which escalates repeat offenders to the blocklist.
- Only the general class may be skipped, and only outside production for
  recognised developer tools.
"""

from __future__ import annotations

import logging

from fastapi import Request

from gateway.adapters.rate_limit import RateLimitResult
from gateway.core.dependencies import client_address, get_gateway
from gateway.core.errors import RateLimitedError
from gateway.services.container import AUTH, GENERAL, PROXY

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGES = {
    GENERAL: "Too many requests, please try again later.",
    PROXY: "Too many proxy requests, please try again later.",
    AUTH: "Too many login attempts, please try again later.",
}

# Failed login bursts escalate twice as fast
VIOLATIONS_PER_REJECTION = {
    GENERAL: 1,
    PROXY: 1,
    AUTH: 2,
}


# Request-state attribute read by ``rate_limit_headers_middleware``
RATE_LIMIT_STATE_ATTR = "rate_limit_headers"


def is_dev_tool(user_agent: str | None, tokens: list[str]) -> bool:
    """Return True if ``user_agent`` contains one of the developer tool ``tokens``."""
    if not user_agent:
        return False
    lowered = user_agent.lower()
    return any(token.lower() in lowered for token in tokens)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard ``RateLimit-*`` headers describing ``result``'s window."""
    return {
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining),
        "RateLimit-Reset": str(result.reset_after_seconds),
    }


def _enforce(request: Request, route_class: str) -> None:
    gateway = get_gateway(request)
    settings = gateway.settings
    address = client_address(request)

    result = gateway.limiters[route_class].consume(address)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "route_class": route_class,
                "client_address": address,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        if settings.rate_limit.include_headers:
            # Later (narrower) route classes overwrite the general window
            setattr(request.state, RATE_LIMIT_STATE_ATTR, rate_limit_headers(result))
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "route_class": route_class,
            "client_address": address,
            "method": request.method,
            "path": request.url.path,
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )

    for _ in range(VIOLATIONS_PER_REJECTION[route_class]):
        gateway.violations.register_violation(address)

    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers.update(rate_limit_headers(result))

    raise RateLimitedError(
        code="rate_limited",
        message=RATE_LIMIT_MESSAGES[route_class],
        details={"address": address, "route_class": route_class, "retry_after": retry_after},
        headers=headers,
    )


async def enforce_general_rate_limit(request: Request) -> None:
    """FastAPI dependency for the general limiter (all gateway routes).

    Raises:
        RateLimitedError: 429 when the client exceeded the general window.
    """
    settings = get_gateway(request).settings
    if not settings.is_production and is_dev_tool(
        request.headers.get("user-agent"), settings.rate_limit.dev_tool_tokens
    ):
        logger.debug("rate_limit.skipped", extra={"route_class": GENERAL, "reason": "dev_tool"})
        return
    _enforce(request, GENERAL)


async def enforce_proxy_rate_limit(request: Request) -> None:
    """FastAPI dependency for the proxy limiter. Never skipped."""
    _enforce(request, PROXY)


async def enforce_auth_rate_limit(request: Request) -> None:
    """FastAPI dependency for the auth limiter. Never skipped."""
    _enforce(request, AUTH)
