"""Origin allow-list check for browser-facing routes."""

from __future__ import annotations

import logging

from fastapi import Request

from gateway.core.dependencies import client_address, get_gateway
from gateway.core.errors import OriginRejectedError

logger = logging.getLogger(__name__)

ORIGIN_REJECTED_MESSAGE = "Access denied: unauthorized origin"


def is_origin_allowed(origin: str, allowed_origins: list[str]) -> bool:
    """Exact match first, then the legacy prefix match."""
    if origin in allowed_origins:
        return True
    return any(origin.startswith(allowed) for allowed in allowed_origins)


async def validate_origin(request: Request) -> None:
    """FastAPI dependency checking ``Origin`` (or ``Referer``) in production.

    Requests without either header are allowed. Unlisted origins are logged
    and allowed under the ``audit`` policy, rejected under ``enforce``.

    Raises:
        OriginRejectedError: 403 for an unlisted origin under ``enforce``.
    """
    gateway = get_gateway(request)
    settings = gateway.settings
    if not settings.is_production:
        return

    origin = request.headers.get("origin") or request.headers.get("referer")
    if not origin:
        logger.info(
            "origin.missing",
            extra={"method": request.method, "path": request.url.path},
        )
        return

    if is_origin_allowed(origin, settings.security.allowed_origin_list):
        return

    policy = settings.security.origin_policy
    logger.warning(
        "origin.unlisted",
        extra={
            "origin": origin,
            "policy": policy,
            "client_address": client_address(request),
            "method": request.method,
            "path": request.url.path,
        },
    )
    if policy == "enforce":
        raise OriginRejectedError(
            code="origin_rejected",
            message=ORIGIN_REJECTED_MESSAGE,
            details={"address": client_address(request)},
        )
