"""Shared request dependencies: service access, client address, blocklist check."""

from __future__ import annotations

import logging

from fastapi import Request

from gateway.core.errors import ClientBlockedError
from gateway.services.container import GatewayServices
from gateway.utils.client_address import get_client_address, is_loopback

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = (
    "Access denied: Your IP address has been blocked due to excessive rate limit violations"
)


def get_gateway(request: Request) -> GatewayServices:
    """Return the service container built by the app factory."""
    return request.app.state.gateway


def client_address(request: Request) -> str:
    """Resolve the client address once per request and memoize it on ``request.state``."""
    cached = getattr(request.state, "client_address", None)
    if cached is not None:
        return cached

    gateway = get_gateway(request)
    address = get_client_address(
        request,
        trust_forwarded_for=gateway.settings.gateway.trust_forwarded_for,
    )
    request.state.client_address = address
    return address


async def reject_blocked_clients(request: Request) -> None:
    """FastAPI dependency rejecting blocklisted addresses with 403.

    Runs before any rate limit accounting, so blocked clients never add
    violations. Loopback addresses pass outside production.

    Raises:
        ClientBlockedError: If the client address is blocked.
    """
    gateway = get_gateway(request)
    address = client_address(request)

    if not gateway.settings.is_production and is_loopback(address):
        return

    if not gateway.blocklist.is_blocked(address):
        return

    logger.warning(
        "blocklist.request_rejected",
        extra={
            "client_address": address,
            "method": request.method,
            "path": request.url.path,
        },
    )
    raise ClientBlockedError(
        code="client_blocked",
        message=BLOCKED_MESSAGE,
        details={"address": address},
    )
