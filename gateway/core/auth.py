"""Static API key credential check.

Keys are read from the ``X-API-Key`` header or the ``api_key`` query
parameter and compared in constant time with the configured gate key.

Design principles:
- Pure validation (``validate_api_key``) separated from the FastAPI dependency
- Configuration-driven: the key comes from settings, never from code
- Secrets never logged: only a short SHA-256 prefix of a rejected key
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, Query, Request

from gateway.core.dependencies import client_address, get_gateway
from gateway.core.errors import CredentialInvalidError

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API key is required"
INVALID_KEY_MESSAGE = "Invalid API key"


def hash_api_key(api_key: str) -> str:
    """Return a short, non-reversible fingerprint of ``api_key`` for logs."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None, expected_key: str | None) -> None:
    """Validate ``provided_key`` against ``expected_key``.

    Args:
        provided_key: Key sent by the client, if any.
        expected_key: Configured gate key. When unset, every key is rejected.

    Raises:
        CredentialInvalidError: If the key is missing or does not match.
    """
    if not provided_key:
        raise CredentialInvalidError(code="api_key_missing", message=MISSING_KEY_MESSAGE)

    if not expected_key or not hmac.compare_digest(provided_key.encode(), expected_key.encode()):
        raise CredentialInvalidError(
            code="api_key_invalid",
            message=INVALID_KEY_MESSAGE,
            details={"hint": "Provide a valid key via the X-API-Key header"},
        )


async def verify_api_key(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    api_key: Annotated[str | None, Query(include_in_schema=False)] = None,
) -> None:
    """FastAPI dependency enforcing the API key in production.

    Usage:
        router = APIRouter(dependencies=[Depends(verify_api_key)])

    Raises:
        CredentialInvalidError: 401 when the key is missing or invalid.
    """
    gateway = get_gateway(request)
    if not gateway.settings.is_production:
        logger.debug("auth.skipped", extra={"reason": "not_production"})
        return

    provided = x_api_key or api_key
    try:
        validate_api_key(provided, gateway.settings.gate_api_key)
    except CredentialInvalidError as exc:
        logger.warning(
            "auth.rejected",
            extra={
                "reason": exc.code,
                "client_address": client_address(request),
                "method": request.method,
                "path": request.url.path,
                "api_key_hash": hash_api_key(provided) if provided else None,
            },
        )
        raise


async def verify_api_key_for_mutations(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    api_key: Annotated[str | None, Query(include_in_schema=False)] = None,
) -> None:
    """Require the API key on non-GET requests when configured to."""
    gateway = get_gateway(request)
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return
    if not gateway.settings.security.require_api_key_for_mutations:
        return
    await verify_api_key(request, x_api_key=x_api_key, api_key=api_key)
