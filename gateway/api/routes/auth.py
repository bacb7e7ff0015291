from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from gateway.api.routes.proxy import PROXY_METHODS, relay
from gateway.core.dependencies import get_gateway, reject_blocked_clients
from gateway.core.origin import validate_origin
from gateway.core.rate_limit import enforce_auth_rate_limit, enforce_general_rate_limit
from gateway.schemas.envelope import PROXY_ERROR_RESPONSES

router = APIRouter(
    tags=["Auth"],
    dependencies=[
        Depends(validate_origin),
        Depends(reject_blocked_clients),
        Depends(enforce_general_rate_limit),
        Depends(enforce_auth_rate_limit),
    ],
)


@router.api_route("/{path:path}", methods=PROXY_METHODS, responses=PROXY_ERROR_RESPONSES)
async def auth_request(path: str, request: Request) -> Response:
    """Forward a login/signup call to ``<EXTERNAL_API_BASE_URL>/auth/<path>``.

    Protected by the strict auth limiter (5 per hour by default); every
    rejection counts twice towards blocking. Responses are never cached.
    """
    gateway = get_gateway(request)
    prefix = gateway.settings.gateway.auth_upstream_path.strip("/")
    upstream_path = f"{prefix}/{path.lstrip('/')}" if prefix else path
    return await relay(request, gateway, upstream_path, cacheable=False)
