from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request, Response

from gateway.core.auth import verify_api_key_for_mutations
from gateway.core.dependencies import get_gateway, reject_blocked_clients
from gateway.core.errors import UpstreamError
from gateway.core.origin import validate_origin
from gateway.core.rate_limit import enforce_general_rate_limit, enforce_proxy_rate_limit
from gateway.schemas.envelope import PROXY_ERROR_RESPONSES
from gateway.services.container import GatewayServices
from gateway.services.proxy_service import decode_body
from gateway.utils.response_cache import CacheEntry, build_cache_key

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

CACHE_STATUS_HEADER = "X-Cache"

router = APIRouter(
    tags=["Proxy"],
    dependencies=[
        Depends(validate_origin),
        Depends(verify_api_key_for_mutations),
        Depends(reject_blocked_clients),
        Depends(enforce_general_rate_limit),
        Depends(enforce_proxy_rate_limit),
    ],
)


def skip_cache_requested(request: Request, header_name: str) -> bool:
    return request.headers.get(header_name, "").strip().lower() == "true"


def resource_of(path: str) -> str:
    """Return the first segment of an upstream path (``products/42`` → ``products``)."""
    return path.strip("/").split("/", 1)[0]


def _cached_response(entry: CacheEntry) -> Response:
    if entry.status >= 400:
        raise UpstreamError(
            code="upstream_error",
            message="Error from external API",
            status_code=entry.status,
            data=decode_body(entry.body),
            headers={CACHE_STATUS_HEADER: "HIT"},
        )
    return Response(
        content=entry.body,
        status_code=entry.status,
        media_type=entry.media_type,
        headers={CACHE_STATUS_HEADER: "HIT"},
    )


async def relay(
    request: Request,
    gateway: GatewayServices,
    upstream_path: str,
    *,
    cacheable: bool,
) -> Response:
    """Forward ``request`` to ``upstream_path`` and relay the answer.

    GET requests on cacheable routes are served from the response cache when
    possible and stored after a successful upstream call. The cache is never
    consulted or written for other methods.

    Args:
        request: Inbound request.
        gateway: Service container.
        upstream_path: Path appended to the upstream base URL.
        cacheable: Whether the route uses the response cache at all.

    Returns:
        Response: Upstream status, body and content type.

    Raises:
        UpstreamError: The external API answered with an error status.
        UpstreamUnreachableError: The external API could not be reached.
    """
    cache_settings = gateway.settings.cache
    method = request.method.upper()
    query_items = list(request.query_params.multi_items())

    cache_key: str | None = None
    if (
        cacheable
        and method == "GET"
        and cache_settings.enabled
        and not skip_cache_requested(request, cache_settings.bypass_header)
    ):
        cache_key = build_cache_key(method, upstream_path, query_items)
        entry = gateway.cache.get(cache_key)
        if entry is not None:
            return _cached_response(entry)

    body = None if method == "GET" else await request.body()
    upstream_request = gateway.forwarder.build_request(
        method=method,
        path=upstream_path,
        headers=request.headers.items(),
        query_items=query_items,
        body=body,
    )

    try:
        upstream = await gateway.forwarder.forward(upstream_request)
    except UpstreamError as exc:
        if cache_key is not None:
            exc.headers[CACHE_STATUS_HEADER] = "MISS"
        if cache_key is not None and cache_settings.store_error_responses:
            gateway.cache.set(
                cache_key,
                path=upstream_path,
                status=exc.status_code,
                body=json.dumps(exc.data).encode(),
                media_type="application/json",
            )
        raise

    headers: dict[str, str] = {}
    if cache_key is not None:
        headers[CACHE_STATUS_HEADER] = "MISS"
        if upstream.is_success or cache_settings.store_error_responses:
            gateway.cache.set(
                cache_key,
                path=upstream_path,
                status=upstream.status_code,
                body=upstream.content,
                media_type=upstream.media_type,
            )

    if (
        cacheable
        and method != "GET"
        and upstream.is_success
        and cache_settings.enabled
        and cache_settings.invalidate_on_mutation
    ):
        resource = resource_of(upstream_path)
        if resource:
            gateway.cache.clear(resource)

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.media_type,
        headers=headers,
    )


@router.api_route(
    "/{path:path}",
    methods=PROXY_METHODS,
    responses=PROXY_ERROR_RESPONSES,
)
async def proxy_request(path: str, request: Request) -> Response:
    """Forward a request to ``<EXTERNAL_API_BASE_URL>/<path>``.

    The upstream credential is attached server-side; the client's own
    ``Authorization`` and ``X-API-Key`` headers are never forwarded. GET
    responses are cached for ``CACHE_TTL_SECONDS`` unless the request carries
    ``X-Skip-Cache: true``.
    """
    return await relay(request, get_gateway(request), path, cacheable=True)
