"""Proxy forwarder: build, sign and issue upstream calls.

The forwarder is the only component that talks to the external API. It turns
an inbound request into a ``ProxyRequest`` (sanitized headers, service
credential, method-dependent query/body) and maps upstream failures onto the
gateway error taxonomy so exception handlers can render them.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable

from gateway.adapters.upstream.base import (
    AbstractUpstreamClient,
    ProxyRequest,
    UpstreamConnectionError,
    UpstreamResponse,
)
from gateway.core.errors import UpstreamError, UpstreamUnreachableError

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

# Inbound headers that are never forwarded (the gateway re-signs the call)
STRIPPED_HEADERS = HOP_BY_HOP_HEADERS | {"host", "authorization", "x-api-key", "content-length"}

DEFAULT_CONTENT_TYPE = "application/json"

UPSTREAM_ERROR_MESSAGE = "Error from external API"
UPSTREAM_UNREACHABLE_MESSAGE = "Failed to communicate with external API"


def sanitize_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Drop headers that must not reach the external API.

    Header names are lower-cased; when a name repeats, the last value wins.
    """
    sanitized: dict[str, str] = {}
    for name, value in headers:
        lowered = name.lower()
        if lowered in STRIPPED_HEADERS:
            continue
        sanitized[lowered] = value
    return sanitized


def build_upstream_url(base_url: str, path: str) -> str:
    """Join the upstream base URL and the forwarded path with a single slash."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def decode_body(content: bytes) -> Any:
    """Decode an upstream body for the error envelope: JSON when possible, else text."""
    if not content:
        return None
    try:
        return json.loads(content)
    except (ValueError, UnicodeDecodeError):
        return content.decode("utf-8", errors="replace")


class ProxyForwarder:
    """Forward permitted requests to the external API.

    No retries are attempted: a failed call is reported to the client once.
    """

    def __init__(
        self,
        client: AbstractUpstreamClient,
        *,
        base_url: str | None,
        secret_token: str | None,
        expose_error_detail: bool = False,
    ) -> None:
        """Initialize the forwarder.

        Args:
            client: Transport used for upstream calls.
            base_url: External API base URL.
            secret_token: Service credential sent as ``Authorization: ApiKey <token>``.
            expose_error_detail: Add the exception detail to error envelopes
                (development only).
        """
        self.client = client
        self.base_url = base_url
        self.secret_token = secret_token
        self.expose_error_detail = expose_error_detail

    def build_request(
        self,
        *,
        method: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        query_items: list[tuple[str, str]] | None = None,
        body: bytes | None = None,
    ) -> ProxyRequest:
        """Build the upstream call for one inbound request.

        Query parameters are forwarded only for GET and the body only for
        other methods.

        Raises:
            UpstreamUnreachableError: If no upstream base URL is configured.
        """
        if not self.base_url:
            raise UpstreamUnreachableError(
                code="upstream_not_configured",
                message=UPSTREAM_UNREACHABLE_MESSAGE,
                error_detail="EXTERNAL_API_BASE_URL is not configured" if self.expose_error_detail else None,
            )

        method = method.upper()
        forwarded = sanitize_headers(headers)
        forwarded.setdefault("content-type", DEFAULT_CONTENT_TYPE)
        if self.secret_token:
            forwarded["authorization"] = f"ApiKey {self.secret_token}"

        is_get = method == "GET"
        return ProxyRequest(
            method=method,
            url=build_upstream_url(self.base_url, path),
            headers=forwarded,
            params=(query_items or None) if is_get else None,
            body=None if is_get else (body or None),
        )

    async def forward(self, request: ProxyRequest) -> UpstreamResponse:
        """Issue ``request`` and return the upstream answer.

        Returns:
            UpstreamResponse: The upstream response when its status is below 400.

        Raises:
            UpstreamError: The external API answered with status >= 400.
            UpstreamUnreachableError: No HTTP response was obtained.
        """
        start = time.perf_counter()
        try:
            response = await self.client.send(request)
        except UpstreamConnectionError as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "proxy.upstream_unreachable",
                extra={
                    "method": request.method,
                    "upstream_url": request.url,
                    "error_msg": str(exc),
                    "duration_ms": round(duration_ms, 2),
                },
            )
            raise UpstreamUnreachableError(
                code="upstream_unreachable",
                message=UPSTREAM_UNREACHABLE_MESSAGE,
                details={"upstream_url": request.url},
                error_detail=str(exc) if self.expose_error_detail else None,
            ) from exc

        duration_ms = (time.perf_counter() - start) * 1000
        if response.is_error:
            logger.warning(
                "proxy.upstream_error",
                extra={
                    "method": request.method,
                    "upstream_url": request.url,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            raise UpstreamError(
                code="upstream_error",
                message=UPSTREAM_ERROR_MESSAGE,
                details={"upstream_url": request.url, "http_status": response.status_code},
                status_code=response.status_code,
                data=decode_body(response.content),
                error_detail=(
                    f"Upstream responded with status {response.status_code}"
                    if self.expose_error_detail
                    else None
                ),
            )

        logger.info(
            "proxy.forwarded",
            extra={
                "method": request.method,
                "upstream_url": request.url,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response

    async def close(self) -> None:
        await self.client.close()

