"""httpx-backed upstream client."""

from __future__ import annotations

import httpx

from gateway.adapters.upstream.base import (
    AbstractUpstreamClient,
    ProxyRequest,
    UpstreamConnectionError,
    UpstreamResponse,
)


class HttpxUpstreamClient(AbstractUpstreamClient):
    """Issue upstream calls through one long-lived ``httpx.AsyncClient``.

    The client keeps a connection pool for the lifetime of the process and is
    closed by the application lifespan. Redirects are not followed so the
    caller sees exactly what the external API answered.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async client.

        Args:
            timeout_seconds: Connect/read/write/pool timeout for every call.
            transport: Optional transport override (e.g., ``httpx.MockTransport`` in tests).
        """
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=False,
            transport=transport,
        )

    async def send(self, request: ProxyRequest) -> UpstreamResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                content=request.body,
            )
        except httpx.HTTPError as exc:
            raise UpstreamConnectionError(f"{type(exc).__name__}: {exc}") from exc

        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=response.headers.get("content-type"),
        )

    async def close(self) -> None:
        await self._client.aclose()
