"""Factory for the upstream client used by the proxy forwarder."""

from __future__ import annotations

import httpx

from gateway.adapters.upstream.base import AbstractUpstreamClient
from gateway.adapters.upstream.httpx_client import HttpxUpstreamClient
from gateway.core.config import UpstreamSettings


def create_upstream_client(
    upstream: UpstreamSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AbstractUpstreamClient:
    """Build the upstream client from configuration.

    Args:
        upstream: Upstream settings (timeout is the only transport concern here;
            URL and credential are applied per request by the forwarder).
        transport: Optional httpx transport override.

    Returns:
        AbstractUpstreamClient: Configured client instance.
    """
    return HttpxUpstreamClient(
        timeout_seconds=upstream.timeout_seconds,
        transport=transport,
    )
