"""Upstream adapter layer - abstracts the HTTP transport to the external API."""

from gateway.adapters.upstream.base import (
    AbstractUpstreamClient,
    ProxyRequest,
    UpstreamConnectionError,
    UpstreamResponse,
)
from gateway.adapters.upstream.factory import create_upstream_client
from gateway.adapters.upstream.httpx_client import HttpxUpstreamClient

__all__ = [
    "AbstractUpstreamClient",
    "HttpxUpstreamClient",
    "ProxyRequest",
    "UpstreamConnectionError",
    "UpstreamResponse",
    "create_upstream_client",
]
