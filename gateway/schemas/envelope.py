"""Pydantic schemas for gateway error envelopes (OpenAPI documentation)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorEnvelope(BaseModel):
    """Body of every rejection and failure response."""

    success: bool = Field(False, description="Always false for errors.")
    message: str = Field(..., description="Human-readable reason, safe to show to clients.")
    request_id: str | None = Field(
        default=None,
        description="Correlation ID, also returned in the X-Request-ID header.",
    )


class UpstreamErrorEnvelope(ErrorEnvelope):
    """Error relayed from the external API."""

    data: Any = Field(default=None, description="Upstream response body (JSON or text).")
    error: str | None = Field(
        default=None,
        description="Exception detail; only present outside production.",
    )


GATEWAY_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    403: {"model": ErrorEnvelope, "description": "Blocked client address or unauthorized origin."},
    429: {"model": ErrorEnvelope, "description": "Rate limit exceeded for the route class."},
}

PROXY_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    **GATEWAY_ERROR_RESPONSES,
    500: {"model": UpstreamErrorEnvelope, "description": "External API unreachable."},
    "4XX": {"model": UpstreamErrorEnvelope, "description": "Error status relayed from the external API."},
}
