"""Application-level exception types.

This module defines the gateway's rejection and failure taxonomy, enabling
consistent error handling, logging, and API responses. The HTTP status each
error maps to is resolved in ``gateway.core.exception_handlers``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent without forcing every
    error to fill all of them.
    """

    code: str
    message: str
    hint: str
    address: str
    route_class: str
    http_status: int
    retry_after: float
    upstream_url: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for gateway failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (safe to show to clients).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class NotFoundAppError(AppError):
    """Raised when an addressed resource (blocklist entry, violation record) does not exist."""


class CredentialInvalidError(AppError):
    """Raised when a static API key is missing or does not match."""


class OriginRejectedError(AppError):
    """Raised when the request origin is not allow-listed and the policy is 'enforce'."""


class ClientBlockedError(AppError):
    """Raised when the client address is on the blocklist."""


@dataclass
class RateLimitedError(AppError):
    """Raised when a route-class limiter rejects a request.

    Attributes:
        headers: Rate limit headers to attach to the 429 response.
    """

    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class UpstreamError(AppError):
    """Raised when the external API answered with an HTTP error status.

    Attributes:
        status_code: Status returned by the external API, relayed to the client.
        data: Upstream response body (decoded JSON when possible).
        error_detail: Internal detail string, exposed only outside production.
        headers: Extra response headers (e.g. ``X-Cache`` on a replayed entry).
    """

    status_code: int = 502
    data: Any = None
    error_detail: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class UpstreamUnreachableError(AppError):
    """Raised when the external API could not be reached (network error or timeout)."""

    error_detail: str | None = None
