from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class UpstreamConnectionError(RuntimeError):
    """Raised when the external API cannot be reached (connect error, timeout, protocol error)."""


@dataclass(frozen=True)
class ProxyRequest:
    """A single upstream call. Never persisted; lives for one request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: list[tuple[str, str]] | None = None
    body: bytes | None = None


@dataclass(frozen=True)
class UpstreamResponse:
    """What the external API answered."""

    status_code: int
    content: bytes
    media_type: str | None = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


class AbstractUpstreamClient(ABC):
    """Interface for clients that issue ``ProxyRequest`` calls."""

    @abstractmethod
    async def send(self, request: ProxyRequest) -> UpstreamResponse:
        """Issue the call and return the upstream answer, whatever its status.

        Raises:
            UpstreamConnectionError: If no HTTP response was obtained.
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
