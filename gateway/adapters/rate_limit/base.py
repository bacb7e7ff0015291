"""Rate limiter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of consuming one unit of a key's budget.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 once exhausted).
        reset_at: UNIX epoch seconds at which the current window ends.
        retry_after_seconds: Seconds until the window resets, set only when rejected.
        reset_after_seconds: Seconds until the window resets, for every outcome.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    reset_after_seconds: int = 0


class AbstractRateLimiter(ABC):
    """Interface for per-key request limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume budget for ``key`` and report whether the request is allowed."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the counter of ``key``."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop state that can no longer affect a decision.

        Returns:
            Number of keys removed.
        """
        raise NotImplementedError
