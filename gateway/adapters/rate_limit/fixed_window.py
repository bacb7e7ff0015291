"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock guards the per-key counters; each critical section is a
  single read-modify-write.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from gateway.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _Window:
    start: int
    count: int


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Count requests per key inside fixed, epoch-aligned windows.

    A window of ``window_seconds`` starts at every multiple of
    ``window_seconds`` since the epoch; counters reset at those boundaries
    rather than sliding with each request.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        name: str = "default",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            limit: Maximum number of units allowed per window.
            window_seconds: Window length in seconds.
            name: Route class this limiter serves (used in logs and headers).
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, _Window] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FixedWindowRateLimiter(name={self.name!r}, limit={self.limit}, "
            f"window_seconds={self.window_seconds}, keys={len(self._windows)})"
        )

    def _window_start(self, now: float) -> int:
        return int(now // self.window_seconds) * self.window_seconds

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume budget for ``key``.

        Rejected requests do not consume budget, so the counter never exceeds
        ``limit`` within a window.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        start = self._window_start(now)
        reset_at = start + self.window_seconds
        reset_after = max(0, int(math.ceil(reset_at - now)))

        with self._lock:
            window = self._windows.get(key)
            if window is None or window.start != start:
                window = _Window(start=start, count=0)
                self._windows[key] = window

            if window.count + cost <= self.limit:
                window.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self.limit,
                    remaining=self.limit - window.count,
                    reset_at=reset_at,
                    retry_after_seconds=None,
                    reset_after_seconds=reset_after,
                )
            remaining = max(0, self.limit - window.count)

        return RateLimitResult(
            allowed=False,
            limit=self.limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=reset_after,
            reset_after_seconds=reset_after,
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def sweep(self) -> int:
        """Remove counters belonging to windows that have already ended."""
        current = self._window_start(self._clock())
        with self._lock:
            stale = [key for key, window in self._windows.items() if window.start != current]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)
