"""Rate limiting adapters.

Route-class limiters depend on ``AbstractRateLimiter`` so the in-memory
fixed-window store can later be replaced by a shared one (e.g., Redis)
without touching the HTTP layer.
"""

from gateway.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from gateway.adapters.rate_limit.fixed_window import FixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "RateLimitResult",
]
