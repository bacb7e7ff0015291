"""In-memory TTL cache for upstream GET responses.

Thread-safe, bounded (LRU) and deliberately copy-free: stored bodies are
returned by reference, so callers must treat them as read-only. The interface
is small enough to move to Redis without touching the proxy route.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached upstream response."""

    key: str
    path: str
    status: int
    body: bytes
    media_type: str | None
    expires_at: float


def build_cache_key(method: str, path: str, query_items: Iterable[tuple[str, str]]) -> str:
    """Build the cache key ``"{method}:{path}:{query json}"``.

    Query parameters are serialized as a JSON object in the order received;
    a repeated parameter becomes a list. Parameter order is not normalized,
    so ``?a=1&b=2`` and ``?b=2&a=1`` produce different keys.

    Args:
        method: HTTP method (lower-cased in the key).
        path: Upstream path exactly as requested.
        query_items: Query parameters as ``(name, value)`` pairs.

    Returns:
        The cache key string.
    """

    query: dict[str, str | list[str]] = {}
    for name, value in query_items:
        if name not in query:
            query[name] = value
            continue
        existing = query[name]
        if isinstance(existing, list):
            existing.append(value)
        else:
            query[name] = [existing, value]

    serialized = json.dumps(query, separators=(",", ":"), ensure_ascii=False)
    return f"{method.lower()}:{path}:{serialized}"


def _normalize_path(path: str) -> str:
    return path.strip("/")


class ResponseCache:
    """Thread-safe TTL cache with LRU eviction and path-based invalidation.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_entries: int | None = 1024,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ResponseCache(ttl_seconds={self.ttl_seconds}, max_entries={self.max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses})"
        )

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or None when absent or expired."""

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            if entry.expires_at <= self._clock():
                self._evict_locked(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": key})
            return entry

    def set(
        self,
        key: str,
        *,
        path: str,
        status: int,
        body: bytes,
        media_type: str | None = None,
    ) -> CacheEntry:
        """Store a response for ``ttl_seconds``. The last writer for a key wins."""

        entry = CacheEntry(
            key=key,
            path=_normalize_path(path),
            status=status,
            body=body,
            media_type=media_type,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._store[key] = entry
            self._store.move_to_end(key)
            self._evict_over_capacity_locked()

        logger.debug(
            "cache.set",
            extra={"cache_key": key, "status_code": status, "size": len(self._store), "ttl_s": self.ttl_seconds},
        )
        return entry

    def clear(self, path: str | None = None) -> int:
        """Invalidate cached responses.

        Args:
            path: When given, remove entries whose path is ``path`` or lies
                beneath it (``path/...``). When omitted, flush everything.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            if path is None:
                removed = len(self._store)
                self._store.clear()
            else:
                prefix = _normalize_path(path)
                keys = [
                    key
                    for key, entry in self._store.items()
                    if entry.path == prefix or entry.path.startswith(prefix + "/")
                ]
                for key in keys:
                    del self._store[key]
                removed = len(keys)

        logger.info("cache.cleared", extra={"cache_path": path, "removed": removed})
        return removed

    def purge_expired(self) -> int:
        """Evict every expired entry. Returns the number evicted."""

        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if entry.expires_at <= now]
            for key in expired:
                self._evict_locked(key)
        return len(expired)

    def stats(self) -> dict[str, int | None]:
        """Return cache counters without exposing stored values."""

        with self._lock:
            return {
                "ttl_seconds": self.ttl_seconds,
                "max_entries": self.max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._store.keys())

    def _evict_locked(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_over_capacity_locked(self) -> None:
        if self.max_entries is None:
            return
        while len(self._store) > self.max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
