"""Persistent IP blocklist.

The in-memory set is authoritative and answers the per-request membership
check. The durable store is loaded once at construction and rewritten in full
after every change. Storage trouble never reaches clients: a store that
cannot be read yields an empty blocklist (fail open), and a failed write
keeps the in-memory decision (fail closed on known addresses).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from gateway.adapters.storage.base import AbstractBlocklistStore, BlocklistStorageError

if TYPE_CHECKING:
    from gateway.services.violations import ViolationTracker

logger = logging.getLogger(__name__)


class Blocklist:
    """Set of blocked client addresses mirrored to durable storage."""

    def __init__(
        self,
        store: AbstractBlocklistStore,
        *,
        block_duration_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.block_duration_seconds = block_duration_seconds
        self._clock = clock
        self._lock = threading.RLock()
        # Serializes writes so snapshots reach the store in the order they were taken
        self._persist_lock = threading.Lock()
        self._addresses: set[str] = set()
        self.load()

    def load(self) -> None:
        """Replace the in-memory set with the store's contents."""
        try:
            addresses = self.store.load()
        except BlocklistStorageError as exc:
            logger.error(
                "blocklist.load_failed",
                extra={"error_msg": str(exc), "fallback": "empty_blocklist"},
            )
            addresses = set()

        with self._lock:
            self._addresses = set(addresses)
        logger.info("blocklist.loaded", extra={"blocked_count": len(addresses)})

    def is_blocked(self, address: str) -> bool:
        return address in self._addresses

    def add(self, address: str) -> bool:
        """Block ``address``. Idempotent.

        Returns:
            True if the address was newly added, False if it was already blocked.
        """
        with self._lock:
            if address in self._addresses:
                return False
            self._addresses.add(address)

        logger.warning("blocklist.added", extra={"client_address": address})
        self._persist()
        return True

    def remove(self, address: str) -> bool:
        """Unblock ``address``.

        Returns:
            True if the address was blocked, False otherwise.
        """
        with self._lock:
            if address not in self._addresses:
                return False
            self._addresses.discard(address)

        logger.info("blocklist.removed", extra={"client_address": address})
        self._persist()
        return True

    def blocked_addresses(self) -> list[str]:
        with self._lock:
            return sorted(self._addresses)

    def cleanup(self, tracker: ViolationTracker) -> int:
        """Unblock addresses whose violations are gone or older than the block duration.

        The store is written once, after all removals.

        Returns:
            Number of addresses removed.
        """
        now = self._clock()
        expired: list[str] = []
        for address in self.blocked_addresses():
            record = tracker.get_record(address)
            if record is None or now - record.last_violation_at > self.block_duration_seconds:
                expired.append(address)

        if not expired:
            return 0

        with self._lock:
            self._addresses.difference_update(expired)

        self._persist()
        logger.info("blocklist.cleanup", extra={"removed_count": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        return len(self._addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._addresses

    def _persist(self) -> None:
        with self._persist_lock:
            with self._lock:
                snapshot = set(self._addresses)
            try:
                self.store.save(snapshot)
            except BlocklistStorageError as exc:
                logger.error(
                    "blocklist.persist_failed",
                    extra={"error_msg": str(exc), "blocked_count": len(snapshot)},
                )
