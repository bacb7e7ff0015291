"""Rate limit violation tracking.

Every rejected request is reported to a ``ViolationSink``. The tracker keeps
one record per client address; a record that stays untouched for the
tracking TTL is forgotten as a whole. When a record reaches the threshold the
address is handed to the blocklist, which outlives the record.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from gateway.services.blocklist import Blocklist
from gateway.utils.client_address import is_loopback

logger = logging.getLogger(__name__)


class ViolationSink(ABC):
    """Capability that receives rate limit breaches."""

    @abstractmethod
    def register_violation(self, address: str) -> None:
        """Record one breach by ``address``."""
        raise NotImplementedError


class NoopViolationSink(ViolationSink):
    """Sink used when blocking is disabled: breaches are only rejected, never escalated."""

    def register_violation(self, address: str) -> None:
        return None


@dataclass(frozen=True)
class ViolationRecord:
    address: str
    count: int
    last_violation_at: float
    expires_at: float


class ViolationTracker(ViolationSink):
    """Count breaches per address with a rolling TTL and escalate to the blocklist."""

    def __init__(
        self,
        blocklist: Blocklist,
        *,
        threshold: int = 5,
        ttl_seconds: int = 24 * 60 * 60,
        exempt_loopback: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the tracker.

        Args:
            blocklist: Blocklist receiving addresses that reach the threshold.
            threshold: Breaches before an address is blocked.
            ttl_seconds: Idle time after which a record is deleted.
            exempt_loopback: Ignore loopback addresses (development mode).
            clock: Time source returning UNIX time in seconds.
        """
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        self.blocklist = blocklist
        self.threshold = threshold
        self.ttl_seconds = ttl_seconds
        self.exempt_loopback = exempt_loopback
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, ViolationRecord] = {}

    def register_violation(self, address: str) -> None:
        if self.exempt_loopback and is_loopback(address):
            return

        now = self._clock()
        with self._lock:
            current = self._live_record_locked(address, now)
            count = current.count + 1 if current else 1
            record = ViolationRecord(
                address=address,
                count=count,
                last_violation_at=now,
                expires_at=now + self.ttl_seconds,
            )
            self._records[address] = record

        logger.warning(
            "violation.registered",
            extra={"client_address": address, "violation_count": count, "threshold": self.threshold},
        )

        # Outside the lock: the blocklist persists to disk on insert
        if count >= self.threshold:
            self.blocklist.add(address)

    def get_record(self, address: str) -> ViolationRecord | None:
        """Return the live record of ``address`` (expired records count as absent)."""
        with self._lock:
            return self._live_record_locked(address, self._clock())

    def reset(self, address: str) -> bool:
        with self._lock:
            return self._records.pop(address, None) is not None

    def purge_expired(self) -> int:
        """Delete every record whose TTL elapsed. Returns the number deleted."""
        now = self._clock()
        with self._lock:
            expired = [address for address, record in self._records.items() if record.expires_at <= now]
            for address in expired:
                del self._records[address]
        if expired:
            logger.debug("violation.records_expired", extra={"expired": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _live_record_locked(self, address: str, now: float) -> ViolationRecord | None:
        record = self._records.get(address)
        if record is None:
            return None
        if record.expires_at <= now:
            del self._records[address]
            return None
        return record
