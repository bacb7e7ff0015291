"""Blocklist storage interface.

The blocklist service keeps the authoritative set in memory and uses a store
only to survive restarts: the whole set is read once at startup and written
back wholesale after every change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable


class BlocklistStorageError(RuntimeError):
    """Raised when the durable blocklist cannot be read or written."""


class AbstractBlocklistStore(ABC):
    """Interface for durable blocklist stores."""

    @abstractmethod
    def load(self) -> set[str]:
        """Return every persisted address.

        A store that does not exist yet must be created and reported as empty.

        Raises:
            BlocklistStorageError: If the store exists but cannot be read or parsed.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, addresses: Iterable[str]) -> None:
        """Replace the persisted contents with ``addresses``.

        Raises:
            BlocklistStorageError: If the write fails.
        """
        raise NotImplementedError
