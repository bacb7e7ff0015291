"""Durable storage adapters for gateway security state."""

from gateway.adapters.storage.base import AbstractBlocklistStore, BlocklistStorageError
from gateway.adapters.storage.json_file import JsonFileBlocklistStore

__all__ = [
    "AbstractBlocklistStore",
    "BlocklistStorageError",
    "JsonFileBlocklistStore",
]
