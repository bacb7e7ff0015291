"""JSON file blocklist store.

The file holds a JSON array of address strings. Writes go to a sibling
temporary file that is then renamed over the target, so a crash mid-write
leaves either the old or the new array on disk, never a truncated one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from gateway.adapters.storage.base import AbstractBlocklistStore, BlocklistStorageError

logger = logging.getLogger(__name__)


class JsonFileBlocklistStore(AbstractBlocklistStore):
    """Persist the blocklist as a JSON array in a flat file."""

    def __init__(self, file_path: str | Path) -> None:
        self.file_path = Path(file_path)

    def load(self) -> set[str]:
        if not self.file_path.exists():
            self.save([])
            logger.info("blocklist_store.created", extra={"file_path": str(self.file_path)})
            return set()

        try:
            raw = self.file_path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BlocklistStorageError(f"Unable to read blocklist file: {exc}") from exc

        if not isinstance(data, list):
            raise BlocklistStorageError(
                f"Blocklist file must contain a JSON array, found {type(data).__name__}"
            )

        valid = [item for item in data if isinstance(item, str) and item]
        addresses = set(valid)
        dropped = len(data) - len(valid)
        if dropped:
            logger.warning(
                "blocklist_store.invalid_entries_dropped",
                extra={"file_path": str(self.file_path), "dropped": dropped},
            )
        return addresses

    def save(self, addresses: Iterable[str]) -> None:
        payload = json.dumps(sorted(addresses))
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=f".{self.file_path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, self.file_path)
            except BaseException:
                # Leave no stray temp file behind on failure
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise BlocklistStorageError(f"Unable to write blocklist file: {exc}") from exc
