"""JSON file-backed key-value store."""

import asyncio
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

from scan_to_sky.domain.errors import StorageError
from scan_to_sky.services.storage import KeyValueStore

_logger = logging.getLogger(__name__)

_PRIVATE_MODE = 0o600


@dataclass
class JsonFileStore(KeyValueStore):
    """Stores every key of one partition in a single JSON document.

    Writes go to a temporary file that replaces the document, so readers
    never see a partially written partition. ``private`` restricts the file
    to the owner, which is how the credential partition is kept. Deleting
    from a corrupt document discards the document.
    """

    path: Path
    private: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    async def get(self, key: str) -> object | None:
        """Return the value for a key, if present."""
        data = await asyncio.to_thread(self._locked_read)
        return data.get(key)

    async def set(self, key: str, value: object) -> None:
        """Store a value under a key."""
        await asyncio.to_thread(self._update, key, value, False)

    async def delete(self, key: str) -> None:
        """Remove a key from the partition."""
        await asyncio.to_thread(self._update, key, None, True)

    def _locked_read(self) -> dict[str, object]:
        with self._lock:
            return self._read()

    def _update(self, key: str, value: object, remove: bool) -> None:
        with self._lock:
            if remove:
                data = self._load()
                if data is None:
                    _logger.warning("Discarding corrupt storage file %s", self.path)
                    data = {}
                elif key not in data:
                    return
                data.pop(key, None)
            else:
                data = self._read()
                data[key] = value
            self._write(data)

    def _read(self) -> dict[str, object]:
        data = self._load()
        if data is None:
            raise StorageError(f"Corrupt storage file {self.path}")
        return data

    def _load(self) -> dict[str, object] | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageError(f"Failed to read {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def _write(self, data: dict[str, object]) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            if self.private:
                os.chmod(tmp_path, _PRIVATE_MODE)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write {self.path}: {exc}") from exc
