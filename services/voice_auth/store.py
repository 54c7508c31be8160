"""
Key-value storage for enrolled voice signatures.

Signatures outlive the process through a small string key-value store,
the same shape as browser local storage: the matcher writes a trained flag
and a JSON-encoded signature list, and reads them back at startup.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String key-value persistence."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """Process-local store, used when persistence is not wanted."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Store backed by a single JSON object on disk.

    The file is created on first write. Unreadable files are treated as
    empty so a damaged store never prevents startup.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Cannot read voice store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Voice store {self.path} is not a JSON object, ignoring")
            return {}
        return data

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
