"""Key/value media backing the cache and the watchlist."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Volatile store, used by tests and when no cache file is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """All keys kept in one JSON document, rewritten on every change.

    An unreadable file is logged and treated as empty so a damaged cache
    never stops the dashboard from starting.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data
        self._data = {}
        try:
            if self._path.exists():
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                if isinstance(raw, dict):
                    self._data = {
                        str(k): v for k, v in raw.items() if isinstance(v, str)
                    }
                else:
                    logger.warning("Ignoring %s: expected a JSON object", self._path)
                logger.info("Loaded %d cache keys from %s", len(self._data), self._path)
        except Exception:
            logger.exception("Failed to load store from %s", self._path)
        return self._data

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._load(), indent=2), encoding="utf-8")
        except Exception:
            logger.exception("Failed to save store to %s", self._path)

    def read(self, key: str) -> str | None:
        return self._load().get(key)

    def write(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if self._load().pop(key, None) is not None:
            self._save()


__all__ = ["KeyValueStore", "MemoryStore", "JsonFileStore"]
