"""Timestamped cache on top of a key/value store."""

from __future__ import annotations

import json
import logging
import time
from typing import Callable

from .models.cache import CacheEntry
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "cache:"


def make_key(kind: str, ident: str, param: object | None = None) -> str:
    """Build a composite cache key such as ``chart:bitcoin:7``."""
    parts = [kind, str(ident).strip().lower()]
    if param is not None:
        parts.append(str(param))
    return ":".join(parts)


class CacheStore:
    """Persist ``{value, storedAt}`` records and judge their freshness.

    ``clock`` must be wall-clock time (seconds) because entries outlive the
    process when the store is file backed.
    """

    def __init__(
        self, store: KeyValueStore, clock: Callable[[], float] = time.time
    ) -> None:
        self._store = store
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> CacheEntry | None:
        raw = self._store.read(_KEY_PREFIX + key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            entry = CacheEntry(value=data["value"], stored_at=float(data["storedAt"]))
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Evicting corrupted cache entry %s: %s", key, exc)
            self._store.delete(_KEY_PREFIX + key)
            return None
        logger.debug("Cache hit for %s (age %.1fs)", key, entry.age(self.now()))
        return entry

    def put(self, key: str, value: object) -> CacheEntry:
        entry = CacheEntry(value=value, stored_at=self.now())
        payload = json.dumps({"value": entry.value, "storedAt": entry.stored_at})
        self._store.write(_KEY_PREFIX + key, payload)
        return entry

    def is_fresh(self, entry: CacheEntry, ttl: float) -> bool:
        return entry.age(self.now()) < ttl

    def invalidate(self, key: str) -> None:
        self._store.delete(_KEY_PREFIX + key)


__all__ = ["CacheStore", "make_key"]
