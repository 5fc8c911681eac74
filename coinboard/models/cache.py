"""Cache-related dataclasses."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CacheEntry:
    """Cached payload with the wall-clock time it was stored."""

    value: object
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at
