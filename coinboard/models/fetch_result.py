"""Fetch outcome handed to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass

from .cache import CacheEntry

FRESH = "fresh"
NETWORK = "network"
STALE = "stale"
RETRYING = "retrying"
UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class FetchResult:
    """Value (or lack of one) for a resource, tagged with where it came from.

    ``fresh`` and ``network`` carry current data, ``stale`` carries the last
    good payload after a failed refresh, ``retrying`` means nothing is cached
    and a background retry is armed, ``unsupported`` means the request can
    never succeed and ``error`` says why.
    """

    status: str
    value: object | None = None
    stored_at: float | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.status in (FRESH, NETWORK, STALE)

    @property
    def is_stale(self) -> bool:
        return self.status == STALE

    @classmethod
    def from_cache(cls, entry: CacheEntry) -> "FetchResult":
        return cls(status=FRESH, value=entry.value, stored_at=entry.stored_at)

    @classmethod
    def stale(cls, entry: CacheEntry, error: str | None = None) -> "FetchResult":
        return cls(
            status=STALE, value=entry.value, stored_at=entry.stored_at, error=error
        )

    @classmethod
    def retrying(cls, error: str | None = None) -> "FetchResult":
        return cls(status=RETRYING, error=error)

    @classmethod
    def unsupported(cls, error: str) -> "FetchResult":
        return cls(status=UNSUPPORTED, error=error)
