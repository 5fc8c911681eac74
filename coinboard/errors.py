"""Exceptions raised by the upstream clients and the watchlist."""

from __future__ import annotations

import math
from typing import Mapping


class FetchError(Exception):
    """Base class for failures talking to an upstream API."""


class RateLimitedError(FetchError):
    """Upstream answered HTTP 429.

    ``retry_after`` holds the ``Retry-After`` header in seconds when the
    upstream sent a numeric one; the fetcher holds the lane that long.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    @classmethod
    def from_headers(cls, message: str, headers: Mapping[str, str] | None) -> "RateLimitedError":
        raw = (headers or {}).get("Retry-After")
        try:
            retry_after = float(raw) if raw is not None else None
        except (TypeError, ValueError):
            retry_after = None
        if retry_after is not None and not (math.isfinite(retry_after) and retry_after >= 0):
            retry_after = None
        return cls(message, retry_after)


class UpstreamError(FetchError):
    """Transport failure, non-2xx status or a payload we could not parse."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnsupportedResourceError(FetchError):
    """The request names a network or parameter we do not know how to fetch.

    Retrying cannot fix it, so the fetcher reports it instead of scheduling
    another attempt.
    """


class DuplicateCoinError(ValueError):
    pass


class InvalidContractError(ValueError):
    """Contract address does not match the network's address format."""


class CoinNotFoundError(KeyError):
    pass


__all__ = [
    "FetchError",
    "RateLimitedError",
    "UpstreamError",
    "UnsupportedResourceError",
    "DuplicateCoinError",
    "InvalidContractError",
    "CoinNotFoundError",
]
