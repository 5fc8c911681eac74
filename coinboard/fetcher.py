"""Cache-first fetching with throttled network access and stale fallback.

Lookup order for a resource key:

1. a fresh cache entry is returned without touching the network;
2. otherwise the request goes through the upstream's ``RequestScheduler``;
   HTTP 429 answers are re-queued up to ``max_retries`` times, after holding
   the lane for the upstream's ``Retry-After`` when it sent one;
3. if the network path fails, the last good payload is returned as stale;
4. with nothing cached, a background retry is armed and the caller gets a
   ``retrying`` result.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from .cache_store import CacheStore
from .errors import FetchError, RateLimitedError, UnsupportedResourceError
from .models.cache import CacheEntry
from .models.fetch_result import NETWORK, FetchResult
from .retry import RetryScheduler
from .scheduler import RequestScheduler

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
Listener = Callable[[str, FetchResult], None]

# Upper bound on a Retry-After we are willing to honour for one upstream lane.
MAX_RETRY_AFTER_S = 120.0


class ResourceFetcher:
    def __init__(
        self,
        cache: CacheStore,
        scheduler: RequestScheduler,
        retries: RetryScheduler,
        retry_delay_s: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self.cache = cache
        self.scheduler = scheduler
        self.retries = retries
        self.retry_delay_s = retry_delay_s
        self.max_retries = max_retries
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        """Register a callback for results produced by background retries."""
        self._listeners.append(listener)

    async def fetch(
        self,
        key: str,
        fetch_fn: FetchFn,
        ttl: float,
        max_retries: int | None = None,
    ) -> FetchResult:
        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry, ttl):
            return FetchResult.from_cache(entry)
        return await self._fetch_from_network(key, fetch_fn, max_retries, entry)

    async def refresh(
        self,
        key: str,
        fetch_fn: FetchFn,
        max_retries: int | None = None,
    ) -> FetchResult:
        """User-requested refresh: skip the freshness check and any pending retry."""
        self.retries.cancel(key)
        return await self._fetch_from_network(
            key, fetch_fn, max_retries, self.cache.get(key)
        )

    def invalidate(self, key: str) -> None:
        self.retries.cancel(key)
        self.cache.invalidate(key)

    async def _request_with_retry(
        self, key: str, fetch_fn: FetchFn, max_retries: int
    ) -> Any:
        attempt = 0
        while True:
            label = key if attempt == 0 else f"{key} (retry {attempt}/{max_retries})"
            try:
                return await self.scheduler.enqueue(fetch_fn, label)
            except RateLimitedError as exc:
                if attempt >= max_retries:
                    raise
                attempt += 1
                if exc.retry_after:
                    self.scheduler.hold(min(exc.retry_after, MAX_RETRY_AFTER_S))
                logger.warning(
                    "Rate limited on %s, re-queueing (attempt %d of %d)",
                    key,
                    attempt,
                    max_retries,
                )

    async def _fetch_from_network(
        self,
        key: str,
        fetch_fn: FetchFn,
        max_retries: int | None,
        stale: CacheEntry | None,
    ) -> FetchResult:
        bound = self.max_retries if max_retries is None else max(0, max_retries)
        try:
            value = await self._request_with_retry(key, fetch_fn, bound)
        except UnsupportedResourceError as exc:
            logger.warning("Not fetching %s: %s", key, exc)
            self.retries.cancel(key)
            return FetchResult.unsupported(str(exc))
        except FetchError as exc:
            logger.warning("Fetch failed for %s: %s", key, exc)
            return self._fallback(key, fetch_fn, max_retries, stale, exc)
        except Exception as exc:
            logger.exception("Unexpected error fetching %s", key)
            return self._fallback(key, fetch_fn, max_retries, stale, exc)

        entry = self.cache.put(key, value)
        self.retries.cancel(key)
        return FetchResult(status=NETWORK, value=entry.value, stored_at=entry.stored_at)

    def _fallback(
        self,
        key: str,
        fetch_fn: FetchFn,
        max_retries: int | None,
        stale: CacheEntry | None,
        exc: Exception,
    ) -> FetchResult:
        # The stale timestamp is kept as is; the data did not get any newer.
        if stale is not None:
            logger.warning("Serving stale %s after fetch error", key)
            return FetchResult.stale(stale, error=str(exc))

        async def _retry() -> None:
            result = await self._fetch_from_network(
                key, fetch_fn, max_retries, self.cache.get(key)
            )
            self._notify(key, result)

        self.retries.arm(key, self.retry_delay_s, _retry)
        return FetchResult.retrying(error=str(exc))

    def _notify(self, key: str, result: FetchResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, result)
            except Exception:
                logger.exception("Fetch listener failed for %s", key)


__all__ = ["ResourceFetcher"]
