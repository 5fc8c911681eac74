"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import asyncio

import pytest

from coinboard.cache_store import CacheStore
from coinboard.fetcher import ResourceFetcher
from coinboard.retry import RetryScheduler
from coinboard.scheduler import RequestScheduler
from coinboard.storage import MemoryStore


class DummyResponse:
    """Dummy HTTP response for testing."""

    def __init__(
        self,
        data: object,
        status: int = 200,
        text: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        self._data = data
        self.status_code = status
        self.text = text or str(data)
        self.ok = 200 <= status < 300
        self.headers = headers or {}

    def json(self) -> object:
        return self._data


class FakeClock:
    """Manual clock; ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class Upstream:
    """Scripted async upstream: each call pops the next outcome."""

    def __init__(self, *outcomes: object, clock: FakeClock | None = None) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        self.started_at: list[float] = []
        self._clock = clock

    async def __call__(self) -> object:
        self.calls += 1
        if self._clock is not None:
            self.started_at.append(self._clock())
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(MemoryStore(), clock=clock)


@pytest.fixture
def make_fetcher(cache: CacheStore, clock: FakeClock):
    """Build a fetcher on the fake clock; retry timers are cancelled afterwards."""
    created: list[RetryScheduler] = []

    def _make(min_interval: float = 2.0, retry_delay_s: float = 30.0, max_retries: int = 3):
        retries = RetryScheduler()
        created.append(retries)
        scheduler = RequestScheduler(min_interval, clock=clock, sleep=clock.sleep)
        return ResourceFetcher(
            cache,
            scheduler,
            retries,
            retry_delay_s=retry_delay_s,
            max_retries=max_retries,
        )

    yield _make
    for retries in created:
        retries.cancel_all()
