"""Single-lane request queue that throttles calls to one upstream API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


@dataclass
class QueuedRequest:
    operation: Operation
    future: asyncio.Future
    label: str


class RequestScheduler:
    """Run queued operations one at a time, at least ``min_interval`` apart.

    Operations start in the order they were enqueued. The interval is
    measured from the moment the previous operation settled, so the gap
    between two starts is never shorter than ``min_interval``. The scheduler
    does not retry; failures are delivered to the caller's awaitable.

    ``clock`` and ``sleep`` are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        min_interval: float,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[QueuedRequest] = deque()
        self._processing = False
        self._in_flight: QueuedRequest | None = None
        self._last_request_at: float | None = None
        self._hold_until: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def in_flight(self) -> str | None:
        return self._in_flight.label if self._in_flight else None

    def enqueue(self, operation: Operation, label: str = "API request") -> asyncio.Future:
        """Queue ``operation`` and return a future for its result.

        Must be called from a running event loop. Cancelling the returned
        future before the operation starts drops it from the queue; once
        started it runs to completion.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append(QueuedRequest(operation=operation, future=future, label=label))
        self._ensure_processing()
        return future

    def _ensure_processing(self) -> None:
        if self._processing or not self._queue:
            return
        self._processing = True
        self._task = asyncio.create_task(self._process_queue())

    def hold(self, seconds: float) -> None:
        """Keep the next request from starting for ``seconds`` from now.

        Used when the upstream asks us to back off (``Retry-After``). A
        shorter hold never shortens one already in place.
        """
        until = self._clock() + max(0.0, seconds)
        if self._hold_until is None or until > self._hold_until:
            self._hold_until = until
            logger.info("[%s] holding requests for %.1fs", self.name, seconds)

    async def _wait_for_slot(self) -> None:
        now = self._clock()
        wait = 0.0
        if self._last_request_at is not None:
            wait = self.min_interval - (now - self._last_request_at)
        if self._hold_until is not None:
            wait = max(wait, self._hold_until - now)
            self._hold_until = None
        if wait > 0:
            logger.debug("[%s] throttling for %.2fs", self.name, wait)
            await self._sleep(wait)

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                request = self._queue.popleft()
                if request.future.done():
                    logger.debug("[%s] skipping abandoned %s", self.name, request.label)
                    continue

                try:
                    await self._wait_for_slot()
                except asyncio.CancelledError:
                    request.future.cancel()
                    raise
                if request.future.done():
                    continue

                logger.debug(
                    "[%s] processing %s (%d left in queue)",
                    self.name,
                    request.label,
                    len(self._queue),
                )
                self._in_flight = request
                try:
                    result = await request.operation()
                except asyncio.CancelledError:
                    request.future.cancel()
                    raise
                except Exception as exc:
                    logger.debug("[%s] %s failed: %s", self.name, request.label, exc)
                    if not request.future.done():
                        request.future.set_exception(exc)
                else:
                    if not request.future.done():
                        request.future.set_result(result)
                finally:
                    self._in_flight = None
                    self._last_request_at = self._clock()

                # Let settled callers run before the next request starts.
                await asyncio.sleep(0)
        finally:
            self._processing = False
            self._task = None

    async def aclose(self) -> None:
        """Cancel the processing loop and every request still waiting."""
        task = self._task
        while self._queue:
            request = self._queue.popleft()
            request.future.cancel()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


__all__ = ["RequestScheduler", "QueuedRequest"]
