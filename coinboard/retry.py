"""Background retries, at most one armed timer per resource key."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

RetryAction = Callable[[], Awaitable[Any]]


class RetryScheduler:
    """Debounced one-shot timers keyed by resource.

    Arming a key that is already armed does nothing, so repeated failures of
    the same resource never stack up retries. The armed flag is cleared right
    before the action runs, which lets a failing action re-arm itself.
    """

    def __init__(self) -> None:
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task] = set()

    def is_armed(self, key: str) -> bool:
        return key in self._timers

    def armed_keys(self) -> list[str]:
        return list(self._timers)

    def arm(self, key: str, delay: float, action: RetryAction) -> bool:
        """Schedule ``action`` once after ``delay`` seconds.

        Returns:
            True if a timer was armed, False if one was already pending.
        """
        if key in self._timers:
            return False
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(max(0.0, delay), self._fire, key, action)
        logger.info("Retry for %s armed in %.0fs", key, delay)
        return True

    def cancel(self, key: str) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug("Retry for %s cancelled", key)
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)
        for task in list(self._running):
            task.cancel()

    def _fire(self, key: str, action: RetryAction) -> None:
        self._timers.pop(key, None)
        logger.debug("Retry for %s firing", key)
        task = asyncio.ensure_future(action())
        self._running.add(task)
        task.add_done_callback(lambda t: self._on_done(key, t))

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background retry for %s raised", key, exc_info=(type(exc), exc, exc.__traceback__)
            )


__all__ = ["RetryScheduler"]
