# core/rate_limiter.py
"""Shared admission control for calls to the completion provider.

One ``RateLimiter`` is built by the host and handed to every caller that
talks to the provider (pipeline runs, assistant tasks, research). Jobs are
admitted strictly in submission order once both limits allow it:

* fewer than ``max_concurrent`` operations are running, and
* at least ``min_interval_ms`` has passed since the previous admission.

State is only touched from the event loop thread, so no lock is needed.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from config import ConfigurationError, settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """FIFO scheduler bounding concurrency and spacing of call starts."""

    def __init__(
        self,
        min_interval_ms: int = settings.MIN_INTERVAL_MS,
        max_concurrent: int = settings.MAX_CONCURRENT_LLM_CALLS,
    ) -> None:
        if max_concurrent < 1:
            raise ConfigurationError(
                f"max_concurrent must be positive, got {max_concurrent}"
            )
        if min_interval_ms < 0:
            raise ConfigurationError(
                f"min_interval_ms must be >= 0, got {min_interval_ms}"
            )
        self.min_interval_ms = min_interval_ms
        self.max_concurrent = max_concurrent
        self._queue: deque[asyncio.Future[None]] = deque()
        self._active = 0
        self._last_start: float | None = None
        self._wakeup: asyncio.TimerHandle | None = None
        self.started_count = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._queue if not waiter.done())

    async def schedule(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once admitted and return its result or raise its error."""
        loop = asyncio.get_running_loop()
        admitted: asyncio.Future[None] = loop.create_future()
        self._queue.append(admitted)
        self._pump()

        try:
            await admitted
        except asyncio.CancelledError:
            if admitted in self._queue:
                self._queue.remove(admitted)
            elif admitted.done() and not admitted.cancelled():
                # Admitted in the same tick the caller gave up; free the slot.
                self._release()
            raise

        try:
            return await operation()
        finally:
            self._release()

    def _release(self) -> None:
        self._active -= 1
        self._pump()

    def _on_timer(self) -> None:
        self._wakeup = None
        self._pump()

    def _pump(self) -> None:
        if self._wakeup is not None:
            return
        loop = asyncio.get_running_loop()
        interval = self.min_interval_ms / 1000

        while self._queue and self._active < self.max_concurrent:
            head = self._queue[0]
            if head.done():
                self._queue.popleft()
                continue

            now = loop.time()
            if self._last_start is not None:
                wait = self._last_start + interval - now
                if wait > 0:
                    self._wakeup = loop.call_later(wait, self._on_timer)
                    return

            self._queue.popleft()
            self._active += 1
            self._last_start = now
            self.started_count += 1
            logger.debug(
                "Rate limiter admitted job.",
                active=self._active,
                queued=len(self._queue),
            )
            head.set_result(None)
