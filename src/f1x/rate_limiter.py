"""Dual-window token bucket rate limiter.

Enforces a per-second and a per-minute ceiling at the same time. Both buckets
are refilled lazily from elapsed time on every acquisition attempt; pending
acquisitions wait in a FIFO queue drained by a single worker task. Each
bucket also remembers its most recent grants, so a refill that lands just
after a burst cannot admit a second burst into the same rolling window.

Limiter state is per process. With N processes the effective ceiling is
N times the configured limit.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

SECOND_BLOCKED_WAIT = 1.0
MINUTE_BLOCKED_WAIT = 2.0


def _has_room(grants: deque[float], now: float, window: float) -> bool:
    """True unless the bucket's full allowance was granted less than ``window`` ago."""
    return len(grants) < grants.maxlen or now - grants[0] >= window


class DualRateLimiter:
    """FIFO rate limiter with simultaneous per-second and per-minute buckets.

    Usage:
        limiter = DualRateLimiter(per_second=3, per_minute=30)
        await limiter.acquire()

    Args:
        per_second: Capacity of the one-second bucket.
        per_minute: Capacity of the sixty-second bucket.
        name: Label used in log messages.
        clock: Monotonic clock in seconds.
        sleep: Coroutine used to back off while both buckets cannot grant.
    """

    def __init__(
        self,
        per_second: int,
        per_minute: int,
        *,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if per_second <= 0 or per_minute <= 0:
            raise ValueError(
                f"Rate limits must be positive, got {per_second}/s and {per_minute}/min"
            )
        self.per_second = per_second
        self.per_minute = per_minute
        self.name = name
        self._clock = clock
        self._sleep = sleep

        now = clock()
        self.second_tokens = per_second
        self.minute_tokens = per_minute
        self.last_second_refill = now
        self.last_minute_refill = now
        self._second_grants: deque[float] = deque(maxlen=per_second)
        self._minute_grants: deque[float] = deque(maxlen=per_minute)

        self._queue: deque[asyncio.Future[None]] = deque()
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        """Number of acquisitions still waiting for a grant."""
        return sum(1 for waiter in self._queue if not waiter.done())

    def _refill(self) -> float:
        now = self._clock()

        windows = math.floor(now - self.last_second_refill)
        if windows >= 1:
            self.second_tokens = min(self.per_second, self.second_tokens + windows * self.per_second)
            self.last_second_refill += windows

        windows = math.floor((now - self.last_minute_refill) / 60)
        if windows >= 1:
            self.minute_tokens = min(self.per_minute, self.minute_tokens + windows * self.per_minute)
            self.last_minute_refill += windows * 60
        return now

    async def acquire(self) -> None:
        """Wait until one token from each bucket has been granted to the caller."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._queue.append(waiter)
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        await waiter

    async def _drain(self) -> None:
        while self._queue:
            head = self._queue[0]
            if head.done():
                # Cancelled while queued
                self._queue.popleft()
                continue

            now = self._refill()
            second_open = self.second_tokens > 0 and _has_room(self._second_grants, now, 1)
            minute_open = self.minute_tokens > 0 and _has_room(self._minute_grants, now, 60)

            if second_open and minute_open:
                self.second_tokens -= 1
                self.minute_tokens -= 1
                self._second_grants.append(now)
                self._minute_grants.append(now)
                self._queue.popleft()
                head.set_result(None)
                continue

            if not second_open:
                wait = SECOND_BLOCKED_WAIT
            else:
                wait = MINUTE_BLOCKED_WAIT
                logger.debug(
                    "%s limiter: per-minute budget exhausted, %d waiting",
                    self.name, self.pending,
                )
            await self._sleep(wait)
