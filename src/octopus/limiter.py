"""Bounded concurrency limiter with strict FIFO admission."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Admits at most ``cap`` units of work at a time.

    Unlike ``asyncio.Semaphore``, a freed slot is handed directly to the
    oldest waiter, so admission order always equals submission order even
    when new work arrives at the moment a slot frees up.

    Usage:
        limiter = ConcurrencyLimiter(3)
        results = await asyncio.gather(
            *(limiter.schedule(lambda r=r: install(r)) for r in repos)
        )
    """

    def __init__(self, cap: int) -> None:
        if cap < 1:
            raise ValueError(f"concurrency cap must be >= 1, got {cap}")
        self._cap = cap
        self._running = 0
        self._peak = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def running(self) -> int:
        """Units currently holding a slot."""
        return self._running

    @property
    def queued(self) -> int:
        """Units waiting for a slot."""
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak(self) -> int:
        """Highest number of units that ever ran at once."""
        return self._peak

    async def schedule(self, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work()`` once a slot is free and return its result.

        The slot is released whether the work returns, raises or is
        cancelled.
        """
        await self._acquire()
        try:
            return await work()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._running < self._cap and not self.queued:
            self._take_slot()
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was already handed over; pass it on.
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _take_slot(self) -> None:
        self._running += 1
        self._peak = max(self._peak, self._running)

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand-off: the running count is unchanged.
                waiter.set_result(None)
                return
        self._running -= 1
