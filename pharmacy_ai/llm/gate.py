"""
Concurrency Gate - bounded FIFO admission for upstream calls.

At most `max_concurrency` callers hold a slot at the same time. Excess
callers wait in a queue and are admitted strictly in arrival order.
A released slot goes straight to the oldest waiter, so a newcomer can
never slip in ahead of it.
"""
import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque

from pharmacy_ai.core.logging_config import get_logger

logger = get_logger(__name__)


class ConcurrencyGate:
    """
    Async counting gate with a FIFO wait queue.

    Example:
        >>> gate = ConcurrencyGate(max_concurrency=1)
        >>> async with gate.slot():
        ...     await call_gemini()
    """

    def __init__(self, max_concurrency: int = 1):
        self.max_concurrency = max(1, max_concurrency)
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        """Number of callers currently holding a slot."""
        return self._active

    @property
    def waiting(self) -> int:
        """Number of callers queued for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        """Take a slot, waiting in line if the gate is full."""
        if self._active < self.max_concurrency and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(
            f"Gate full ({self._active}/{self.max_concurrency}), "
            f"queued at position {len(self._waiters)}"
        )
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation; pass it on
                self.release()
            else:
                self._remove(waiter)
            raise

    def release(self) -> None:
        """Give the slot to the oldest live waiter, or free it."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot ownership moves to the waiter; _active is unchanged
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def _remove(self, waiter: asyncio.Future) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
