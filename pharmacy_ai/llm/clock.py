"""
Clock - time source for the Gemini runtime.

Cache expiry, quota cooldown and retry backoff all read time through a
Clock so tests can swap in a simulated one.
"""
import asyncio
import time


class Clock:
    """Wall-clock time in seconds plus an async sleep."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


SYSTEM_CLOCK = Clock()
