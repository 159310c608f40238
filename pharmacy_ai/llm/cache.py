"""
Result Cache - TTL cache and in-flight registry for Gemini replies.

Two maps keyed by the caller's cache key:
- entries: finished text results with an absolute expiry
- in-flight: the pending task computing a key right now

The runtime checks both before starting a call and registers the new
task in the same step, with no await in between.
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.llm.clock import Clock, SYSTEM_CLOCK

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    """A cached reply and the instant it stops being valid."""
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class ResultCache:
    """
    In-memory reply cache with in-flight de-duplication.

    Example:
        >>> cache = ResultCache()
        >>> cache.put("rx-advice:ab12", "Take with food", ttl_seconds=60)
        >>> cache.get("rx-advice:ab12")
        'Take with food'
    """

    def __init__(self, clock: Clock = SYSTEM_CLOCK, sweep_interval: float = SWEEP_INTERVAL_SECONDS):
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._last_sweep = clock.now()
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def get(self, key: str) -> Optional[str]:
        """Return the cached value for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self._clock.now()):
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: str, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> CacheEntry:
        """Store value under key, replacing any older entry."""
        now = self._clock.now()
        if now - self._last_sweep >= self.sweep_interval:
            self.purge_expired(now)
        entry = CacheEntry(value=value, expires_at=now + ttl_seconds)
        self._entries[key] = entry
        return entry

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock.now() if now is None else now
        self._last_sweep = now
        expired = [k for k, entry in self._entries.items() if not entry.is_valid(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Result cache sweep: removed {len(expired)} expired entries")
        return len(expired)

    def get_in_flight(self, key: str) -> Optional[asyncio.Task]:
        return self._in_flight.get(key)

    def register_in_flight(self, key: str, task: asyncio.Task) -> None:
        """
        Track task as the computation for key until it settles.

        The registration is dropped from a done-callback, so it goes
        away whether the task succeeds, fails or is cancelled. A failure
        is marked retrieved there too, since every waiter may have left.
        """
        self._in_flight[key] = task

        def _settled(done: asyncio.Task) -> None:
            if self._in_flight.get(key) is done:
                del self._in_flight[key]
            if not done.cancelled():
                done.exception()

        task.add_done_callback(_settled)
