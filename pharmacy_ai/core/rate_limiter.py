"""
Rate Limiter - Control chat request frequency per session.

Every /chat request can end in a Gemini call, and the free Gemini tier
allows only a handful of requests per minute. This in-memory sliding
window keeps a single session from draining that budget.

For multiple instances, move the window to Redis.
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from pharmacy_ai.core.logging_config import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding window rate limiter keyed by session ID (or client IP).

    Example:
        >>> limiter = RateLimiter(requests_per_minute=30)
        >>> limiter.is_allowed("session-123")
        (True, 29)
    """

    def __init__(
        self,
        requests_per_minute: int = 30,
        window_seconds: float = 60.0,
        cleanup_interval_seconds: float = 300.0,
        now: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            requests_per_minute: Maximum requests allowed per window
            window_seconds: Window length in seconds
            cleanup_interval_seconds: How often idle sessions are forgotten
            now: Time source in seconds (time.monotonic by default)
        """
        self.limit = max(1, requests_per_minute)
        self.window = window_seconds
        self._now = now or time.monotonic
        self.cleanup_interval = cleanup_interval_seconds
        self._requests: Dict[str, Deque[float]] = {}
        self._lock = threading.RLock()
        self._last_cleanup = self._now()

        logger.info(f"RateLimiter initialized: {self.limit} requests/{window_seconds:.0f}s")

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def _prune(self, identifier: str, now: float) -> Deque[float]:
        stamps = self._requests.setdefault(identifier, deque())
        cutoff = now - self.window
        while stamps and stamps[0] <= cutoff:
            stamps.popleft()
        return stamps

    def is_allowed(self, identifier: str) -> Tuple[bool, int]:
        """
        Check and record a request for the given identifier.

        Args:
            identifier: Session ID or IP address

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        with self._lock:
            self._maybe_cleanup()

            now = self._now()
            stamps = self._prune(identifier, now)

            if len(stamps) >= self.limit:
                logger.warning(f"Rate limit exceeded for: {identifier[:8]}...")
                return False, 0

            stamps.append(now)
            return True, self.limit - len(stamps)

    def get_remaining(self, identifier: str) -> int:
        """Requests left in the current window."""
        with self._lock:
            return max(0, self.limit - len(self._prune(identifier, self._now())))

    def retry_after(self, identifier: str) -> int:
        """Whole seconds until the oldest request leaves the window (min 1)."""
        with self._lock:
            stamps = self._prune(identifier, self._now())
            if not stamps:
                return 1
            return max(1, int(stamps[0] + self.window - self._now() + 0.999))

    def cleanup(self) -> int:
        """Forget identifiers with no recent requests; returns how many."""
        with self._lock:
            now = self._now()
            self._last_cleanup = now
            idle = [key for key in list(self._requests) if not self._prune(key, now)]
            for key in idle:
                del self._requests[key]
            if idle:
                logger.debug(f"Rate limiter cleanup: removed {len(idle)} idle sessions")
            return len(idle)

    def _maybe_cleanup(self) -> None:
        """Run cleanup once per cleanup interval."""
        if self._now() - self._last_cleanup >= self.cleanup_interval:
            self.cleanup()


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        from pharmacy_ai.core.config import get_settings
        _rate_limiter = RateLimiter(requests_per_minute=get_settings().rate_limit_per_minute)
    return _rate_limiter


def reset_rate_limiter() -> None:
    global _rate_limiter
    _rate_limiter = None
