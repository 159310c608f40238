"""
Quota Guard - cooldown after Gemini reports an exhausted daily quota.

Once tripped, every call through the runtime fails fast until the
resume instant passes. The flag clears itself on the first check after
that instant.
"""
from typing import Optional

from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.llm.clock import Clock, SYSTEM_CLOCK

logger = get_logger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60 * 60


class QuotaGuard:
    """
    Circuit breaker for daily quota exhaustion.

    Example:
        >>> guard = QuotaGuard()
        >>> guard.trip()
        >>> guard.is_active()
        True
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Clock = SYSTEM_CLOCK,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._tripped = False
        self._resume_at: Optional[float] = None

    @property
    def resume_at(self) -> Optional[float]:
        """Instant (clock seconds) when calls may resume, if tripped."""
        return self._resume_at

    def trip(self) -> None:
        """Start the cooldown from now."""
        self._tripped = True
        self._resume_at = self._clock.now() + self.cooldown_seconds
        logger.warning(
            f"Gemini quota exceeded - skipping Gemini calls for "
            f"{self.cooldown_seconds / 60:.0f} minutes"
        )

    def is_active(self) -> bool:
        """True while the cooldown holds; clears it once it has run out."""
        if not self._tripped:
            return False

        if self._resume_at is None or self._clock.now() >= self._resume_at:
            self._tripped = False
            self._resume_at = None
            logger.info("Gemini quota cooldown ended - will try Gemini again")
            return False

        return True

    def reset(self) -> None:
        self._tripped = False
        self._resume_at = None
