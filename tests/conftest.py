"""Shared fixtures: a simulated clock and a scripted fake Gemini upstream."""

import asyncio
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from pharmacy_ai.llm.client import ContentPart
from pharmacy_ai.llm.clock import Clock
from pharmacy_ai.llm.runtime import GeminiRuntime


class FakeClock(Clock):
    """Clock that only moves when told to; sleep() advances it instantly."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += seconds
        await asyncio.sleep(0)


class FakeGemini:
    """
    Scripted stand-in for GeminiClient.

    Each call pops the next outcome: a string is returned, an exception
    is raised. When the script runs out, `default` is returned.
    """

    def __init__(
        self,
        outcomes: Optional[Iterable[Any]] = None,
        default: str = "ok",
        yields: int = 3,
    ) -> None:
        self.outcomes = deque(outcomes or [])
        self.default = default
        self.yields = yields
        self.calls: List[Dict[str, Any]] = []
        self.active = 0
        self.max_active = 0
        self.hold: Optional[asyncio.Event] = None

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate_content(
        self,
        parts: Sequence[ContentPart],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        self.calls.append({
            "parts": list(parts),
            "model": model,
            "system_instruction": system_instruction,
        })
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.hold is not None:
                await self.hold.wait()
            for _ in range(self.yields):
                await asyncio.sleep(0)
            outcome = self.outcomes.popleft() if self.outcomes else self.default
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.active -= 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def runtime(fake_gemini: FakeGemini, clock: FakeClock) -> GeminiRuntime:
    """Runtime with default limits, fake upstream, simulated clock, zero jitter."""
    return GeminiRuntime(
        client=fake_gemini,
        max_concurrency=1,
        max_retries=3,
        cache_ttl_seconds=24 * 60 * 60,
        quota_cooldown_seconds=60 * 60,
        clock=clock,
        jitter=lambda: 0.0,
    )


def text_request_parts(text: str) -> List[ContentPart]:
    return [ContentPart.from_text(text)]
