"""
Gemini Runtime - reliable text generation on top of GeminiClient.

One GeminiRuntime per process holds all the shared state for Gemini
calls and applies, in order:
1. Quota guard - fail fast while a daily-quota cooldown is active
2. Result cache - return a fresh cached reply for the same cache key
3. In-flight de-duplication - join a pending call for the same key
4. Concurrency gate - at most N upstream calls at once, FIFO
5. Retry loop - exponential backoff for transient failures

Services get the process instance from get_runtime(); tests build their
own with a fake client and a simulated clock.
"""
import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence, TypeVar

from pharmacy_ai.core.exceptions import (
    GeminiCallFailedError,
    GeminiCooldownError,
    GeminiQuotaExceededError,
)
from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.llm.cache import DEFAULT_TTL_SECONDS, ResultCache
from pharmacy_ai.llm.client import ContentPart
from pharmacy_ai.llm.clock import Clock, SYSTEM_CLOCK
from pharmacy_ai.llm.errors import UpstreamCallError, UpstreamError, normalize_error
from pharmacy_ai.llm.gate import ConcurrencyGate
from pharmacy_ai.llm.quota import DEFAULT_COOLDOWN_SECONDS, QuotaGuard
from pharmacy_ai.llm.retry import (
    ErrorClass,
    backoff_delay_ms,
    classify_error,
    truncate_message,
)

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_OP_NAME = "generate_text"


class TextGenerator(Protocol):
    """Anything that can run one Gemini request (GeminiClient, test fakes)."""

    async def generate_content(
        self,
        parts: Sequence[ContentPart],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        ...


@dataclass
class CallRequest:
    """
    One logical Gemini call.

    Attributes:
        parts: Ordered request parts (text and/or binary)
        model: Model name; client default when None
        system_instruction: Optional system prompt
        cache_key: Enables caching and de-duplication when non-empty
        cache_ttl_seconds: Cache lifetime; runtime default when None
        max_retries: Retries after the first attempt; runtime default when None
        op_name: Label used in logs and error messages
    """
    parts: Sequence[ContentPart]
    model: Optional[str] = None
    system_instruction: Optional[str] = None
    cache_key: Optional[str] = None
    cache_ttl_seconds: Optional[float] = None
    max_retries: Optional[int] = None
    op_name: str = DEFAULT_OP_NAME


def build_cache_key(namespace: str, payload: Any) -> str:
    """
    Build a short, stable cache key: "<namespace>:<sha256 hex>".

    Strings and bytes are hashed as-is; anything else is hashed as
    canonical JSON (sorted keys, compact separators).

    Example:
        >>> build_cache_key("rx-advice", {"b": 1, "a": 2}) == build_cache_key("rx-advice", {"a": 2, "b": 1})
        True
    """
    if isinstance(payload, bytes):
        raw = payload
    elif isinstance(payload, str):
        raw = payload.encode("utf-8")
    else:
        raw = json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str,
        ).encode("utf-8")
    return f"{namespace}:{hashlib.sha256(raw).hexdigest()}"


@dataclass
class RuntimeStats:
    """Counters for the status endpoint."""
    upstream_attempts: int = 0
    cache_hits: int = 0
    deduplicated: int = 0
    failures: Dict[str, int] = field(default_factory=dict)

    def record_failure(self, error_code: str) -> None:
        self.failures[error_code] = self.failures.get(error_code, 0) + 1


class GeminiRuntime:
    """
    Process-wide context for Gemini calls.

    Example:
        >>> runtime = GeminiRuntime(GeminiClient(), max_concurrency=1)
        >>> text = await runtime.generate_text(CallRequest(
        ...     parts=[ContentPart.from_text("What is paracetamol?")],
        ...     cache_key=build_cache_key("faq", "What is paracetamol?"),
        ...     op_name="faq",
        ... ))
    """

    def __init__(
        self,
        client: TextGenerator,
        max_concurrency: int = 1,
        max_retries: int = DEFAULT_MAX_RETRIES,
        cache_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        quota_cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Clock = SYSTEM_CLOCK,
        jitter: Optional[Callable[[], float]] = None,
    ):
        self.client = client
        self.clock = clock
        self.max_retries = max_retries
        self.cache_ttl_seconds = cache_ttl_seconds
        self.gate = ConcurrencyGate(max_concurrency)
        self.cache = ResultCache(clock)
        self.quota_guard = QuotaGuard(quota_cooldown_seconds, clock)
        self.stats = RuntimeStats()
        self._jitter = jitter

        logger.info(
            f"Gemini runtime initialized: max_concurrency={self.gate.max_concurrency}, "
            f"max_retries={max_retries}, cache_ttl={cache_ttl_seconds}s"
        )

    async def call_with_gate(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run an arbitrary async operation under the concurrency gate."""
        async with self.gate.slot():
            return await fn()

    async def generate_text(self, request: CallRequest) -> str:
        """
        Generate text with caching, de-duplication, gating and retries.

        Args:
            request: The call to make

        Returns:
            Trimmed, non-empty reply text

        Raises:
            GeminiCooldownError: Quota cooldown is active
            GeminiQuotaExceededError: Upstream reported daily quota exhausted
            GeminiCallFailedError: Non-retryable failure or retries exhausted
        """
        op_name = request.op_name or DEFAULT_OP_NAME

        if self.quota_guard.is_active():
            self.stats.record_failure(GeminiCooldownError.error_code)
            raise GeminiCooldownError(op_name, self.quota_guard.resume_at)

        cache_key = request.cache_key or ""
        if not cache_key:
            return await self._gated_call(request, op_name, cache_key)

        # No await between these checks and the registration below
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.stats.cache_hits += 1
            logger.debug(f"{op_name}: cache hit for {cache_key[:24]}")
            return cached

        pending = self.cache.get_in_flight(cache_key)
        if pending is not None:
            self.stats.deduplicated += 1
            logger.debug(f"{op_name}: joining in-flight call for {cache_key[:24]}")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._gated_call(request, op_name, cache_key))
        self.cache.register_in_flight(cache_key, task)
        return await asyncio.shield(task)

    async def _gated_call(self, request: CallRequest, op_name: str, cache_key: str) -> str:
        async with self.gate.slot():
            return await self._call_with_retries(request, op_name, cache_key)

    async def _call_with_retries(self, request: CallRequest, op_name: str, cache_key: str) -> str:
        max_retries = self.max_retries if request.max_retries is None else max(0, request.max_retries)
        ttl = self.cache_ttl_seconds if request.cache_ttl_seconds is None else request.cache_ttl_seconds

        for attempt in range(max_retries + 1):
            # A call queued at the gate may find the cooldown tripped meanwhile
            if self.quota_guard.is_active():
                self.stats.record_failure(GeminiCooldownError.error_code)
                raise GeminiCooldownError(op_name, self.quota_guard.resume_at)

            try:
                self.stats.upstream_attempts += 1
                text = await self.client.generate_content(
                    parts=request.parts,
                    model=request.model,
                    system_instruction=request.system_instruction,
                )
                if not text or not text.strip():
                    raise UpstreamCallError(UpstreamError.empty_response())
            except Exception as exc:
                error = normalize_error(exc)
                outcome = classify_error(error)
                short_message = truncate_message(error.message)

                if outcome is ErrorClass.QUOTA_EXCEEDED:
                    self.quota_guard.trip()
                    self.stats.record_failure(GeminiQuotaExceededError.error_code)
                    raise GeminiQuotaExceededError(op_name, short_message) from exc

                if attempt >= max_retries or outcome is ErrorClass.NON_RETRYABLE:
                    logger.error(
                        f"{op_name}: Gemini call failed after {attempt + 1} attempt(s) "
                        f"(status={error.http_status or 'N/A'}): {short_message}"
                    )
                    self.stats.record_failure(GeminiCallFailedError.error_code)
                    raise GeminiCallFailedError(
                        op_name,
                        attempt + 1,
                        short_message,
                        http_status=error.http_status,
                    ) from exc

                wait_ms = backoff_delay_ms(error, attempt, self._jitter)
                logger.warning(
                    f"{op_name}: retrying Gemini (status={error.http_status or 'N/A'}) "
                    f"in {wait_ms}ms... (attempt {attempt + 1}/{max_retries + 1})"
                )
                await self.clock.sleep(wait_ms / 1000)
                continue

            result = text.strip()
            if cache_key:
                self.cache.put(cache_key, result, ttl)
            return result

        # range() always ends in return or raise above
        raise GeminiCallFailedError(op_name, max_retries + 1, "Gemini call failed")

    def status(self) -> Dict[str, Any]:
        """Snapshot of runtime state for health endpoints."""
        cooldown_active = self.quota_guard.is_active()
        return {
            "cooldown_active": cooldown_active,
            "cooldown_resume_at": self.quota_guard.resume_at if cooldown_active else None,
            "cached_entries": len(self.cache),
            "in_flight": self.cache.in_flight_count,
            "max_concurrency": self.gate.max_concurrency,
            "active_calls": self.gate.active,
            "queued_calls": self.gate.waiting,
            "upstream_attempts": self.stats.upstream_attempts,
            "cache_hits": self.stats.cache_hits,
            "deduplicated": self.stats.deduplicated,
            "failures": dict(self.stats.failures),
        }


# Global runtime instance
_runtime: Optional[GeminiRuntime] = None


def get_runtime() -> GeminiRuntime:
    """Get or create the process-wide Gemini runtime."""
    global _runtime
    if _runtime is None:
        from pharmacy_ai.core.config import get_settings
        from pharmacy_ai.llm.client import GeminiClient

        settings = get_settings()
        _runtime = GeminiRuntime(
            client=GeminiClient(),
            max_concurrency=settings.gemini_max_concurrency,
            max_retries=settings.gemini_max_retries,
            cache_ttl_seconds=settings.gemini_cache_ttl_seconds,
            quota_cooldown_seconds=settings.gemini_quota_cooldown_seconds,
        )
    return _runtime


def set_runtime(runtime: Optional[GeminiRuntime]) -> None:
    """Install a runtime as the process instance (None resets it)."""
    global _runtime
    _runtime = runtime


def reset_runtime() -> None:
    """Drop the process runtime; the next get_runtime() builds a new one."""
    set_runtime(None)
