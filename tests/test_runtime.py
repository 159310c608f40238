"""
Unit tests for GeminiRuntime.

Tests cover:
1. In-flight de-duplication and result caching (with TTL expiry)
2. Quota exhaustion and the cooldown that follows it
3. Retries with backoff on the simulated clock
4. Strict FIFO ordering under the concurrency gate
5. Non-retryable failures, including empty replies
"""
import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from pharmacy_ai.core.exceptions import (
    GeminiCallFailedError,
    GeminiCooldownError,
    GeminiQuotaExceededError,
)
from pharmacy_ai.llm.client import ContentPart
from pharmacy_ai.llm.runtime import CallRequest, GeminiRuntime, build_cache_key

from tests.conftest import FakeGemini, text_request_parts

QUOTA_MESSAGE = "You exceeded your current quota, please check your plan and billing details."


def keyed(text: str, key: str = "faq:paracetamol", **kwargs) -> CallRequest:
    return CallRequest(parts=text_request_parts(text), cache_key=key, **kwargs)


def unkeyed(text: str, **kwargs) -> CallRequest:
    return CallRequest(parts=text_request_parts(text), **kwargs)


class TestDeduplicationAndCache:

    @pytest.mark.asyncio
    async def test_concurrent_identical_keys_share_one_call(self, runtime, fake_gemini):
        fake_gemini.default = "Paracetamol relieves pain and fever."

        first, second = await asyncio.gather(
            runtime.generate_text(keyed("What is paracetamol?")),
            runtime.generate_text(keyed("What is paracetamol?")),
        )

        assert first == second == "Paracetamol relieves pain and fever."
        assert fake_gemini.call_count == 1
        assert runtime.stats.deduplicated == 1
        assert runtime.cache.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_later_call_served_from_cache(self, runtime, fake_gemini):
        await runtime.generate_text(keyed("q"))
        assert await runtime.generate_text(keyed("q")) == "ok"

        assert fake_gemini.call_count == 1
        assert runtime.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.extend(["first", "second"])

        assert await runtime.generate_text(keyed("q")) == "first"
        clock.advance(24 * 60 * 60 - 1)
        assert await runtime.generate_text(keyed("q")) == "first"
        clock.advance(1)
        assert await runtime.generate_text(keyed("q")) == "second"

        assert fake_gemini.call_count == 2

    @pytest.mark.asyncio
    async def test_request_ttl_overrides_default(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.extend(["first", "second"])

        await runtime.generate_text(keyed("q", cache_ttl_seconds=10))
        clock.advance(10)
        assert await runtime.generate_text(keyed("q", cache_ttl_seconds=10)) == "second"

    @pytest.mark.asyncio
    async def test_unkeyed_calls_are_never_cached(self, runtime, fake_gemini):
        await runtime.generate_text(unkeyed("q"))
        await runtime.generate_text(unkeyed("q"))

        assert fake_gemini.call_count == 2
        assert len(runtime.cache) == 0

    @pytest.mark.asyncio
    async def test_unkeyed_concurrent_calls_not_deduplicated(self, runtime, fake_gemini):
        await asyncio.gather(runtime.generate_text(unkeyed("q")), runtime.generate_text(unkeyed("q")))

        assert fake_gemini.call_count == 2
        assert runtime.stats.deduplicated == 0

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_not_cached(self, runtime, fake_gemini):
        fake_gemini.outcomes.append(google_exceptions.InvalidArgument("API key not valid"))

        results = await asyncio.gather(
            runtime.generate_text(keyed("q")),
            runtime.generate_text(keyed("q")),
            return_exceptions=True,
        )

        assert all(isinstance(r, GeminiCallFailedError) for r in results)
        assert results[0] is results[1]
        assert fake_gemini.call_count == 1
        assert runtime.cache.in_flight_count == 0
        assert len(runtime.cache) == 0

        assert await runtime.generate_text(keyed("q")) == "ok"
        assert fake_gemini.call_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_call(self, runtime, fake_gemini):
        fake_gemini.hold = asyncio.Event()

        leaver = asyncio.ensure_future(runtime.generate_text(keyed("q")))
        stayer = asyncio.ensure_future(runtime.generate_text(keyed("q")))
        for _ in range(5):
            await asyncio.sleep(0)

        leaver.cancel()
        fake_gemini.hold.set()

        assert await stayer == "ok"
        assert leaver.cancelled()
        assert fake_gemini.call_count == 1
        assert runtime.cache.get("faq:paracetamol") == "ok"

    @pytest.mark.asyncio
    async def test_reply_is_trimmed(self, runtime, fake_gemini):
        fake_gemini.default = "  Take after meals.\n"
        assert await runtime.generate_text(unkeyed("q")) == "Take after meals."


class TestQuotaCooldown:

    @pytest.mark.asyncio
    async def test_quota_error_trips_cooldown_without_retry(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.append(google_exceptions.TooManyRequests(QUOTA_MESSAGE))

        with pytest.raises(GeminiQuotaExceededError) as exc_info:
            await runtime.generate_text(unkeyed("q", op_name="chat"))

        assert exc_info.value.message.startswith("[chat] Gemini daily quota exceeded: ")
        assert fake_gemini.call_count == 1
        assert clock.sleeps == []
        assert runtime.quota_guard.resume_at == clock.now() + 3600

    @pytest.mark.asyncio
    async def test_calls_fail_fast_during_cooldown(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.append(google_exceptions.TooManyRequests(QUOTA_MESSAGE))
        with pytest.raises(GeminiQuotaExceededError):
            await runtime.generate_text(unkeyed("q"))

        clock.advance(59 * 60)
        with pytest.raises(GeminiCooldownError) as exc_info:
            await runtime.generate_text(keyed("q", op_name="prescription_advice"))

        assert exc_info.value.message == "[prescription_advice] Gemini quota exceeded (cooldown active)"
        assert fake_gemini.call_count == 1
        assert runtime.stats.failures["llm_quota_cooldown"] == 1

    @pytest.mark.asyncio
    async def test_calls_resume_after_sixty_minutes(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.append(google_exceptions.TooManyRequests(QUOTA_MESSAGE))
        with pytest.raises(GeminiQuotaExceededError):
            await runtime.generate_text(unkeyed("q"))

        clock.advance(60 * 60)
        assert await runtime.generate_text(unkeyed("q")) == "ok"
        assert fake_gemini.call_count == 2

    @pytest.mark.asyncio
    async def test_queued_call_sees_cooldown_tripped_meanwhile(self, runtime, fake_gemini):
        fake_gemini.outcomes.append(google_exceptions.TooManyRequests(QUOTA_MESSAGE))

        first, second = await asyncio.gather(
            runtime.generate_text(unkeyed("a")),
            runtime.generate_text(unkeyed("b")),
            return_exceptions=True,
        )

        assert isinstance(first, GeminiQuotaExceededError)
        assert isinstance(second, GeminiCooldownError)
        assert fake_gemini.call_count == 1

    @pytest.mark.asyncio
    async def test_plain_rate_limit_is_retried(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.extend([
            google_exceptions.TooManyRequests("Resource has been exhausted (e.g. check quota)."),
            "ok",
        ])

        assert await runtime.generate_text(unkeyed("q")) == "ok"
        assert clock.sleeps == [3.0]
        assert not runtime.quota_guard.is_active()


class TestRetries:

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.extend([
            google_exceptions.ServiceUnavailable("The model is overloaded."),
            ConnectionResetError("reset by peer"),
            "recovered",
        ])

        assert await runtime.generate_text(unkeyed("q")) == "recovered"
        assert fake_gemini.call_count == 3
        assert clock.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_success_on_last_allowed_attempt(self, runtime, fake_gemini):
        fake_gemini.outcomes.extend(
            [google_exceptions.ServiceUnavailable("Service Unavailable")] * 3 + ["finally"]
        )

        assert await runtime.generate_text(unkeyed("q")) == "finally"
        assert fake_gemini.call_count == 4

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.extend(
            [google_exceptions.ServiceUnavailable("Service Unavailable")] * 10
        )

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(unkeyed("q", op_name="chat"))

        error = exc_info.value
        assert fake_gemini.call_count == 4
        assert error.attempts == 4
        assert error.http_status == 503
        assert error.message == "[chat] Gemini call failed after 4 attempt(s): Service Unavailable"
        assert clock.sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_request_max_retries_override(self, runtime, fake_gemini):
        fake_gemini.outcomes.extend([google_exceptions.InternalServerError("boom")] * 5)

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(unkeyed("q", max_retries=1))

        assert exc_info.value.attempts == 2
        assert fake_gemini.call_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_fails_on_first_attempt(self, runtime, fake_gemini, clock):
        fake_gemini.outcomes.append(google_exceptions.PermissionDenied("API key not valid"))

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(unkeyed("q"))

        assert exc_info.value.attempts == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "   \n"])
    async def test_empty_reply_fails_fast(self, runtime, fake_gemini, reply):
        fake_gemini.outcomes.append(reply)

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(keyed("q"))

        assert exc_info.value.attempts == 1
        assert exc_info.value.upstream_message == "Empty response from Gemini"
        assert len(runtime.cache) == 0

    @pytest.mark.asyncio
    async def test_long_error_message_truncated(self, runtime, fake_gemini):
        fake_gemini.outcomes.append(google_exceptions.InvalidArgument("x" * 1000))

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(unkeyed("q"))

        assert len(exc_info.value.upstream_message) == 200


class TestConcurrencyGate:

    @pytest.mark.asyncio
    async def test_calls_run_one_at_a_time_in_submission_order(self, runtime, fake_gemini):
        prompts = [f"question {i}" for i in range(5)]

        await asyncio.gather(*(runtime.generate_text(unkeyed(p)) for p in prompts))

        assert fake_gemini.max_active == 1
        assert [c["parts"][0].text for c in fake_gemini.calls] == prompts

    @pytest.mark.asyncio
    async def test_higher_limit_allows_parallel_calls(self, clock):
        fake = FakeGemini()
        runtime = GeminiRuntime(fake, max_concurrency=3, clock=clock, jitter=lambda: 0.0)

        await asyncio.gather(*(runtime.generate_text(unkeyed(str(i))) for i in range(6)))

        assert fake.max_active == 3

    @pytest.mark.asyncio
    async def test_call_with_gate(self, runtime):
        observed = []

        async def op() -> str:
            observed.append(runtime.gate.active)
            return "done"

        assert await runtime.call_with_gate(op) == "done"
        assert observed == [1]
        assert runtime.gate.active == 0


class TestRequestShape:

    @pytest.mark.asyncio
    async def test_model_and_system_instruction_forwarded(self, runtime, fake_gemini):
        parts = [ContentPart.from_bytes(b"\x89PNG", "image/png"), ContentPart.from_text("Read this")]
        await runtime.generate_text(CallRequest(
            parts=parts,
            model="gemini-2.5-pro",
            system_instruction="You are a pharmacist.",
        ))

        call = fake_gemini.calls[0]
        assert call["parts"] == parts
        assert call["model"] == "gemini-2.5-pro"
        assert call["system_instruction"] == "You are a pharmacist."


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_snapshot(self, runtime, fake_gemini, clock):
        await runtime.generate_text(keyed("q"))
        await runtime.generate_text(keyed("q"))
        fake_gemini.outcomes.append(google_exceptions.TooManyRequests(QUOTA_MESSAGE))
        with pytest.raises(GeminiQuotaExceededError):
            await runtime.generate_text(unkeyed("other"))

        status = runtime.status()
        assert status["cooldown_active"] is True
        assert status["cooldown_resume_at"] == clock.now() + 3600
        assert status["cached_entries"] == 1
        assert status["in_flight"] == 0
        assert status["max_concurrency"] == 1
        assert status["active_calls"] == 0
        assert status["queued_calls"] == 0
        assert status["upstream_attempts"] == 2
        assert status["cache_hits"] == 1
        assert status["failures"] == {"llm_quota_exceeded": 1}


class TestBuildCacheKey:

    def test_namespace_prefix_and_sha256(self):
        key = build_cache_key("rx-advice", "text")
        namespace, digest = key.split(":")
        assert namespace == "rx-advice"
        assert len(digest) == 64

    def test_dict_key_order_does_not_matter(self):
        assert build_cache_key("chat", {"a": 1, "b": [1, 2]}) == build_cache_key("chat", {"b": [1, 2], "a": 1})

    def test_different_payloads_differ(self):
        assert build_cache_key("chat", {"message": "ho"}) != build_cache_key("chat", {"message": "sốt"})

    def test_namespaces_differ(self):
        assert build_cache_key("chat", "x") != build_cache_key("rx-advice", "x")

    def test_bytes_and_str_hash_raw(self):
        assert build_cache_key("rx-extract", "abc") == build_cache_key("rx-extract", b"abc")
