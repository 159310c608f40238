"""
Unit tests for the Gemini retry policy.

Tests cover:
1. Error classification (quota, retryable, non-retryable)
2. Backoff delays, including the exponent cap and jitter bounds
3. Error message truncation
"""
import pytest

from pharmacy_ai.llm.errors import UpstreamError
from pharmacy_ai.llm.retry import (
    ErrorClass,
    backoff_delay_ms,
    classify_error,
    is_quota_exhausted,
    truncate_message,
)

QUOTA_MESSAGE = (
    "429 You exceeded your current quota, please check your plan and billing details."
)


class TestClassifyError:

    def test_quota_exhausted_429(self):
        error = UpstreamError(http_status=429, message=QUOTA_MESSAGE)
        assert is_quota_exhausted(error)
        assert classify_error(error) is ErrorClass.QUOTA_EXCEEDED

    def test_quota_phrase_is_case_insensitive(self):
        error = UpstreamError(http_status=429, message="You Exceeded Your Current Quota")
        assert classify_error(error) is ErrorClass.QUOTA_EXCEEDED

    def test_quota_phrase_without_429_is_not_quota(self):
        error = UpstreamError(http_status=400, message=QUOTA_MESSAGE)
        assert classify_error(error) is ErrorClass.NON_RETRYABLE

    def test_plain_rate_limit_is_retryable(self):
        error = UpstreamError(http_status=429, message="Resource has been exhausted")
        assert classify_error(error) is ErrorClass.RETRYABLE

    @pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
    def test_server_errors_are_retryable(self, status):
        assert classify_error(UpstreamError(http_status=status, message="boom")) is ErrorClass.RETRYABLE

    @pytest.mark.parametrize(
        "message",
        [
            "The model is overloaded. Please try again later.",
            "Service Unavailable",
            "TypeError: fetch failed",
            "Network error while contacting upstream",
        ],
    )
    def test_transient_messages_are_retryable(self, message):
        assert classify_error(UpstreamError(message=message)) is ErrorClass.RETRYABLE

    @pytest.mark.parametrize("code", ["ECONNRESET", "ETIMEDOUT", "ECONNREFUSED", "ENOTFOUND"])
    def test_network_codes_are_retryable(self, code):
        error = UpstreamError(message="socket closed", network_code=code)
        assert classify_error(error) is ErrorClass.RETRYABLE

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_not_retryable(self, status):
        error = UpstreamError(http_status=status, message="API key not valid")
        assert classify_error(error) is ErrorClass.NON_RETRYABLE

    def test_empty_response_is_not_retryable(self):
        assert classify_error(UpstreamError.empty_response()) is ErrorClass.NON_RETRYABLE


class TestBackoffDelay:

    def test_default_base_doubles(self):
        error = UpstreamError(http_status=503, message="unavailable")
        no_jitter = lambda: 0.0
        assert [backoff_delay_ms(error, a, no_jitter) for a in range(4)] == [1000, 2000, 4000, 8000]

    def test_rate_limit_base_is_3000(self):
        error = UpstreamError(http_status=429, message="slow down")
        assert backoff_delay_ms(error, 0, lambda: 0.0) == 3000
        assert backoff_delay_ms(error, 2, lambda: 0.0) == 12000

    def test_exponent_capped_at_six(self):
        error = UpstreamError(http_status=500, message="boom")
        assert backoff_delay_ms(error, 6, lambda: 0.0) == 64000
        assert backoff_delay_ms(error, 10, lambda: 0.0) == 64000

    def test_jitter_stays_below_250ms(self):
        error = UpstreamError(http_status=500, message="boom")
        assert backoff_delay_ms(error, 0, lambda: 0.5) == 1125
        assert backoff_delay_ms(error, 0, lambda: 0.9999) == 1249

    def test_default_jitter_in_range(self):
        error = UpstreamError(network_code="ECONNRESET", message="reset")
        for _ in range(50):
            delay = backoff_delay_ms(error, 1)
            assert 2000 <= delay < 2250


class TestTruncateMessage:

    def test_long_message_cut_to_200(self):
        assert len(truncate_message("x" * 500)) == 200

    def test_short_message_unchanged(self):
        assert truncate_message("bad request") == "bad request"
