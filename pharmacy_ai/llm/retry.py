"""
Retry policy for Gemini calls.

classify_error() sorts a normalized UpstreamError into one of three
outcomes:
- QUOTA_EXCEEDED: 429 with daily-quota wording; never retried
- RETRYABLE: rate limit, 5xx, overload or network trouble
- NON_RETRYABLE: anything else (validation, auth, empty reply)

backoff_delay_ms() gives the wait before the next attempt.
"""
import random
from enum import Enum
from typing import Callable, Optional

from pharmacy_ai.llm.errors import UpstreamError

QUOTA_EXHAUSTED_PHRASE = "exceeded your current quota"

RETRYABLE_MESSAGE_PATTERNS = (
    "overloaded",
    "service unavailable",
    "fetch failed",
    "network",
)

RETRYABLE_NETWORK_CODES = (
    "econnreset",
    "etimedout",
    "econnrefused",
    "enotfound",
)

RATE_LIMIT_BASE_MS = 3000
DEFAULT_BASE_MS = 1000
MAX_BACKOFF_EXPONENT = 6
MAX_JITTER_MS = 250

MAX_ERROR_MESSAGE_LENGTH = 200


class ErrorClass(str, Enum):
    """Outcome of classifying one failed attempt."""
    NON_RETRYABLE = "non_retryable"
    RETRYABLE = "retryable"
    QUOTA_EXCEEDED = "quota_exceeded"


def is_quota_exhausted(error: UpstreamError) -> bool:
    return error.http_status == 429 and QUOTA_EXHAUSTED_PHRASE in error.message.lower()


def classify_error(error: UpstreamError) -> ErrorClass:
    """
    Decide what the retry loop should do with a failed attempt.

    Args:
        error: Normalized upstream failure

    Returns:
        ErrorClass for the failure
    """
    if is_quota_exhausted(error):
        return ErrorClass.QUOTA_EXCEEDED

    status = error.http_status
    if status in (429, 503):
        return ErrorClass.RETRYABLE
    if status is not None and 500 <= status <= 599:
        return ErrorClass.RETRYABLE

    message = error.message.lower()
    if any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS):
        return ErrorClass.RETRYABLE

    code = (error.network_code or "").lower()
    if any(known in code for known in RETRYABLE_NETWORK_CODES):
        return ErrorClass.RETRYABLE

    return ErrorClass.NON_RETRYABLE


def backoff_delay_ms(
    error: UpstreamError,
    attempt: int,
    jitter: Optional[Callable[[], float]] = None,
) -> int:
    """
    Exponential backoff with jitter.

    base is 3000 ms for HTTP 429 and 1000 ms otherwise; the delay is
    base * 2**min(attempt, 6) plus up to 250 ms of jitter.

    Args:
        error: The failure being retried
        attempt: 0-based index of the attempt that failed
        jitter: Returns a float in [0, 1); defaults to random.random

    Returns:
        Delay in milliseconds
    """
    base = RATE_LIMIT_BASE_MS if error.http_status == 429 else DEFAULT_BASE_MS
    exponent = min(MAX_BACKOFF_EXPONENT, max(0, attempt))
    rand = (jitter or random.random)()
    return base * (2 ** exponent) + int(rand * MAX_JITTER_MS)


def truncate_message(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    return message[:limit]
