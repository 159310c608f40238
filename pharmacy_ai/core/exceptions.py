"""
Custom Exceptions - Application-specific error classes.

This module defines a hierarchy of exceptions for clean error handling:
- Each exception has a status code and error code
- Used by the API layer for consistent error responses
- Gemini runtime failures all derive from LLMError so services can
  catch one type and turn it into a user-facing reply
"""
from datetime import datetime
from typing import Optional


class PharmacyAIException(Exception):
    """
    Base exception for all application errors.

    Subclass this for specific error types.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Body in the ErrorResponse shape."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.utcnow().isoformat(),
        }


class RateLimitExceeded(PharmacyAIException):
    """Raised when a client exceeds the rate limit."""
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message=f"Rate limit exceeded. Please wait {retry_after} seconds.",
            details=f"retry_after={retry_after}"
        )
        self.retry_after = retry_after


class ValidationError(PharmacyAIException):
    """Raised when input validation fails."""
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field


class LLMError(PharmacyAIException):
    """Raised when Gemini API calls fail."""
    status_code = 503
    error_code = "llm_error"

    def __init__(self, message: str = "LLM service unavailable", op_name: Optional[str] = None):
        super().__init__(message)
        self.op_name = op_name


class GeminiQuotaExceededError(LLMError):
    """
    Upstream reported the daily quota as exhausted.

    Never retried. Raising this also starts the quota cooldown.
    """
    error_code = "llm_quota_exceeded"

    def __init__(self, op_name: str, upstream_message: str):
        super().__init__(
            f"[{op_name}] Gemini daily quota exceeded: {upstream_message}",
            op_name=op_name,
        )
        self.upstream_message = upstream_message


class GeminiCooldownError(LLMError):
    """Raised without contacting Gemini while the quota cooldown is active."""
    error_code = "llm_quota_cooldown"

    def __init__(self, op_name: str, resume_at: Optional[float] = None):
        super().__init__(
            f"[{op_name}] Gemini quota exceeded (cooldown active)",
            op_name=op_name,
        )
        self.resume_at = resume_at
        if resume_at is not None:
            self.details = f"resume_at={resume_at:.0f}"


class GeminiCallFailedError(LLMError):
    """Raised when a call fails for good (non-retryable or retries exhausted)."""
    error_code = "llm_call_failed"

    def __init__(
        self,
        op_name: str,
        attempts: int,
        upstream_message: str,
        http_status: Optional[int] = None,
    ):
        super().__init__(
            f"[{op_name}] Gemini call failed after {attempts} attempt(s): {upstream_message}",
            op_name=op_name,
        )
        self.attempts = attempts
        self.upstream_message = upstream_message
        self.http_status = http_status
