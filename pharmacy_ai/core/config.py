"""
Settings from environment variables (and an optional .env file).

Gemini settings:
- GEMINI_API_KEY is optional at startup; calls fail without it
- GEMINI_MAX_CONCURRENCY bounds simultaneous upstream calls
- Retry, cache and quota-cooldown defaults feed the Gemini runtime
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Real environment variables win over .env entries
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    """
    Immutable application settings.

    Attributes:
        app_name: Application identifier for logging
        app_env: Environment name (development, staging, production)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        gemini_api_key: API key for Google Gemini (empty = calls fail)
        gemini_model: Default Gemini model name
        gemini_max_concurrency: Maximum simultaneous upstream calls
        gemini_max_retries: Retries after the first attempt
        gemini_cache_ttl_seconds: Default result cache lifetime
        gemini_quota_cooldown_minutes: Pause after daily quota exhaustion
        gemini_request_timeout_seconds: Per-request timeout given to the SDK
        chat_cache_ttl_seconds: Cache lifetime for chat replies
    """
    # Application settings
    app_name: str
    app_env: str
    log_level: str

    # Gemini settings
    gemini_api_key: str
    gemini_model: str
    gemini_max_concurrency: int
    gemini_max_retries: int
    gemini_cache_ttl_seconds: int
    gemini_quota_cooldown_minutes: int
    gemini_request_timeout_seconds: float

    # Chat settings
    chat_cache_ttl_seconds: int

    # Safety settings
    rate_limit_per_minute: int
    enable_audit_logging: bool

    def is_development(self) -> bool:
        return self.app_env.lower() == "development"

    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def gemini_quota_cooldown_seconds(self) -> int:
        return self.gemini_quota_cooldown_minutes * 60


def _get_env(key: str, default: Optional[str] = None) -> str:
    """Read a variable; raise ValueError if it is unset and has no default."""
    value = os.environ.get(key, default)
    if value is None:
        raise ValueError(
            f"Required environment variable '{key}' is not set. "
            f"Please check your .env file."
        )
    return value


def _get_int(key: str, default: int, minimum: Optional[int] = None) -> int:
    """Read an integer variable, clamped to minimum when given."""
    raw = _get_env(key, str(default)).strip()
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got {raw!r}")
    return value if minimum is None else max(minimum, value)


def _get_float(key: str, default: float) -> float:
    raw = _get_env(key, str(default)).strip()
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a number, got {raw!r}")


def _get_bool(key: str, default: bool) -> bool:
    return _get_env(key, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Build the Settings once per process.

    Tests change the environment and call get_settings.cache_clear().

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    return Settings(
        app_name=_get_env("APP_NAME", "PharmacyAIGateway"),
        app_env=_get_env("APP_ENV", "development"),
        log_level=_get_env("LOG_LEVEL", "INFO"),

        gemini_api_key=_get_env("GEMINI_API_KEY", "").strip(),
        gemini_model=_get_env("GEMINI_MODEL", "gemini-2.5-flash").strip(),
        gemini_max_concurrency=_get_int("GEMINI_MAX_CONCURRENCY", 1, minimum=1),
        gemini_max_retries=_get_int("GEMINI_MAX_RETRIES", 3, minimum=0),
        gemini_cache_ttl_seconds=_get_int("GEMINI_CACHE_TTL_SECONDS", 24 * 60 * 60, minimum=0),
        gemini_quota_cooldown_minutes=_get_int("GEMINI_QUOTA_COOLDOWN_MINUTES", 60, minimum=0),
        gemini_request_timeout_seconds=_get_float("GEMINI_REQUEST_TIMEOUT_SECONDS", 45.0),

        chat_cache_ttl_seconds=_get_int("CHAT_CACHE_TTL_SECONDS", 60 * 60, minimum=0),

        rate_limit_per_minute=_get_int("RATE_LIMIT_PER_MINUTE", 30, minimum=1),
        enable_audit_logging=_get_bool("ENABLE_AUDIT_LOGGING", True),
    )
