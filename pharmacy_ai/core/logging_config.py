"""
Centralized logging configuration.

Every module logs through the root logger with one line format:
    timestamp | level | logger:line | message

Handlers:
- stdout, at the configured level
- logs/app_YYYYMMDD.log, everything
- logs/gemini_YYYYMMDD.log, only pharmacy_ai.llm (retries, cooldowns,
  cache hits), so quota incidents can be read in one place

Upstream SDK errors sometimes echo the request URL, key included, so
every handler masks the configured secrets.
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional


_logging_configured = False

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

GEMINI_LOGGER = "pharmacy_ai.llm"

# Chatty at DEBUG; the Gemini SDK logs through google.* and grpc
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google", "grpc")

MASK = "***"


class SecretRedactingFilter(logging.Filter):
    """Replaces known secret values in log records with ***."""

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        # Short values would mask ordinary words
        self.secrets = [s for s in secrets if s and len(s) >= 8]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, MASK)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    secrets: Iterable[str] = (),
) -> logging.Logger:
    """
    Configure application-wide logging. Repeated calls are no-ops.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files; 'logs/' in the project root by default
        secrets: Values to mask in every log line (e.g. the Gemini API key)

    Returns:
        The root logger

    Example:
        >>> setup_logging("INFO", secrets=[settings.gemini_api_key])
    """
    global _logging_configured

    if _logging_configured:
        return logging.getLogger()

    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    redactor = SecretRedactingFilter(secrets)
    day = datetime.now().strftime("%Y%m%d")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    app_handler = logging.FileHandler(log_dir / f"app_{day}.log", encoding="utf-8")
    app_handler.setLevel(logging.DEBUG)

    gemini_handler = logging.FileHandler(log_dir / f"gemini_{day}.log", encoding="utf-8")
    gemini_handler.setLevel(logging.DEBUG)

    for handler in (console_handler, app_handler, gemini_handler):
        handler.setFormatter(formatter)
        handler.addFilter(redactor)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(app_handler)

    # Propagates to root as well, so app_*.log keeps the full picture
    logging.getLogger(GEMINI_LOGGER).addHandler(gemini_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True
    root_logger.debug(f"Logging configured: level={log_level}, dir={log_dir}")
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger; pass __name__ so records nest under pharmacy_ai.*

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing chat message")
        2025-01-15 10:30:45 | INFO     | pharmacy_ai.services.chat_service:42 | Processing chat message
    """
    return logging.getLogger(name)


class LoggerMixin:
    """
    Adds self.logger, named <module>.<ClassName>.

    Example:
        >>> class PrescriptionService(LoggerMixin):
        ...     def extract(self):
        ...         self.logger.info("Extracting...")
    """

    @property
    def logger(self) -> logging.Logger:
        cls = self.__class__
        return get_logger(f"{cls.__module__}.{cls.__name__}")
