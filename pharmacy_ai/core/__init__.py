"""
Core module - Configuration and cross-cutting concerns.

This module provides:
- config.py         : Environment-based configuration management
- logging_config.py : Centralized logging setup
- exceptions.py     : Application error hierarchy
- rate_limiter.py, validators.py, audit.py : HTTP-facing safety utilities
"""
from pharmacy_ai.core.config import get_settings, Settings
from pharmacy_ai.core.logging_config import setup_logging, get_logger, LoggerMixin

__all__ = [
    "get_settings",
    "Settings",
    "setup_logging",
    "get_logger",
    "LoggerMixin",
]
