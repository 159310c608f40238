"""
LLM module - Gemini integration.

This module handles all Gemini interactions:
- client.py  : SDK adapter (GeminiClient, ContentPart)
- runtime.py : reliability layer (GeminiRuntime, CallRequest)
- gate.py, cache.py, quota.py, retry.py, errors.py : runtime parts
- prompts/   : prompt templates
"""
from pharmacy_ai.llm.client import ContentPart, GeminiClient, GeminiConfigurationError
from pharmacy_ai.llm.runtime import (
    CallRequest,
    GeminiRuntime,
    build_cache_key,
    get_runtime,
    reset_runtime,
    set_runtime,
)

__all__ = [
    "ContentPart",
    "GeminiClient",
    "GeminiConfigurationError",
    "CallRequest",
    "GeminiRuntime",
    "build_cache_key",
    "get_runtime",
    "reset_runtime",
    "set_runtime",
]
