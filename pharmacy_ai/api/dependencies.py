"""
Route dependencies - lazily created service singletons.

Routes receive these through FastAPI's Depends(), so tests can swap
them with app.dependency_overrides.
"""
from typing import Optional

from pharmacy_ai.core.rate_limiter import RateLimiter, get_rate_limiter
from pharmacy_ai.llm.runtime import GeminiRuntime, get_runtime
from pharmacy_ai.services.chat_service import ChatService
from pharmacy_ai.services.prescription_service import PrescriptionService

_chat_service: Optional[ChatService] = None
_prescription_service: Optional[PrescriptionService] = None


def get_gemini_runtime() -> GeminiRuntime:
    return get_runtime()


def get_chat_service() -> ChatService:
    """Get or create the chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(get_runtime())
    return _chat_service


def get_prescription_service() -> PrescriptionService:
    """Get or create the prescription service instance."""
    global _prescription_service
    if _prescription_service is None:
        _prescription_service = PrescriptionService(get_runtime())
    return _prescription_service


def get_chat_rate_limiter() -> RateLimiter:
    return get_rate_limiter()


def reset_services() -> None:
    global _chat_service, _prescription_service
    _chat_service = None
    _prescription_service = None
