"""
Services module - Business logic and orchestration.

Services contain the core application logic:
- No HTTP concerns (those belong in api/)
- Gemini access goes through the shared GeminiRuntime
"""
from pharmacy_ai.services.chat_service import ChatReply, ChatService
from pharmacy_ai.services.prescription_service import PrescriptionService

__all__ = [
    "ChatReply",
    "ChatService",
    "PrescriptionService",
]
