"""
Chat Service - Business logic for the pharmacy assistant chat.

This service orchestrates one chat turn:
1. Detects symptoms and builds the pharmacy context
2. Renders the conversation history into the prompt
3. Calls Gemini through the shared runtime (cached per payload)
4. Falls back to a canned reply when Gemini is unavailable

The runtime raises typed LLMError subclasses; this is the layer that
turns them into something a customer can read.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pharmacy_ai.core.config import get_settings
from pharmacy_ai.core.exceptions import GeminiCooldownError, GeminiQuotaExceededError, LLMError
from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.llm.client import ContentPart
from pharmacy_ai.llm.prompts import get_chat_system_prompt, get_chat_user_prompt
from pharmacy_ai.llm.runtime import CallRequest, GeminiRuntime, build_cache_key, get_runtime

logger = get_logger(__name__)

SYMPTOM_KEYWORDS = (
    "headache", "fever", "cough", "sore throat", "runny nose", "stomach ache",
    "diarrhea", "nausea", "allergy", "itchy", "rash", "toothache", "insomnia",
    "đau đầu", "sốt", "ho", "đau họng", "sổ mũi", "đau bụng", "tiêu chảy",
    "buồn nôn", "dị ứng", "ngứa", "mất ngủ",
)

# Symptoms that must be seen by a doctor, whatever the assistant says
EMERGENCY_KEYWORDS = (
    "chest pain", "difficulty breathing", "shortness of breath", "fainted",
    "seizure", "high fever", "coughing blood", "vomiting blood",
    "đau ngực", "khó thở", "ngất", "co giật", "sốt cao", "ho ra máu",
)

SAFETY_WARNING = (
    "⚠️ Your symptoms may be serious. Please go to the nearest hospital or call "
    "emergency services right away instead of self-medicating."
)

QUOTA_FALLBACK_REPLY = (
    "Our AI assistant has reached its usage limit for now. Please try again later, "
    "or contact our pharmacist directly for advice."
)

GENERIC_FALLBACK_REPLY = (
    "Sorry, I can't answer right now. Please try again in a moment, "
    "or contact our pharmacist directly for advice."
)


@dataclass
class ChatReply:
    """A reply and where it came from ('gemini' or 'fallback')."""
    text: str
    source: str = "gemini"


def _keyword_regex(keywords: Sequence[str]) -> "re.Pattern[str]":
    return re.compile(r"\b(" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE)


_SYMPTOM_REGEX = _keyword_regex(SYMPTOM_KEYWORDS)
_EMERGENCY_REGEX = _keyword_regex(EMERGENCY_KEYWORDS)


def detect_symptoms(message: str) -> List[str]:
    """Return the known symptom keywords mentioned in message, in order, once each."""
    found: List[str] = []
    for match in _SYMPTOM_REGEX.finditer(message):
        keyword = match.group(1).lower()
        if keyword not in found:
            found.append(keyword)
    return found


def check_safety_warning(message: str) -> Optional[str]:
    """Return a safety warning if the message mentions an emergency symptom."""
    if _EMERGENCY_REGEX.search(message):
        return SAFETY_WARNING
    return None


class ChatService:
    """
    Service for pharmacy assistant conversations.

    History is supplied by the client on every request; the service
    keeps no conversation state of its own.

    Example:
        >>> service = ChatService()
        >>> reply = await service.process_message("What helps with a sore throat?")
        >>> reply.source
        'gemini'
    """

    def __init__(self, runtime: Optional[GeminiRuntime] = None):
        """
        Initialize the chat service.

        Args:
            runtime: Gemini runtime to call through.
                     Uses the process-wide runtime if not provided.
        """
        self.runtime = runtime or get_runtime()
        self.settings = get_settings()
        logger.info("ChatService initialized")

    async def process_message(
        self,
        message: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        medicines: Optional[Sequence[Dict[str, Any]]] = None,
        symptoms: Optional[Sequence[str]] = None,
    ) -> ChatReply:
        """
        Answer one user message.

        Args:
            message: Sanitized user message
            history: Prior turns as {"role", "content"} dicts, oldest first
            medicines: Catalog medicines to mention (first five are used)
            symptoms: Detected symptoms; derived from the message if omitted

        Returns:
            ChatReply from Gemini, or a fallback reply if Gemini failed
        """
        history = list(history or [])
        medicines = list(medicines or [])
        symptoms = list(symptoms) if symptoms else detect_symptoms(message)

        logger.info(
            f"Processing chat message: length={len(message)}, "
            f"history={len(history)}, medicines={len(medicines)}, symptoms={len(symptoms)}"
        )

        request = CallRequest(
            parts=[ContentPart.from_text(get_chat_user_prompt(message, history))],
            system_instruction=get_chat_system_prompt(medicines, symptoms),
            cache_key=build_cache_key("chat", {
                "message": message,
                "history": history,
                "medicines": medicines,
                "symptoms": symptoms,
            }),
            cache_ttl_seconds=self.settings.chat_cache_ttl_seconds,
            op_name="chat",
        )

        try:
            text = await self.runtime.generate_text(request)
        except (GeminiCooldownError, GeminiQuotaExceededError) as e:
            logger.warning(f"Gemini unavailable (quota): {e}")
            return self._fallback(message, QUOTA_FALLBACK_REPLY)
        except LLMError as e:
            logger.error(f"Gemini error during chat: {e}")
            return self._fallback(message, GENERIC_FALLBACK_REPLY)

        logger.info(f"Chat reply generated: length={len(text)}")
        return ChatReply(text=text, source="gemini")

    def _fallback(self, message: str, default_reply: str) -> ChatReply:
        warning = check_safety_warning(message)
        if warning:
            return ChatReply(text=f"{warning}\n\n{default_reply}", source="fallback")
        return ChatReply(text=default_reply, source="fallback")
