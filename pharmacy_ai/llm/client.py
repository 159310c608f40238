"""
Gemini Client - thin async adapter over google-generativeai.

This module is the only place that touches the Gemini SDK:
- API key configuration
- Model construction (with optional system instruction)
- Conversion of ContentPart values to SDK parts
- Extraction of the reply text

It does no retrying or caching; GeminiRuntime layers those on top.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import google.generativeai as genai

from pharmacy_ai.core.config import get_settings
from pharmacy_ai.core.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# Retired model names still found in older .env files
MODEL_ALIASES = {
    "gemini-pro": "gemini-pro-latest",
    "gemini-1.5-flash": "gemini-2.5-flash",
    "gemini-1.5-pro": "gemini-2.5-pro",
    "gemini-1.5-flash-latest": "gemini-2.5-flash",
}


@dataclass(frozen=True)
class ContentPart:
    """
    One piece of a Gemini request: text, or binary data with a MIME type.

    Example:
        >>> ContentPart.from_text("Summarize this prescription")
        >>> ContentPart.from_bytes(image_bytes, "image/png")
    """
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(data=data, mime_type=mime_type)

    @property
    def is_binary(self) -> bool:
        return self.data is not None

    def to_gemini(self) -> Union[str, Dict[str, Any]]:
        """Convert to the part format the SDK accepts."""
        if self.data is not None:
            return {"mime_type": self.mime_type or "application/octet-stream", "data": self.data}
        return self.text or ""


class GeminiConfigurationError(Exception):
    """Raised when Gemini cannot be called because it is not configured."""
    pass


def resolve_model_name(model: Optional[str]) -> str:
    """Map retired names to current ones; strip a leading 'models/'."""
    name = (model or DEFAULT_MODEL).strip()
    if name.startswith("models/"):
        name = name[len("models/"):]
    return MODEL_ALIASES.get(name, name)


class GeminiClient:
    """
    Async client for Gemini text generation.

    Example:
        >>> client = GeminiClient(api_key="...")
        >>> text = await client.generate_content(
        ...     model="gemini-2.5-flash",
        ...     parts=[ContentPart.from_text("Hello")],
        ... )
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
        request_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.default_model = resolve_model_name(default_model or settings.gemini_model)
        self.request_timeout = (
            settings.gemini_request_timeout_seconds if request_timeout is None else request_timeout
        )
        self._configured = False

        logger.info(f"Gemini client initialized (Model: {self.default_model})")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _ensure_configured(self) -> None:
        if not self.api_key:
            raise GeminiConfigurationError("GEMINI_API_KEY is not set")
        if not self._configured:
            genai.configure(api_key=self.api_key)
            self._configured = True

    def _build_model(self, model: Optional[str], system_instruction: Optional[str]):
        model_name = resolve_model_name(model or self.default_model)
        if system_instruction and system_instruction.strip():
            return genai.GenerativeModel(
                model_name=model_name,
                system_instruction=system_instruction,
            )
        return genai.GenerativeModel(model_name=model_name)

    async def generate_content(
        self,
        parts: Sequence[ContentPart],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        """
        Run one generateContent request and return the raw reply text.

        Args:
            parts: Ordered request parts (text and/or inline data)
            model: Model name; the client default when omitted
            system_instruction: Optional system prompt

        Returns:
            Reply text, possibly empty if Gemini returned no candidates

        Raises:
            GeminiConfigurationError: If no API key is configured
            google.api_core.exceptions.GoogleAPICallError: On API errors
        """
        self._ensure_configured()
        model_instance = self._build_model(model, system_instruction)

        contents: List[Union[str, Dict[str, Any]]] = [part.to_gemini() for part in parts]
        request_options = {"timeout": self.request_timeout} if self.request_timeout else None

        response = await model_instance.generate_content_async(
            contents,
            request_options=request_options,
        )
        return self._extract_text(response)

    @staticmethod
    def _extract_text(response: Any) -> str:
        # .text raises ValueError when the reply was blocked or has no parts
        try:
            return response.text or ""
        except ValueError as e:
            logger.warning(f"Gemini returned no usable text: {e}")
            return ""
