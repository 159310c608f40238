"""
Input Validators - checks run on /chat input before it reaches Gemini.

- Message cleanup (control characters, whitespace, length)
- Session ID format
- Prompt-injection heuristics (logged, never blocking)
- Prescription photo data URLs
"""
import base64
import binascii
import re
import uuid
from typing import Optional, Tuple

from pharmacy_ai.core.exceptions import ValidationError
from pharmacy_ai.core.logging_config import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000
MAX_IMAGE_BYTES = 8 * 1024 * 1024

# Phrases often used to pull the assistant off its pharmacy instructions
SUSPICIOUS_PATTERNS = [
    r"ignore\s+(all\s+)?(previous|prior|above)\s+instructions",
    r"disregard\s+(the\s+)?system\s+prompt",
    r"reveal\s+(your\s+)?(system\s+prompt|instructions)",
    r"you\s+are\s+no\s+longer\s+a",
    r"act\s+as\s+(a\s+)?doctor\s+and\s+prescribe",
]

_SUSPICIOUS_REGEX = [re.compile(p, re.IGNORECASE) for p in SUSPICIOUS_PATTERNS]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_DATA_URL_REGEX = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)


def sanitize_message(message: Optional[str], max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Drop control characters, collapse whitespace, cut to max_length."""
    if not message:
        return ""
    cleaned = _WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", message)).strip()
    return cleaned[:max_length]


def validate_session_id(session_id: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Check that a client-supplied session ID is a UUID.

    A missing ID is fine; the route generates one.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not session_id:
        return True, None
    try:
        uuid.UUID(session_id)
    except ValueError:
        return False, "Invalid session_id format (must be UUID)"
    return True, None


def detect_suspicious_patterns(message: str) -> Tuple[bool, Optional[str]]:
    """
    Look for prompt-injection phrasing.

    Heuristic only: Gemini's system instruction is the real guard, so a
    match is logged and the message still goes through.

    Returns:
        Tuple of (is_suspicious, matched_text)
    """
    for pattern in _SUSPICIOUS_REGEX:
        match = pattern.search(message)
        if match:
            return True, match.group()
    return False, None


def validate_message(message: Optional[str]) -> Tuple[bool, str, Optional[str]]:
    """
    Sanitize and validate a chat message.

    Returns:
        Tuple of (is_valid, sanitized_message, error_message)
    """
    if not message or not message.strip():
        return False, "", "Message cannot be empty"

    sanitized = sanitize_message(message)
    if not sanitized:
        return False, "", "Message cannot be empty after sanitization"

    is_suspicious, matched = detect_suspicious_patterns(sanitized)
    if is_suspicious:
        logger.warning(f"Possible prompt injection (allowed): {matched[:50]}")

    return True, sanitized, None


def is_image_data_url(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith("data:image/")


def parse_image_data_url(data_url: str, max_bytes: int = MAX_IMAGE_BYTES) -> Tuple[str, bytes]:
    """
    Decode a data:image/<type>;base64,<data> URL.

    Args:
        data_url: The data URL sent by the app
        max_bytes: Largest accepted decoded image

    Returns:
        Tuple of (mime_type, image_bytes); image/jpg is reported as image/jpeg

    Raises:
        ValidationError: If the URL is malformed, empty or too large
    """
    match = _DATA_URL_REGEX.match(data_url.strip()) if data_url else None
    if not match:
        raise ValidationError("Image must be a base64 data:image/... URL", field="image")

    mime_type = match.group(1).lower()
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"

    try:
        data = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64", field="image")

    if not data:
        raise ValidationError("Image data is empty", field="image")
    if len(data) > max_bytes:
        raise ValidationError(
            f"Image too large (max {max_bytes // (1024 * 1024)} MB)", field="image"
        )

    return mime_type, data
