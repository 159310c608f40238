"""
Prescription Service - Gemini-backed prescription features.

Two features, both optional extras on top of OCR and catalog matching:
- generate_advice: summary, safety notes and recommendations as JSON
- extract_info: patient / doctor / diagnosis fields, read from the
  prescription image (vision) or from OCR text

Both return None when Gemini is unavailable, so callers keep working
with whatever OCR produced.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from pharmacy_ai.core.exceptions import LLMError
from pharmacy_ai.core.logging_config import LoggerMixin
from pharmacy_ai.llm.client import ContentPart
from pharmacy_ai.llm.prompts import get_advice_prompt, get_extraction_prompt
from pharmacy_ai.llm.runtime import CallRequest, GeminiRuntime, build_cache_key, get_runtime

_JSON_OBJECT_REGEX = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE_REGEX = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

EXTRACTED_FIELDS = (
    ("customerName", "Patient"),
    ("doctorName", "Doctor"),
    ("hospitalName", "Hospital / clinic"),
    ("examinationDate", "Examination date"),
    ("diagnosis", "Diagnosis"),
)


def parse_advice_reply(text: str) -> Dict[str, Any]:
    """Parse Gemini's advice reply; plain text becomes {"summary": text}."""
    cleaned = _CODE_FENCE_REGEX.sub("", text.strip())
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return {"summary": text}
    if not isinstance(parsed, dict):
        return {"summary": text}
    return parsed


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first {...} block in text as a dict, or None."""
    match = _JSON_OBJECT_REGEX.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


class PrescriptionService(LoggerMixin):
    """
    Gemini features for prescriptions.

    Example:
        >>> service = PrescriptionService()
        >>> info = await service.extract_info(image=("image/jpeg", photo_bytes))
        >>> info["diagnosis"]
        'Acute pharyngitis'
    """

    def __init__(self, runtime: Optional[GeminiRuntime] = None):
        self.runtime = runtime or get_runtime()

    async def generate_advice(
        self,
        prescription_text: Optional[str] = None,
        found_medicines: Optional[List[Dict[str, Any]]] = None,
        not_found_medicines: Optional[List[Dict[str, Any]]] = None,
        extracted_info: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Ask Gemini for advice on a prescription.

        Returns:
            Dict with summary, safety_notes and recommendations,
            or None if Gemini failed
        """
        found_medicines = found_medicines or []
        not_found_medicines = not_found_medicines or []

        prompt = get_advice_prompt(
            prescription_text, found_medicines, not_found_medicines, extracted_info
        )
        request = CallRequest(
            parts=[ContentPart.from_text(prompt)],
            cache_key=build_cache_key("rx-advice", prompt),
            op_name="prescription_advice",
        )

        try:
            text = await self.runtime.generate_text(request)
        except LLMError as e:
            self.logger.error(f"Prescription advice unavailable: {e}")
            return None

        parsed = parse_advice_reply(text)
        return {
            "summary": parsed.get("summary") or None,
            "safety_notes": _as_str_list(parsed.get("safetyNotes") or parsed.get("safety_notes")),
            "recommendations": _as_str_list(parsed.get("recommendations")),
        }

    async def extract_info(
        self,
        ocr_text: Optional[str] = None,
        image: Optional[Tuple[str, bytes]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Extract structured prescription info with Gemini.

        Args:
            ocr_text: Text recognized by OCR, used when there is no image
            image: (mime_type, bytes) of the prescription photo

        Returns:
            Dict of extracted fields, or None if Gemini failed or replied
            without a JSON object
        """
        if image is not None:
            mime_type, data = image
            prompt = get_extraction_prompt(from_image=True)
            parts = [ContentPart.from_bytes(data, mime_type), ContentPart.from_text(prompt)]
            cache_key = build_cache_key("rx-extract", data)
            self.logger.info(f"Extracting prescription info from image ({len(data)} bytes)")
        elif ocr_text and ocr_text.strip():
            prompt = get_extraction_prompt(ocr_text=ocr_text)
            parts = [ContentPart.from_text(prompt)]
            cache_key = build_cache_key("rx-extract", prompt)
        else:
            return None

        try:
            text = await self.runtime.generate_text(CallRequest(
                parts=parts,
                cache_key=cache_key,
                op_name="prescription_extract",
            ))
        except LLMError as e:
            self.logger.error(f"Prescription extraction unavailable: {e}")
            return None

        info = extract_json_object(text)
        if info is None:
            self.logger.warning("Gemini extraction reply contained no JSON object")
        return info

    @staticmethod
    def describe_extracted_info(info: Optional[Dict[str, Any]]) -> str:
        """Render extracted fields as a chat reply."""
        if not info:
            return (
                "Sorry, I couldn't read this prescription. Please send a clearer photo "
                "or show it to our pharmacist."
            )

        lines = ["Here is what I could read from your prescription:"]
        for key, label in EXTRACTED_FIELDS:
            if info.get(key):
                lines.append(f"- {label}: {info[key]}")
        if len(lines) == 1:
            lines.append("- No details could be recognized.")
        lines.append("")
        lines.append("Please confirm the medicines with our pharmacist before buying.")
        return "\n".join(lines)
