"""
Prompts for prescription advice and prescription info extraction.
"""
import json
from typing import Any, Dict, List, Optional

ADVICE_RESPONSE_SCHEMA = """{
  "summary": "short summary (<= 3 sentences) of the condition and treatment direction",
  "safetyNotes": ["important warning, one sentence per item"],
  "recommendations": ["short suggestion for the pharmacist / patient, one per item"]
}"""

EXTRACTION_RESPONSE_SCHEMA = """{
  "customerName": "Full patient name (with correct diacritics)",
  "doctorName": "Full doctor name (with correct diacritics)",
  "hospitalName": "Full hospital / clinic name",
  "examinationDate": "Examination date (format: YYYY-MM-DD)",
  "diagnosis": "Complete diagnosis, not truncated"
}"""


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def get_advice_prompt(
    prescription_text: Optional[str],
    found_medicines: List[Dict[str, Any]],
    not_found_medicines: List[Dict[str, Any]],
    extracted_info: Optional[Dict[str, Any]] = None,
) -> str:
    """Prompt asking for JSON advice on a scanned prescription."""
    return "\n".join([
        "You are a pharmacist assistant. Analyze the prescription below and answer in JSON with this structure:",
        ADVICE_RESPONSE_SCHEMA,
        "",
        "Information extracted by OCR (patient / doctor / diagnosis):",
        _dump(extracted_info or {}),
        "",
        "Medicines found in the pharmacy catalog (foundMedicines):",
        _dump(found_medicines or []),
        "",
        "Medicines not found / needing suggestions (notFoundMedicines):",
        _dump(not_found_medicines or []),
        "",
        "Full prescription text (if any):",
        prescription_text or "(none)",
        "",
        "IMPORTANT REQUIREMENTS:",
        "- Return ONLY plain JSON in exactly the structure above, no explanation outside the JSON.",
        "- If data is missing, use empty arrays or empty strings.",
    ])


def get_extraction_prompt(ocr_text: Optional[str] = None, from_image: bool = False) -> str:
    """
    Prompt asking for structured prescription info as JSON.

    With from_image the model reads the attached image; otherwise it
    works from the OCR text.
    """
    if from_image:
        intro = (
            "You are an expert at extracting information from prescriptions. "
            "Look at the attached prescription image and extract the following information."
        )
        source = ""
    else:
        intro = (
            "You are an expert at extracting information from prescriptions. "
            "Extract the following information from the OCR text."
        )
        source = f"\nOCR text:\n{ocr_text or ''}\n"

    return "\n".join([
        intro,
        source,
        "Return JSON with these fields (JSON only, no other text):",
        EXTRACTION_RESPONSE_SCHEMA,
        "",
        "Notes:",
        "- Names must keep their full, correct diacritics",
        "- The diagnosis must be complete, not truncated",
        "- Dates must use the YYYY-MM-DD format",
    ])
