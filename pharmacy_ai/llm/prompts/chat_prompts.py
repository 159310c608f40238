"""
Prompts for the pharmacy assistant chat.
"""
from typing import Any, Dict, List, Optional, Sequence

MAX_CONTEXT_MEDICINES = 5

PHARMACY_ASSISTANT_SYSTEM_PROMPT = """You are the AI pharmacy assistant of a smart pharmacy. Your job:

1. Give accurate and safe information about medicines
2. Suggest suitable over-the-counter (OTC) medicines based on symptoms
3. Explain uses, reference dosages and contraindications
4. Always warn the user about serious conditions that need a doctor
5. Never prescribe a specific treatment; information is for reference only
6. Answer in the user's language, in a friendly and professional tone

IMPORTANT:
- Never replace a doctor's prescription
- Always encourage the user to consult a pharmacist or doctor
- Warn immediately about serious symptoms (high fever, chest pain, difficulty breathing, ...)
- Never recommend antibiotics without a prescription
- Only suggest OTC medicines"""


def _format_price(price: Any) -> str:
    try:
        return f"{int(price):,}".replace(",", ".") + "đ"
    except (TypeError, ValueError):
        return str(price)


def build_context_block(
    medicines: Optional[Sequence[Dict[str, Any]]] = None,
    symptoms: Optional[Sequence[str]] = None,
) -> str:
    """
    Describe the medicines and symptoms the assistant should consider.

    Only the first five medicines are listed.
    """
    lines: List[str] = []

    if medicines:
        lines.append("")
        lines.append("Medicines available in the pharmacy:")
        for idx, med in enumerate(list(medicines)[:MAX_CONTEXT_MEDICINES], start=1):
            entry = f"{idx}. {med.get('name', 'Unknown')}"
            if med.get("indication"):
                entry += f" - Uses: {med['indication']}"
            if med.get("price"):
                entry += f" - Price: {_format_price(med['price'])}"
            if med.get("stock_quantity"):
                entry += f" - In stock: {med['stock_quantity']} {med.get('unit') or 'items'}"
            lines.append(entry)

    if symptoms:
        lines.append("")
        lines.append(f"User symptoms: {', '.join(symptoms)}")

    return "\n".join(lines)


def get_chat_system_prompt(
    medicines: Optional[Sequence[Dict[str, Any]]] = None,
    symptoms: Optional[Sequence[str]] = None,
) -> str:
    """System instruction plus the optional context block."""
    context = build_context_block(medicines, symptoms)
    if not context:
        return PHARMACY_ASSISTANT_SYSTEM_PROMPT
    return PHARMACY_ASSISTANT_SYSTEM_PROMPT + "\n" + context


def get_chat_user_prompt(
    message: str,
    history: Optional[Sequence[Dict[str, str]]] = None,
) -> str:
    """
    Render prior turns and the new message as one prompt.

    Gemini conversations must open with a user turn, so a leading
    assistant message (usually the canned greeting) is dropped.
    """
    turns = [t for t in (history or []) if t.get("role") in ("user", "assistant")]
    if turns and turns[0].get("role") == "assistant":
        turns = turns[1:]

    if not turns:
        return message

    lines = ["Conversation so far:"]
    for turn in turns:
        speaker = "User" if turn["role"] == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.get('content', '')}")
    lines.append("")
    lines.append(f"User: {message}")
    lines.append("Assistant:")
    return "\n".join(lines)
