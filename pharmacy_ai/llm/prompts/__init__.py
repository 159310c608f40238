"""
Prompts module - Gemini prompt templates.

Prompts are stored as separate Python files:
- chat_prompts.py         : pharmacy assistant chat
- prescription_prompts.py : prescription advice and info extraction
"""
from pharmacy_ai.llm.prompts.chat_prompts import (
    get_chat_system_prompt,
    get_chat_user_prompt,
)
from pharmacy_ai.llm.prompts.prescription_prompts import (
    get_advice_prompt,
    get_extraction_prompt,
)

__all__ = [
    "get_chat_system_prompt",
    "get_chat_user_prompt",
    "get_advice_prompt",
    "get_extraction_prompt",
]
