"""
Models module - Pydantic schemas for data validation.

This module defines:
- Request models: Input validation for API endpoints
- Response models: Output formatting for API responses
"""
from pharmacy_ai.models.chat import (
    AIStatusResponse,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    HistoryMessage,
    MedicineContext,
    PrescriptionAdvice,
    PrescriptionAdviceRequest,
    PrescriptionAdviceResponse,
)

__all__ = [
    "AIStatusResponse",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "HealthResponse",
    "HistoryMessage",
    "MedicineContext",
    "PrescriptionAdvice",
    "PrescriptionAdviceRequest",
    "PrescriptionAdviceResponse",
]
