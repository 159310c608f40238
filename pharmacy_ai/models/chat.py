"""
Request and Response models for the pharmacy AI API.

These Pydantic models define the contract between client and server.
They provide:
- Type validation
- Automatic documentation
- Request/response serialization
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class HistoryMessage(BaseModel):
    """One prior turn of the conversation, as sent by the mobile app."""
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=4000)


class MedicineContext(BaseModel):
    """A catalog medicine the assistant may mention."""
    name: str
    indication: Optional[str] = None
    price: Optional[float] = None
    stock_quantity: Optional[int] = None
    unit: Optional[str] = None


class ChatRequest(BaseModel):
    """
    Request model for the /chat endpoint.

    Either message or image must be present.

    Attributes:
        message: The user's question or statement.
        image: Optional prescription photo as a data URL.
        conversation_history: Prior turns, oldest first.
        session_id: Optional session identifier (UUID).
        medicines: Optional catalog medicines relevant to the question.
        symptoms: Optional symptoms detected by the app.
    """
    message: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="The user's message or question",
        examples=["What can I take for a headache?"]
    )
    image: Optional[str] = Field(
        default=None,
        description="Prescription image as data:image/<type>;base64,<data>"
    )
    conversation_history: List[HistoryMessage] = Field(
        default_factory=list,
        description="Previous messages in this conversation"
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Session ID used for rate limiting"
    )
    medicines: List[MedicineContext] = Field(
        default_factory=list,
        description="Catalog medicines matching the user's symptoms"
    )
    symptoms: List[str] = Field(
        default_factory=list,
        description="Symptoms detected in the user's message"
    )


class ChatResponse(BaseModel):
    """Response model for the /chat endpoint."""
    success: bool = True
    response: str = Field(
        ...,
        description="The assistant's reply"
    )
    type: Literal["text", "prescription_analysis"] = Field(
        default="text",
        description="Kind of reply"
    )
    source: Literal["gemini", "fallback"] = Field(
        default="gemini",
        description="Whether Gemini produced the reply or a fallback was used"
    )
    session_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    extracted_info: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Structured prescription info (image requests only)"
    )


class PrescriptionAdviceRequest(BaseModel):
    """Request model for /prescriptions/advice."""
    prescription_text: Optional[str] = Field(default=None, max_length=10000)
    found_medicines: List[Dict[str, Any]] = Field(default_factory=list)
    not_found_medicines: List[Dict[str, Any]] = Field(default_factory=list)
    extracted_info: Optional[Dict[str, Any]] = None


class PrescriptionAdvice(BaseModel):
    """Advice produced by Gemini for a prescription."""
    summary: Optional[str] = None
    safety_notes: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class PrescriptionAdviceResponse(BaseModel):
    """Response model for /prescriptions/advice."""
    available: bool = Field(
        ...,
        description="False when Gemini could not produce advice"
    )
    advice: Optional[PrescriptionAdvice] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class HealthResponse(BaseModel):
    """Response model for the /health endpoint."""
    status: str = Field(default="healthy")
    version: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class AIStatusResponse(BaseModel):
    """Response model for /health/ai (Gemini runtime snapshot)."""
    configured: bool
    model: str
    cooldown_active: bool
    cooldown_resume_at: Optional[datetime] = None
    cached_entries: int
    in_flight: int
    max_concurrency: int
    active_calls: int
    queued_calls: int
    upstream_attempts: int
    cache_hits: int
    deduplicated: int
    failures: Dict[str, int] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str
    message: str
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
