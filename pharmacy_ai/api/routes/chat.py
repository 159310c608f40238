"""
Chat Routes - the pharmacy assistant endpoint.

POST /chat accepts either:
- a text message (with optional history and medicine context), or
- a prescription photo as an image data URL

Requests are rate limited per session. Gemini failures never surface
as HTTP errors here; the services answer with a fallback reply instead.
"""
import uuid

from fastapi import APIRouter, Depends, Response

from pharmacy_ai.core.exceptions import RateLimitExceeded, ValidationError
from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.core.rate_limiter import RateLimiter
from pharmacy_ai.core.validators import (
    is_image_data_url,
    parse_image_data_url,
    validate_message,
    validate_session_id,
)
from pharmacy_ai.api.dependencies import (
    get_chat_rate_limiter,
    get_chat_service,
    get_prescription_service,
)
from pharmacy_ai.models.chat import ChatRequest, ChatResponse, ErrorResponse
from pharmacy_ai.services.chat_service import ChatService
from pharmacy_ai.services.prescription_service import PrescriptionService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/chat",
    tags=["Chat"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)


@router.post(
    "",
    response_model=ChatResponse,
    summary="Send a message or prescription photo to the assistant",
    description="""
    Chat with the pharmacy assistant.

    **Text:** send `message`, plus `conversation_history` for follow-ups.
    Optional `medicines` and `symptoms` give the assistant catalog context.

    **Prescription photo:** send `image` as `data:image/jpeg;base64,...`.
    The reply lists the patient, doctor and diagnosis read from the photo.

    **Rate limiting:** per `session_id`; see the X-RateLimit-* headers.

    If Gemini is unavailable the reply has `source="fallback"`.
    """
)
async def send_message(
    request: ChatRequest,
    response: Response,
    chat_service: ChatService = Depends(get_chat_service),
    prescription_service: PrescriptionService = Depends(get_prescription_service),
    rate_limiter: RateLimiter = Depends(get_chat_rate_limiter),
) -> ChatResponse:
    """Process a chat message or prescription photo."""
    if request.session_id:
        is_valid, error = validate_session_id(request.session_id)
        if not is_valid:
            raise ValidationError(error, field="session_id")
    session_id = request.session_id or str(uuid.uuid4())

    if not request.image and not (request.message and request.message.strip()):
        raise ValidationError("Message or image is required", field="message")

    is_allowed, remaining = rate_limiter.is_allowed(session_id)
    response.headers["X-RateLimit-Limit"] = str(rate_limiter.limit)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    if not is_allowed:
        raise RateLimitExceeded(retry_after=rate_limiter.retry_after(session_id))

    if request.image:
        if not is_image_data_url(request.image):
            raise ValidationError("Image must be a data:image/... URL", field="image")
        mime_type, data = parse_image_data_url(request.image)

        logger.info(f"Processing prescription image: session={session_id[:8]}..., type={mime_type}")
        info = await prescription_service.extract_info(image=(mime_type, data))
        return ChatResponse(
            response=prescription_service.describe_extracted_info(info),
            type="prescription_analysis",
            source="gemini" if info else "fallback",
            session_id=session_id,
            extracted_info=info,
        )

    is_valid, sanitized_message, error = validate_message(request.message)
    if not is_valid:
        raise ValidationError(error, field="message")

    logger.info(
        f"Processing chat request: session={session_id[:8]}..., "
        f"history={len(request.conversation_history)}"
    )

    reply = await chat_service.process_message(
        sanitized_message,
        history=[turn.model_dump() for turn in request.conversation_history],
        medicines=[med.model_dump(exclude_none=True) for med in request.medicines],
        symptoms=request.symptoms,
    )
    return ChatResponse(
        response=reply.text,
        type="text",
        source=reply.source,
        session_id=session_id,
    )
