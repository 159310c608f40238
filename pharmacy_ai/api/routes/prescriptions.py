"""
Prescription Routes - Gemini advice for scanned prescriptions.
"""
from fastapi import APIRouter, Depends

from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.api.dependencies import get_prescription_service
from pharmacy_ai.models.chat import (
    ErrorResponse,
    PrescriptionAdvice,
    PrescriptionAdviceRequest,
    PrescriptionAdviceResponse,
)
from pharmacy_ai.services.prescription_service import PrescriptionService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/prescriptions",
    tags=["Prescriptions"],
    responses={
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)


@router.post(
    "/advice",
    response_model=PrescriptionAdviceResponse,
    summary="Get AI advice for a prescription",
    description="""
    Send the OCR text and the catalog matching results of a prescription.
    Gemini returns a short summary, safety notes and recommendations.

    When Gemini is unavailable the response has `available=false`;
    the OCR and catalog results remain valid on their own.
    """
)
async def prescription_advice(
    request: PrescriptionAdviceRequest,
    service: PrescriptionService = Depends(get_prescription_service),
) -> PrescriptionAdviceResponse:
    advice = await service.generate_advice(
        prescription_text=request.prescription_text,
        found_medicines=request.found_medicines,
        not_found_medicines=request.not_found_medicines,
        extracted_info=request.extracted_info,
    )
    if advice is None:
        return PrescriptionAdviceResponse(available=False)

    logger.info(
        f"Prescription advice generated: safety_notes={len(advice['safety_notes'])}, "
        f"recommendations={len(advice['recommendations'])}"
    )
    return PrescriptionAdviceResponse(available=True, advice=PrescriptionAdvice(**advice))
