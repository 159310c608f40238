"""
Health Check Routes - System health and monitoring endpoints.

These endpoints are used for:
1. Load balancer health checks
2. Kubernetes liveness/readiness probes
3. Watching the Gemini runtime (quota cooldown, cache, queue)
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from pharmacy_ai import __version__
from pharmacy_ai.core.config import get_settings
from pharmacy_ai.core.logging_config import get_logger
from pharmacy_ai.api.dependencies import get_gemini_runtime
from pharmacy_ai.llm.client import resolve_model_name
from pharmacy_ai.llm.runtime import GeminiRuntime
from pharmacy_ai.models.chat import AIStatusResponse, HealthResponse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="Returns 200 OK while the API process is up."
)
async def health_check() -> HealthResponse:
    """Liveness probe; does not touch Gemini."""
    logger.debug("Health check requested")
    return HealthResponse(status="healthy", version=__version__)


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check endpoint",
    description="""
    Returns `ready` when Gemini calls can be made, `degraded` when the
    API key is missing or the quota cooldown is active. Chat still answers
    in degraded mode, with fallback replies.
    """
)
async def readiness_check(runtime: GeminiRuntime = Depends(get_gemini_runtime)) -> HealthResponse:
    logger.debug("Readiness check requested")

    settings = get_settings()
    degraded = not settings.gemini_api_key or runtime.quota_guard.is_active()
    return HealthResponse(status="degraded" if degraded else "ready", version=__version__)


@router.get(
    "/ai",
    response_model=AIStatusResponse,
    summary="Gemini runtime status",
)
async def ai_status(runtime: GeminiRuntime = Depends(get_gemini_runtime)) -> AIStatusResponse:
    """Cooldown state, cache size, in-flight calls and gate occupancy."""
    settings = get_settings()
    status = runtime.status()

    resume_at = status.pop("cooldown_resume_at")
    return AIStatusResponse(
        configured=bool(settings.gemini_api_key),
        model=resolve_model_name(settings.gemini_model),
        cooldown_resume_at=(
            datetime.fromtimestamp(resume_at, tz=timezone.utc) if resume_at is not None else None
        ),
        **status,
    )
