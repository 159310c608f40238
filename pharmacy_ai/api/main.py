"""
FastAPI application for the pharmacy app's AI features.

Wires together:
- logging (with the Gemini key masked)
- security, audit and CORS middleware
- error handlers that answer in the ErrorResponse shape
- the health, chat and prescription routers
- the process-wide Gemini runtime (built at startup)

Run with: uvicorn pharmacy_ai.api.main:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmacy_ai import __version__
from pharmacy_ai.core.audit import AuditMiddleware, SecurityHeadersMiddleware
from pharmacy_ai.core.config import get_settings
from pharmacy_ai.core.exceptions import PharmacyAIException, RateLimitExceeded
from pharmacy_ai.core.logging_config import get_logger, setup_logging
from pharmacy_ai.api.routes import chat_router, health_router, prescriptions_router
from pharmacy_ai.llm.runtime import get_runtime


settings = get_settings()
setup_logging(settings.log_level, secrets=[settings.gemini_api_key])
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the Gemini runtime on startup; log its counters on shutdown."""
    logger.info(f"Starting {settings.app_name} v{__version__} ({settings.app_env})")
    logger.info(
        f"Gemini: model={settings.gemini_model}, "
        f"max_concurrency={settings.gemini_max_concurrency}, "
        f"max_retries={settings.gemini_max_retries}, "
        f"cooldown={settings.gemini_quota_cooldown_minutes}min"
    )
    logger.info(f"Chat rate limit: {settings.rate_limit_per_minute} req/min per session")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set - AI features will answer with fallbacks")

    runtime = get_runtime()

    yield

    logger.info(f"Shutting down {settings.app_name}: {runtime.status()}")


app = FastAPI(
    title="Pharmacy AI Gateway",
    description="""
    AI features of the pharmacy mobile app, backed by Google Gemini.

    ## Endpoints

    - **POST /chat**: pharmacy assistant; text questions or a prescription photo
    - **POST /prescriptions/advice**: summary, safety notes and recommendations
    - **GET /health/ai**: Gemini quota cooldown, cache and queue status

    Gemini failures never break these endpoints: replies fall back to a
    canned answer (`source="fallback"`) or `available=false`.
    """,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# Last added runs first: CORS, then audit, then security headers
app.add_middleware(SecurityHeadersMiddleware)

if settings.enable_audit_logging:
    app.add_middleware(AuditMiddleware)

if settings.is_development():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.warning("CORS open to all origins (development)")


def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(PharmacyAIException)
async def app_exception_handler(request: Request, exc: PharmacyAIException):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON bodies get the same error shape as our own errors."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return JSONResponse(
        status_code=422,
        content=_error_body(
            "validation_error",
            first.get("msg", "Invalid request"),
            f"field={field}" if field else None,
        ),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Last resort; exception details only leave the server in development."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_error",
            "An unexpected error occurred",
            str(exc) if settings.is_development() else None,
        ),
    )


app.include_router(health_router)
app.include_router(chat_router)
app.include_router(prescriptions_router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": settings.app_name,
        "version": __version__,
        "documentation": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pharmacy_ai.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development(),
    )
