"""
Audit Middleware - one log line per API request.

Each request gets a short request ID (taken from X-Request-Id when the
app sends one), echoed back in the response so a mobile bug report can
be matched to the log line. Logged fields: method, path, status,
duration, client IP, session and request ID.

Message bodies are never logged; they may contain health information.
"""
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from pharmacy_ai.core.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
SESSION_ID_HEADER = "X-Session-Id"

# Probed every few seconds by the load balancer
QUIET_PATHS = frozenset({"/health", "/health/ready"})

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
}


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming[:64] if incoming else uuid.uuid4().hex[:12]


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs every request with timing; sets X-Request-Id and X-Response-Time."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"REQUEST FAILED: {request.method} {request.url.path} "
                f"id={request_id} duration={time.perf_counter() - started:.3f}s error={e}"
            )
            raise

        duration = time.perf_counter() - started
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        self._log(request, response.status_code, duration, request_id)
        return response

    @staticmethod
    def _log(request: Request, status_code: int, duration: float, request_id: str) -> None:
        path = request.url.path
        if path in QUIET_PATHS and status_code < 400:
            logger.debug(f"HEALTH: {path} status={status_code} duration={duration:.3f}s")
            return

        level = "error" if status_code >= 500 else "warning" if status_code >= 400 else "info"
        client_ip = request.client.host if request.client else "unknown"
        session = request.headers.get(SESSION_ID_HEADER, "")[:8] or "-"

        getattr(logger, level)(
            f"REQUEST: {request.method} {path} status={status_code} "
            f"duration={duration:.3f}s client={client_ip} session={session} id={request_id}"
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds SECURITY_HEADERS to every response; replies are never cached."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response
