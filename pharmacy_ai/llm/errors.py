"""
Upstream error normalization.

The Gemini SDK, the HTTP stack and the OS all fail in different shapes.
normalize_error() flattens any of them into one UpstreamError value
(HTTP status, message, network error code) for the retry classifier.
"""
import asyncio
import socket
from dataclasses import dataclass
from typing import Optional

from google.api_core import exceptions as google_exceptions

EMPTY_RESPONSE_MESSAGE = "Empty response from Gemini"


@dataclass(frozen=True)
class UpstreamError:
    """
    A failed upstream attempt, reduced to the fields that matter.

    Attributes:
        http_status: HTTP-like status code, if the failure carried one
        message: Human-readable failure text
        network_code: Errno-style code (ECONNRESET, ETIMEDOUT, ...)
    """
    http_status: Optional[int] = None
    message: str = ""
    network_code: Optional[str] = None

    @classmethod
    def empty_response(cls) -> "UpstreamError":
        return cls(message=EMPTY_RESPONSE_MESSAGE)


class UpstreamCallError(Exception):
    """Raised inside the retry loop to carry an UpstreamError."""

    def __init__(self, error: UpstreamError):
        super().__init__(error.message)
        self.error = error


def _network_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(exc, ConnectionRefusedError):
        return "ECONNREFUSED"
    if isinstance(exc, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, socket.timeout)):
        return "ETIMEDOUT"
    return None


def _status_of(exc: BaseException) -> Optional[int]:
    if isinstance(exc, google_exceptions.GoogleAPICallError):
        code = exc.code
        return int(code) if isinstance(code, int) else None

    # HTTP client errors (httpx, requests) keep the status on .response
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None) or getattr(response, "status", None)
    return status if isinstance(status, int) else None


def normalize_error(exc: BaseException) -> UpstreamError:
    """
    Convert any exception raised by an upstream attempt to UpstreamError.

    Args:
        exc: The exception the attempt raised

    Returns:
        UpstreamError with whatever status, message and network code
        could be recovered
    """
    if isinstance(exc, UpstreamCallError):
        return exc.error

    if isinstance(exc, google_exceptions.GoogleAPICallError):
        message = exc.message or str(exc)
    else:
        message = str(exc) or exc.__class__.__name__

    code = _network_code(exc)
    if code is None:
        errno_name = getattr(exc, "code", None)
        if isinstance(errno_name, str) and errno_name.upper().startswith("E"):
            code = errno_name.upper()

    return UpstreamError(
        http_status=_status_of(exc),
        message=message,
        network_code=code,
    )
