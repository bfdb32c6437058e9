"""Custom exceptions and FastAPI error handler registration."""
from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .jobs.dispatch import ConcurrencyLimitError, ProcessorNotFoundError
from .jobs.runner import JobTimeoutError
from .jobs.store import InvalidJobTransition
from .schemas.envelope import ApiResponse
from .services.image_client import UpstreamServiceError

logger = logging.getLogger(__name__)


# ── Custom Exceptions ────────────────────────────────────────────────


class JobNotFoundError(Exception):
    """Requested job ID does not exist, or belongs to another client."""


class RateLimitExceededError(Exception):
    """Client sent too many requests within the rate-limit window."""


class InvalidPayloadError(Exception):
    """Request body could not be turned into a job payload."""


# ── Error → HTTP mapping ────────────────────────────────────────────

_EXCEPTION_STATUS = {
    InvalidPayloadError: 400,
    JobNotFoundError: 404,
    ConcurrencyLimitError: 429,
    RateLimitExceededError: 429,
    ProcessorNotFoundError: 500,
    InvalidJobTransition: 500,
    UpstreamServiceError: 502,
    JobTimeoutError: 504,
}


def _make_handler(status_code: int):
    """Create a handler that wraps an exception in ApiResponse."""

    async def _handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        resp = ApiResponse.fail(str(exc))
        return JSONResponse(status_code=status_code, content=resp.model_dump())

    return _handler


def register_error_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on the FastAPI app."""
    for exc_cls, status in _EXCEPTION_STATUS.items():
        app.add_exception_handler(exc_cls, _make_handler(status))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
        resp = ApiResponse.fail("Internal server error")
        return JSONResponse(status_code=500, content=resp.model_dump())
