"""Token gate for maintenance endpoints."""
from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, Request

from ..config import ApiSettings
from .providers import get_settings

logger = logging.getLogger(__name__)


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.headers.get("X-API-Key", "").strip() or None


async def require_auth(request: Request, settings: ApiSettings = Depends(get_settings)) -> None:
    """FastAPI dependency enforcing ``Authorization: Bearer <token>`` or ``X-API-Key``.

    Returns immediately when ``FE_API_AUTH_ENABLED`` is false (local dev).

    Raises
    ------
    HTTPException(401)
        If the server has no token configured, or the request's token is
        missing or wrong.
    """
    if not settings.auth_enabled:
        return

    if not settings.api_token:
        logger.warning(
            "Auth is enabled but FE_API_API_TOKEN is not set. "
            "All maintenance requests will be rejected."
        )
        raise HTTPException(status_code=401, detail="Server auth token not configured")

    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication token")
    if not hmac.compare_digest(token, settings.api_token):
        raise HTTPException(status_code=401, detail="Invalid authentication token")
