"""
Client for the upstream image-generation service (OpenAI-compatible images API).
"""
from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class UpstreamServiceError(Exception):
    """The image service failed or returned an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_retryable(exc: Exception) -> bool:
    """Client errors (4xx other than 429) are not worth retrying."""
    status = getattr(exc, "status_code", None)
    if status is None:
        return True
    return status == 429 or status >= 500


def _error_message(resp: requests.Response) -> str:
    """Pull the most specific error text out of an upstream error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if body.get("message"):
            return str(body["message"])
        if isinstance(err, str) and err:
            return err
    return f"{resp.status_code} {resp.reason or ''}".strip()


def extract_image(response: Dict[str, Any]) -> str:
    """Return the first generated image as a URL or ``data:`` URL."""
    data = response.get("data") or []
    if not data:
        raise UpstreamServiceError("No image generated")
    item = data[0]
    if item.get("b64_json"):
        return f"data:image/png;base64,{item['b64_json']}"
    url = item.get("url")
    if url:
        return url
    raise UpstreamServiceError("No valid image data found in response")


def to_data_url(image_b64: str, mime_type: str = "image/png") -> str:
    if image_b64.startswith("data:"):
        return image_b64
    # Validate early so a corrupt upload fails before an upstream round trip.
    base64.b64decode(image_b64, validate=True)
    return f"data:{mime_type};base64,{image_b64}"


class ImageApiClient:
    """Thin wrapper around ``POST {base_url}/images/edits``.

    One call per method; retries are the caller's concern (see
    ``api.jobs.retry.with_retry``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 120.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def edit_images(self, images: List[str], prompt: str, size: str = "1200x900") -> Dict[str, Any]:
        """Send one or more input images plus a prompt; return the decoded JSON body."""
        body = {
            "model": self.model,
            "prompt": prompt,
            "image": images if len(images) > 1 else images[0],
            "size": size,
            "n": 1,
            "response_format": "b64_json",
        }
        return self._post("/images/edits", body)

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamServiceError(f"Image service unreachable: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("Image service error status=%s path=%s: %s", resp.status_code, path, message)
            raise UpstreamServiceError(message, status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamServiceError("Image service returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise UpstreamServiceError(f"Unexpected payload type: {type(payload).__name__}")
        return payload
