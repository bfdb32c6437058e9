"""Shared plumbing for processors that call the upstream image service."""
from __future__ import annotations

import abc
import logging
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..api.jobs.models import JobRecord
from ..api.jobs.registry import JobProcessor, ProgressCallback
from ..api.jobs.retry import with_retry
from ..api.services.image_client import ImageApiClient, extract_image, is_retryable
from ..config import IMAGE_OUTPUT_SIZE

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
R = TypeVar("R", bound=BaseModel)


class ImageProcessor(JobProcessor[P, R]):
    """Base for image processors.

    Subclasses set ``payload_model`` and implement ``run``.  Each upstream
    call goes through ``generate``, which retries that one call only.
    """

    payload_model: Type[BaseModel]

    def __init__(
        self,
        client: ImageApiClient,
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
        output_size: str = IMAGE_OUTPUT_SIZE,
    ) -> None:
        self.client = client
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.output_size = output_size

    def process(self, job: JobRecord, progress_callback: Optional[ProgressCallback] = None) -> R:
        payload = self.parse_payload(job.payload)
        return self.run(payload, progress_callback or _no_progress)

    def parse_payload(self, raw: Any) -> P:
        if isinstance(raw, self.payload_model):
            return raw
        return self.payload_model.model_validate(raw)

    @abc.abstractmethod
    def run(self, payload: P, progress: ProgressCallback) -> R:
        """Turn a validated payload into a result, reporting progress as it goes."""

    def generate(self, images: List[str], prompt: str, label: str) -> str:
        """One upstream edit call with retry; returns the image URL."""
        response = with_retry(
            lambda: self.client.edit_images(images, prompt, size=self.output_size),
            max_attempts=self.retry_attempts,
            delay=self.retry_delay,
            retry_if=is_retryable,
            label=label,
        )
        return extract_image(response)

    def output_dimensions(self) -> tuple:
        width, _, height = self.output_size.partition("x")
        return int(width), int(height)


def _no_progress(_pct: int) -> None:
    return None
