"""Batch food replacement: swap each source dish into the same target bowl."""
from __future__ import annotations

import logging

from ..api.jobs.payloads import BatchFoodReplacementPayload, BatchFoodReplacementResult, BatchItemResult
from ..api.jobs.registry import ProgressCallback
from ..api.services.image_client import to_data_url
from .base import ImageProcessor

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = (
    "Replace the food in the bowl of the second image with the food from the first image. "
    "Keep the bowl, table and lighting of the second image unchanged."
)


class BatchFoodReplacementProcessor(ImageProcessor[BatchFoodReplacementPayload, BatchFoodReplacementResult]):
    """Processes sources one by one.

    A source that still fails after its retries is recorded as a failed item;
    the job itself only fails if the payload is unusable.
    """

    payload_model = BatchFoodReplacementPayload

    def run(self, payload: BatchFoodReplacementPayload, progress: ProgressCallback) -> BatchFoodReplacementResult:
        target = to_data_url(payload.target_image)
        prompt = payload.prompt or DEFAULT_PROMPT
        total = len(payload.source_images)
        items = []
        for i, source in enumerate(payload.source_images):
            try:
                url = self.generate([to_data_url(source), target], prompt, label=f"food-replacement[{i}]")
                items.append(BatchItemResult(index=i, status="success", image_url=url))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Food replacement item %d/%d failed: %s", i + 1, total, exc)
                items.append(BatchItemResult(index=i, status="failed", error=str(exc) or "Unknown error"))
            progress(int((i + 1) * 100 / total))
        return BatchFoodReplacementResult(processed_count=total, results=items)
