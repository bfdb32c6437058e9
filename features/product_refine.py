"""Product photo refinement."""
from __future__ import annotations

from ..api.jobs.payloads import ImageJobResult, ProductRefinePayload
from ..api.jobs.registry import ProgressCallback
from ..api.services.image_client import to_data_url
from .base import ImageProcessor


class ProductRefineProcessor(ImageProcessor[ProductRefinePayload, ImageJobResult]):
    payload_model = ProductRefinePayload

    def run(self, payload: ProductRefinePayload, progress: ProgressCallback) -> ImageJobResult:
        image = to_data_url(payload.source_image, payload.source_image_type)
        progress(10)
        url = self.generate([image], payload.prompt.strip(), label="product-refine")
        width, height = self.output_dimensions()
        return ImageJobResult(image_url=url, width=width, height=height)
