"""Background fusion: place the dish from one photo into another scene."""
from __future__ import annotations

from ..api.jobs.payloads import BackgroundFusionPayload, ImageJobResult
from ..api.jobs.registry import ProgressCallback
from ..api.services.image_client import to_data_url
from .base import ImageProcessor

DEFAULT_PROMPT = (
    "Extract the food (and its container, if any) from the first image and blend it "
    "seamlessly into the scene of the second image. Match lighting, perspective and "
    "colour temperature; keep the food's shape and texture intact."
)


class BackgroundFusionProcessor(ImageProcessor[BackgroundFusionPayload, ImageJobResult]):
    payload_model = BackgroundFusionPayload

    def run(self, payload: BackgroundFusionPayload, progress: ProgressCallback) -> ImageJobResult:
        images = [to_data_url(payload.source_image), to_data_url(payload.target_image)]
        progress(10)
        url = self.generate(images, payload.prompt or DEFAULT_PROMPT, label="background-fusion")
        progress(90)
        width, height = self.output_dimensions()
        return ImageJobResult(image_url=url, width=width, height=height)
