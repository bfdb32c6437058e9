"""Feature processors.  ``register_processors`` is called once at startup."""
from __future__ import annotations

from ..api.jobs.payloads import JobType
from ..api.jobs.registry import ProcessorRegistry
from ..api.services.image_client import ImageApiClient
from .background_fusion import BackgroundFusionProcessor
from .food_replacement import BatchFoodReplacementProcessor
from .product_refine import ProductRefineProcessor


def register_processors(
    registry: ProcessorRegistry,
    client: ImageApiClient,
    retry_attempts: int = 3,
    retry_delay: float = 2.0,
) -> ProcessorRegistry:
    """Bind every feature processor to its job type."""
    kwargs = {"retry_attempts": retry_attempts, "retry_delay": retry_delay}
    registry.register(JobType.background_fusion, BackgroundFusionProcessor(client, **kwargs))
    registry.register(JobType.product_refine, ProductRefineProcessor(client, **kwargs))
    registry.register(JobType.batch_food_replacement, BatchFoodReplacementProcessor(client, **kwargs))
    return registry


__all__ = [
    "BackgroundFusionProcessor",
    "BatchFoodReplacementProcessor",
    "ProductRefineProcessor",
    "register_processors",
]
