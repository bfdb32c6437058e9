"""Typed payload and result shapes, keyed by job type."""
from __future__ import annotations

import enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class JobType(str, enum.Enum):
    background_fusion = "background-fusion"
    product_refine = "product-refine"
    batch_food_replacement = "batch-food-replacement"


# ── Payloads ─────────────────────────────────────────────────────────


class BackgroundFusionPayload(BaseModel):
    """Blend the dish in ``source_image`` into the scene of ``target_image``."""

    source_image: str = Field(..., description="Base64-encoded source image")
    target_image: str = Field(..., description="Base64-encoded target background")
    prompt: str = ""


class ProductRefinePayload(BaseModel):
    source_image: str = Field(..., description="Base64-encoded product photo")
    source_image_type: str = "image/png"
    prompt: str = Field(..., min_length=1)


class BatchFoodReplacementPayload(BaseModel):
    """One target bowl/plate, many source dishes; one output per source."""

    source_images: List[str] = Field(..., min_length=1)
    target_image: str
    prompt: str = ""


# ── Results ──────────────────────────────────────────────────────────


class ImageJobResult(BaseModel):
    image_url: str
    width: int
    height: int


class BatchItemResult(BaseModel):
    index: int
    status: Literal["success", "failed"]
    image_url: Optional[str] = None
    error: Optional[str] = None


class BatchFoodReplacementResult(BaseModel):
    processed_count: int
    results: List[BatchItemResult] = Field(default_factory=list)

