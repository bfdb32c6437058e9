"""Endpoints that start image jobs.

Each endpoint validates its payload, applies the per-client rate limit and
hands off to the dispatcher, which either returns the result inline or a
job id to poll at ``/api/jobs/{job_id}``.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..config import ApiSettings
from ..deps.client import get_client_identifier
from ..deps.providers import get_dispatcher, get_rate_limiter, get_settings
from ..errors import InvalidPayloadError, RateLimitExceededError
from ..jobs.dispatch import JobDispatcher
from ..jobs.payloads import (
    BackgroundFusionPayload,
    BatchFoodReplacementPayload,
    JobType,
    ProductRefinePayload,
)
from ..rate_limit import SlidingWindowRateLimiter
from ..schemas.envelope import ApiResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["features"])


def enforce_rate_limit(
    client_id: str = Depends(get_client_identifier),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    settings: ApiSettings = Depends(get_settings),
) -> str:
    """Dependency: reject the request with 429 when the client is over its rate."""
    if not limiter.check(client_id, settings.rate_limit_requests, settings.rate_limit_window_seconds):
        raise RateLimitExceededError("Too many requests; please try again later")
    return client_id


async def _submit(dispatcher: JobDispatcher, job_type: JobType, payload, owner: str) -> ApiResponse:
    outcome = await dispatcher.submit(job_type, payload, owner)
    return ApiResponse.success(outcome.to_dict(), execution_mode=dispatcher.mode.value)


@router.post("/background-fusion")
async def background_fusion(
    body: BackgroundFusionPayload,
    owner: str = Depends(enforce_rate_limit),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> ApiResponse:
    return await _submit(dispatcher, JobType.background_fusion, body, owner)


@router.post("/product-refine")
async def product_refine(
    body: ProductRefinePayload,
    owner: str = Depends(enforce_rate_limit),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> ApiResponse:
    if not body.prompt.strip():
        raise InvalidPayloadError("A refinement prompt is required")
    return await _submit(dispatcher, JobType.product_refine, body, owner)


@router.post("/food-replacement/batch")
async def food_replacement_batch(
    body: BatchFoodReplacementPayload,
    owner: str = Depends(enforce_rate_limit),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    settings: ApiSettings = Depends(get_settings),
) -> ApiResponse:
    if len(body.source_images) > settings.max_batch_images:
        raise InvalidPayloadError(
            f"At most {settings.max_batch_images} source images per batch, got {len(body.source_images)}"
        )
    return await _submit(dispatcher, JobType.batch_food_replacement, body, owner)
