"""HTTP-level fixtures: a fresh app, store and fake processors per test."""
from __future__ import annotations

import pytest
import pytest_asyncio

from fusion_engine.api.jobs.payloads import (
    BatchFoodReplacementResult,
    BatchItemResult,
    ImageJobResult,
    JobType,
)
from fusion_engine.api.jobs.registry import ProcessorRegistry

API_TOKEN = "test-token"
AUTH_HEADERS = {"Authorization": f"Bearer {API_TOKEN}"}

def _fake_image(job, cb):
    if cb is not None:
        cb(50)
    return ImageJobResult(image_url="https://images.test/out.png", width=1200, height=900)


def _fake_batch(job, cb):
    items = [
        BatchItemResult(index=i, status="success", image_url=f"https://images.test/{i}.png")
        for i in range(len(job.payload.source_images))
    ]
    return BatchFoodReplacementResult(processed_count=len(items), results=items)


@pytest.fixture
def settings_overrides():
    """Per-test ``ApiSettings`` overrides; override this fixture in a test module."""
    return {}


@pytest.fixture
def fake_processors(make_processor):
    return {
        JobType.background_fusion: make_processor(_fake_image),
        JobType.product_refine: make_processor(_fake_image),
        JobType.batch_food_replacement: make_processor(_fake_batch),
    }


@pytest.fixture
def app(settings_overrides, fake_processors):
    """Create a test FastAPI app whose processors never touch the network."""
    import fusion_engine.api.deps.providers as _prov
    from fusion_engine.api.config import ApiSettings
    from fusion_engine.api.main import create_app

    values = {
        "execution_mode": "async",
        "auth_enabled": True,
        "api_token": API_TOKEN,
        "image_api_key": "test-key",
        "rate_limit_requests": 1000,
        "max_concurrent_per_owner": 2,
    }
    values.update(settings_overrides)
    application = create_app(ApiSettings(**values))

    registry = ProcessorRegistry()
    for job_type, proc in fake_processors.items():
        registry.register(job_type, proc)
    _prov._registry = registry

    yield application

    _prov.configure(None)


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    from httpx import ASGITransport, AsyncClient

    import fusion_engine.api.deps.providers as _prov

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    if _prov._job_runner is not None:
        await _prov._job_runner.shutdown()


@pytest.fixture
def auth_headers():
    return dict(AUTH_HEADERS)
