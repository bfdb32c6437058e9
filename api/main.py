"""FastAPI application factory and server entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import LOG_FORMAT, validate_config
from .config import ApiSettings
from .deps.providers import (
    configure,
    get_dispatcher,
    get_job_runner,
    get_job_store,
    get_rate_limiter,
    get_settings,
)
from .errors import register_error_handlers
from .jobs.store import JobStore
from .rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


async def _eviction_loop(
    store: JobStore,
    interval: float,
    retention: float,
    limiter: Optional[SlidingWindowRateLimiter] = None,
    rate_window: float = 0.0,
) -> None:
    """Background task that drops finished jobs past their retention window.

    When *limiter* is given, clients idle for a full *rate_window* are
    forgotten on the same tick.

    Independent of request handling; ``JobStore.create`` also evicts
    opportunistically, so a missed tick only delays cleanup.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            store.evict_stale(retention)
            if limiter is not None:
                limiter.prune(rate_window)
        except Exception:  # noqa: BLE001
            logger.warning("Background job eviction failed", exc_info=True)


def _configure_logging(settings: ApiSettings) -> None:
    effective_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if LOG_FORMAT == "json":
        fmt = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
    else:
        fmt = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

    logging.basicConfig(
        level=effective_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings: ApiSettings = get_settings()
    _configure_logging(settings)
    logger.info("Starting fusion_engine API on %s:%s", settings.host, settings.port)

    try:
        issues = validate_config()
        for issue in issues:
            if issue.get("level") == "ERROR":
                logger.error("Config validation: %s", issue.get("message", ""))
            else:
                logger.warning("Config validation: %s", issue.get("message", ""))
        if not issues:
            logger.info("Config validation: all checks passed")
    except Exception as e:
        logger.warning("Config validation could not run: %s", e)

    from .routers.logs import setup_log_buffer, teardown_log_buffer
    setup_log_buffer()

    # Build the job subsystem once; the store starts empty on every boot.
    store = get_job_store()
    runner = get_job_runner()
    dispatcher = get_dispatcher()
    logger.info(
        "Job subsystem ready: mode=%s processors=%s max_per_owner=%d",
        dispatcher.mode.value, ", ".join(runner.registry.types()), settings.max_concurrent_per_owner,
    )

    eviction_task = asyncio.create_task(
        _eviction_loop(
            store,
            settings.eviction_interval_seconds,
            settings.job_retention_seconds,
            limiter=get_rate_limiter(),
            rate_window=settings.rate_limit_window_seconds,
        )
    )

    yield

    eviction_task.cancel()
    await runner.shutdown()
    teardown_log_buffer()
    logger.info("Shutting down fusion_engine API")


def create_app(settings: ApiSettings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is not None:
        configure(settings)
    settings = get_settings()

    app = FastAPI(
        title="Fusion Engine API",
        description="Image generation and fusion jobs backed by an upstream AI image service.",
        version="1.0.0",
        lifespan=_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    origins = [o.strip() for o in settings.cors_origins.split(",")]
    allow_creds = "*" not in origins
    if not allow_creds:
        logger.warning(
            "CORS origins contain '*'. Credentials will NOT be allowed. "
            "Set explicit origins for credentialed cross-origin requests."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_creds,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    from .routers import all_routers

    for router in all_routers():
        app.include_router(router)

    return app


def run_server() -> None:
    """CLI entry point: ``python -m fusion_engine.api.main``."""
    import uvicorn

    settings = get_settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run_server()
