"""Singleton dependency providers for FastAPI ``Depends()``."""
from __future__ import annotations

from ..config import ApiSettings

# Lazy singletons, built on first use so ``configure()`` (or the test suite)
# can swap settings before anything is constructed.

_settings = None
_job_store = None
_registry = None
_job_runner = None
_dispatcher = None
_image_client = None
_rate_limiter = None


def configure(settings: ApiSettings | None = None) -> None:
    """Install *settings* and drop every previously built singleton."""
    global _settings, _job_store, _registry, _job_runner, _dispatcher, _image_client, _rate_limiter
    _settings = settings
    _job_store = None
    _registry = None
    _job_runner = None
    _dispatcher = None
    _image_client = None
    _rate_limiter = None


def get_settings() -> ApiSettings:
    global _settings
    if _settings is None:
        _settings = ApiSettings()
    return _settings


def get_job_store():
    """Return the singleton ``JobStore``."""
    global _job_store
    if _job_store is None:
        from ..jobs.store import JobStore

        _job_store = JobStore(retention_seconds=get_settings().job_retention_seconds)
    return _job_store


def get_image_client():
    """Return the singleton ``ImageApiClient``."""
    global _image_client
    if _image_client is None:
        from ..services.image_client import ImageApiClient

        s = get_settings()
        _image_client = ImageApiClient(
            base_url=s.image_api_base_url,
            api_key=s.image_api_key,
            model=s.image_model_name,
            timeout_seconds=s.upstream_timeout_seconds,
        )
    return _image_client


def get_processor_registry():
    """Return the singleton ``ProcessorRegistry``, populated with every feature processor."""
    global _registry
    if _registry is None:
        from ...features import register_processors
        from ..jobs.registry import ProcessorRegistry

        s = get_settings()
        _registry = register_processors(
            ProcessorRegistry(),
            get_image_client(),
            retry_attempts=s.upstream_retry_attempts,
            retry_delay=s.upstream_retry_delay_seconds,
        )
    return _registry


def get_job_runner():
    """Return the singleton ``JobRunner``."""
    global _job_runner
    if _job_runner is None:
        from ..jobs.runner import JobRunner

        _job_runner = JobRunner(
            get_job_store(),
            get_processor_registry(),
            timeout_seconds=get_settings().job_timeout_seconds,
        )
    return _job_runner


def get_dispatcher():
    """Return the singleton ``JobDispatcher``; execution mode is resolved once here."""
    global _dispatcher
    if _dispatcher is None:
        from ..jobs.dispatch import JobDispatcher, resolve_execution_mode

        s = get_settings()
        _dispatcher = JobDispatcher(
            get_job_store(),
            get_job_runner(),
            mode=resolve_execution_mode(s.execution_mode),
            max_concurrent_per_owner=s.max_concurrent_per_owner,
            timeout_seconds=s.job_timeout_seconds,
        )
    return _dispatcher


def get_rate_limiter():
    """Return the singleton ``SlidingWindowRateLimiter``."""
    global _rate_limiter
    if _rate_limiter is None:
        from ..rate_limit import SlidingWindowRateLimiter

        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter
