"""Dependency injection providers."""
from .auth import require_auth
from .client import get_client_identifier
from .providers import (
    configure,
    get_dispatcher,
    get_image_client,
    get_job_runner,
    get_job_store,
    get_processor_registry,
    get_rate_limiter,
    get_settings,
)

__all__ = [
    "configure",
    "get_client_identifier",
    "get_dispatcher",
    "get_image_client",
    "get_job_runner",
    "get_job_store",
    "get_processor_registry",
    "get_rate_limiter",
    "get_settings",
    "require_auth",
]
