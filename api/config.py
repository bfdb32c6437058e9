"""Settings for the API layer, loaded from environment / .env file."""
from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

from ..config import (
    EXECUTION_MODE,
    JOB_EVICTION_INTERVAL_SECONDS,
    JOB_RETENTION_SECONDS,
    JOB_TIMEOUT_SECONDS,
    LOG_LEVEL,
    MAX_BATCH_IMAGES,
    MAX_CONCURRENT_JOBS_PER_OWNER,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    UPSTREAM_RETRY_ATTEMPTS,
    UPSTREAM_RETRY_DELAY_SECONDS,
    UPSTREAM_TIMEOUT_SECONDS,
)


class ApiSettings(BaseSettings):
    """Immutable settings loaded from environment / .env file."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:8000"
    log_level: str = LOG_LEVEL

    # Job orchestration
    execution_mode: str = EXECUTION_MODE
    max_concurrent_per_owner: int = MAX_CONCURRENT_JOBS_PER_OWNER
    job_retention_seconds: float = JOB_RETENTION_SECONDS
    eviction_interval_seconds: float = JOB_EVICTION_INTERVAL_SECONDS
    job_timeout_seconds: float = JOB_TIMEOUT_SECONDS

    # Upstream image service
    image_api_base_url: str = "https://api.openai.com/v1"
    image_api_key: str = ""
    image_model_name: str = "gpt-image-1"
    upstream_timeout_seconds: float = UPSTREAM_TIMEOUT_SECONDS
    upstream_retry_attempts: int = UPSTREAM_RETRY_ATTEMPTS
    upstream_retry_delay_seconds: float = UPSTREAM_RETRY_DELAY_SECONDS

    # Per-client request rate limit
    rate_limit_requests: int = RATE_LIMIT_REQUESTS
    rate_limit_window_seconds: float = RATE_LIMIT_WINDOW_SECONDS
    max_batch_images: int = MAX_BATCH_IMAGES

    # Bearer token for maintenance endpoints (job removal, forced cleanup)
    auth_enabled: bool = True
    api_token: str = ""

    model_config = {"env_prefix": "FE_API_", "env_file": ".env", "extra": "ignore"}

    @field_validator("execution_mode")
    @classmethod
    def _check_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("auto", "sync", "async"):
            raise ValueError("execution_mode must be one of: auto, sync, async")
        return v

    @field_validator("max_concurrent_per_owner", "upstream_retry_attempts")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v
