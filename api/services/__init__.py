"""Clients for upstream services used by job processors."""
from .image_client import ImageApiClient, UpstreamServiceError, extract_image, is_retryable

__all__ = ["ImageApiClient", "UpstreamServiceError", "extract_image", "is_retryable"]
