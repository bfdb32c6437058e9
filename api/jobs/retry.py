"""Bounded retry for flaky upstream calls made inside processors."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 2.0,
    *,
    backoff: float = 1.0,
    retry_if: Optional[Callable[[Exception], bool]] = None,
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *fn* up to *max_attempts* times, sleeping between failed attempts.

    The wait before attempt ``n + 1`` is ``delay * backoff ** (n - 1)``, so the
    default ``backoff=1.0`` gives a fixed delay.  When *retry_if* returns
    False for an exception, it is raised immediately.  After the last attempt
    the last exception is re-raised unchanged.

    Wrap a single upstream call with this, not a whole multi-step pipeline:
    work completed before a retry is not undone.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    name = label or getattr(fn, "__name__", "call")
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if retry_if is not None and not retry_if(exc):
                raise
            if attempt >= max_attempts:
                logger.warning("%s failed after %d attempts: %s", name, attempt, exc)
                raise
            wait = delay * (backoff ** (attempt - 1))
            logger.info(
                "%s attempt %d/%d failed: %s; retrying in %.1fs",
                name, attempt, max_attempts, exc, wait,
            )
            sleep(wait)
    raise AssertionError("unreachable")
