"""Recent log records, for watching jobs without shell access."""
from __future__ import annotations

import logging
from collections import deque
from typing import Optional

from fastapi import APIRouter

from ..schemas.envelope import ApiResponse

router = APIRouter(prefix="/api/logs", tags=["logs"])

# In-memory ring buffer for recent log records.
_LOG_BUFFER: deque = deque(maxlen=500)


class _BufferHandler(logging.Handler):
    """Captures log records into the ring buffer."""

    def emit(self, record: logging.LogRecord) -> None:
        _LOG_BUFFER.append({
            "ts": record.created,
            "level": record.levelname,
            "levelno": record.levelno,
            "logger": record.name,
            "message": record.getMessage(),
        })


_handler = _BufferHandler()
_handler.setLevel(logging.INFO)


def setup_log_buffer() -> None:
    """Attach the buffer handler to the ``fusion_engine`` logger.

    Calling it twice does not attach a second handler.
    """
    pkg_logger = logging.getLogger("fusion_engine")
    if not any(isinstance(h, _BufferHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(_handler)


def teardown_log_buffer() -> None:
    """Detach the buffer handler and drop buffered records."""
    logging.getLogger("fusion_engine").removeHandler(_handler)
    _LOG_BUFFER.clear()


@router.get("")
async def get_logs(
    last_n: int = 100,
    min_level: str = "INFO",
    logger_prefix: Optional[str] = None,
) -> ApiResponse:
    """Return up to *last_n* buffered records at or above *min_level*.

    ``logger_prefix=fusion_engine.api.jobs`` narrows the output to the job
    subsystem.
    """
    threshold = logging.getLevelName(min_level.upper())
    if not isinstance(threshold, int):
        threshold = logging.INFO
    entries = [
        {k: v for k, v in e.items() if k != "levelno"}
        for e in _LOG_BUFFER
        if e["levelno"] >= threshold
        and (logger_prefix is None or e["logger"].startswith(logger_prefix))
    ]
    return ApiResponse.success(entries[-last_n:] if last_n > 0 else [])
