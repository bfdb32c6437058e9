"""In-memory job queue for long-running upstream image transformations."""
from .dispatch import (
    AsyncHandle,
    ConcurrencyLimitError,
    ExecutionMode,
    JobDispatcher,
    ProcessorNotFoundError,
    SyncResult,
    detect_execution_mode,
)
from .models import JobRecord, JobStatus
from .registry import JobProcessor, ProcessorRegistry
from .retry import with_retry
from .runner import JobRunner, JobTimeoutError
from .store import InvalidJobTransition, JobStore

__all__ = [
    "AsyncHandle",
    "ConcurrencyLimitError",
    "ExecutionMode",
    "InvalidJobTransition",
    "JobDispatcher",
    "JobProcessor",
    "JobRecord",
    "JobRunner",
    "JobStatus",
    "JobStore",
    "JobTimeoutError",
    "ProcessorNotFoundError",
    "ProcessorRegistry",
    "SyncResult",
    "detect_execution_mode",
    "with_retry",
]
