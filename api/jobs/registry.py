"""Processor contract and the job-type → processor registry."""
from __future__ import annotations

import abc
import logging
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .models import JobRecord

logger = logging.getLogger(__name__)

P = TypeVar("P")
R = TypeVar("R")

# progress_callback(percent), percent in 0..100
ProgressCallback = Callable[[int], None]


class JobProcessor(abc.ABC, Generic[P, R]):
    """Execution logic for one job type.

    ``process`` runs in a worker thread and may block on upstream calls.
    It must not care whether it was invoked inline or from the job runner:
    ``progress_callback`` may be ``None`` and progress is best effort.
    """

    @abc.abstractmethod
    def process(self, job: JobRecord, progress_callback: Optional[ProgressCallback] = None) -> R:
        """Turn ``job.payload`` into a result, raising on failure."""


class ProcessorRegistry:
    """Maps job types to processors.  Populated once at startup."""

    def __init__(self) -> None:
        self._processors: Dict[str, JobProcessor] = {}

    def register(self, job_type: str, processor: JobProcessor) -> None:
        """Bind *processor* to *job_type*.  A later registration replaces the earlier one."""
        key = str(getattr(job_type, "value", job_type))
        if key in self._processors:
            logger.warning("Replacing processor for job type %s", key)
        self._processors[key] = processor

    def get(self, job_type: str) -> Optional[JobProcessor]:
        return self._processors.get(str(getattr(job_type, "value", job_type)))

    def types(self) -> List[str]:
        return sorted(self._processors)

    def __contains__(self, job_type: object) -> bool:
        return str(getattr(job_type, "value", job_type)) in self._processors

    def __len__(self) -> int:
        return len(self._processors)
