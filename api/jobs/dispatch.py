"""Execution-mode adapter: inline processing vs. queued job with polling.

Serverless hosts (Vercel, AWS Lambda) cannot outlive the originating
request, so work must run inline and the result is returned directly.
Long-lived servers queue a job, start it in the background and hand the
client a job id to poll.  ``JobDispatcher.submit`` is the only place this
choice is made; processors never see it.
"""
from __future__ import annotations

import enum
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .models import JobRecord
from .registry import JobProcessor
from .runner import JobRunner, invoke_processor
from .store import JobStore

logger = logging.getLogger(__name__)


class ConcurrencyLimitError(Exception):
    """Raised when an owner already has the maximum number of active jobs."""


class ProcessorNotFoundError(Exception):
    """Raised when inline execution is requested for an unregistered job type."""


class ExecutionMode(str, enum.Enum):
    sync = "sync"
    async_ = "async"


def detect_execution_mode(environ: Optional[Mapping[str, str]] = None) -> ExecutionMode:
    """Return ``sync`` on serverless hosts, ``async`` everywhere else."""
    env = os.environ if environ is None else environ
    if env.get("VERCEL") == "1" or env.get("AWS_LAMBDA_FUNCTION_NAME"):
        return ExecutionMode.sync
    return ExecutionMode.async_


def resolve_execution_mode(setting: str = "auto", environ: Optional[Mapping[str, str]] = None) -> ExecutionMode:
    """Map the ``execution_mode`` setting (auto | sync | async) to a mode."""
    value = (setting or "auto").strip().lower()
    if value == "auto":
        return detect_execution_mode(environ)
    try:
        return ExecutionMode(value)
    except ValueError:
        raise ValueError(f"Unknown execution mode {setting!r}; expected auto, sync or async") from None


@dataclass(frozen=True)
class SyncResult:
    result: Any
    is_sync: bool = True

    def to_dict(self) -> Dict[str, Any]:
        result = self.result.model_dump() if hasattr(self.result, "model_dump") else self.result
        return {"is_sync": True, "result": result}


@dataclass(frozen=True)
class AsyncHandle:
    job_id: str
    job_type: str
    is_sync: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"is_sync": False, "job_id": self.job_id, "job_type": self.job_type, "status": "queued"}


SubmitOutcome = Union[SyncResult, AsyncHandle]


class JobDispatcher:
    """Single entry point feature code uses to start work."""

    def __init__(
        self,
        store: JobStore,
        runner: JobRunner,
        mode: ExecutionMode = ExecutionMode.async_,
        max_concurrent_per_owner: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._runner = runner
        self.mode = mode
        self.max_concurrent_per_owner = max_concurrent_per_owner
        self._timeout = timeout_seconds

    @property
    def is_sync(self) -> bool:
        return self.mode is ExecutionMode.sync

    def check_admission(self, owner: Optional[str]) -> None:
        """Raise ``ConcurrencyLimitError`` if *owner* is at its ceiling."""
        limit = self.max_concurrent_per_owner
        if limit is None or not owner:
            return
        if not self._store.can_admit(owner, limit):
            logger.info("Rejected new job for %s: limit of %d active jobs reached", owner, limit)
            raise ConcurrencyLimitError(
                "Too many concurrent jobs; wait for existing jobs to finish and try again"
            )

    async def submit(
        self,
        job_type: str,
        payload: Any,
        owner: Optional[str] = None,
        processor: Optional[JobProcessor] = None,
    ) -> SubmitOutcome:
        """Run *payload* through the processor for *job_type*.

        In sync mode the processor's result (or exception) comes straight
        back.  In async mode a queued job is created and started in the
        background, and only its id is returned.  An explicit *processor*
        serves this call only; the registry is never modified.
        """
        job_type = str(getattr(job_type, "value", job_type))
        self.check_admission(owner)

        if self.is_sync:
            return await self._run_inline(job_type, payload, owner, processor)

        rec = self._store.create(job_type, payload, owner)
        self._runner.submit(rec.job_id, processor)
        logger.info("Queued job %s (%s) for background processing", rec.job_id, job_type)
        return AsyncHandle(job_id=rec.job_id, job_type=job_type)

    async def _run_inline(
        self,
        job_type: str,
        payload: Any,
        owner: Optional[str],
        processor: Optional[JobProcessor],
    ) -> SyncResult:
        proc = processor or self._runner.registry.get(job_type)
        if proc is None:
            raise ProcessorNotFoundError(f"No processor found for job type: {job_type}")
        transient = JobRecord(
            job_id=f"inline-{uuid.uuid4().hex[:12]}",
            job_type=job_type,
            owner=owner,
            payload=payload,
        )
        logger.info("Processing %s inline (%s)", job_type, transient.job_id)
        result = await invoke_processor(proc, transient, None, self._timeout)
        return SyncResult(result=result)
