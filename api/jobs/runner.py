"""Async job runner: drives one queued job to a terminal status."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Optional, Set

from .models import JobRecord, JobStatus
from .registry import JobProcessor, ProcessorRegistry, ProgressCallback
from .store import JobStore

logger = logging.getLogger(__name__)

_UNKNOWN_ERROR = "Unknown error"
_CANCELLED_ERROR = "Job cancelled during shutdown"


class JobTimeoutError(Exception):
    """Raised when a processor outlives its time budget."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Job timed out after {timeout:g} seconds")
        self.timeout = timeout


async def invoke_processor(
    processor: JobProcessor,
    job: JobRecord,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: Optional[float] = None,
) -> Any:
    """Run ``processor.process`` in a worker thread, bounded by *timeout* seconds.

    On timeout the worker thread keeps running until the processor returns;
    its late progress updates are dropped by the store.
    """
    if timeout is None:
        return await asyncio.to_thread(processor.process, job, progress_callback)
    task = asyncio.ensure_future(asyncio.to_thread(processor.process, job, progress_callback))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if not done:
        task.cancel()
        raise JobTimeoutError(timeout)
    return task.result()


class JobRunner:
    """Executes registered processors for queued jobs.

    ``run`` is idempotent per job id: a job already in flight, missing from
    the store, or no longer queued is left alone.  Failures are recorded on
    the job and never propagate to the caller.  The runner does not retry;
    processors retry their own upstream calls.
    """

    def __init__(
        self,
        store: JobStore,
        registry: ProcessorRegistry,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._timeout = timeout_seconds
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()
        self._active_tasks: Dict[str, asyncio.Task] = {}

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry

    @property
    def pending_count(self) -> int:
        """Number of background runs not yet finished."""
        return len(self._active_tasks)

    def in_flight(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._in_flight

    # ── Submit & Run ─────────────────────────────────────────────────

    def submit(self, job_id: str, processor: Optional[JobProcessor] = None) -> None:
        """Schedule ``run(job_id)`` on the event loop and return immediately.

        *processor*, when given, is used for this job only instead of the
        registry entry for its type.
        """
        if job_id in self._active_tasks:
            return
        task = asyncio.create_task(self.run(job_id, processor), name=f"job-{job_id}")
        self._active_tasks[job_id] = task
        task.add_done_callback(lambda _t: self._active_tasks.pop(job_id, None))

    async def run(self, job_id: str, processor: Optional[JobProcessor] = None) -> None:
        """Execute the job's processor once and record the terminal outcome."""
        with self._lock:
            if job_id in self._in_flight:
                return
            rec = self._store.get(job_id)
            if rec is None or rec.status is not JobStatus.queued:
                return
            self._in_flight.add(job_id)
        try:
            await self._execute(rec, processor)
        except asyncio.CancelledError:
            self._fail_cancelled(job_id)
            raise
        except Exception:  # noqa: BLE001
            logger.exception("Job %s could not be finalised", job_id)
        finally:
            with self._lock:
                self._in_flight.discard(job_id)

    async def _execute(self, rec: JobRecord, processor: Optional[JobProcessor] = None) -> None:
        job_id = rec.job_id
        started = self._store.update(job_id, status=JobStatus.running, progress=0)
        if started is None:
            return

        processor = processor or self._registry.get(rec.job_type)
        if processor is None:
            msg = f"No processor found for job type: {rec.job_type}"
            logger.error("Job %s failed: %s", job_id, msg)
            self._store.update(job_id, status=JobStatus.failed, error=msg)
            return

        def progress_callback(pct: int) -> None:
            self._store.update(job_id, progress=pct)

        logger.info("Starting job %s (%s)", job_id, rec.job_type)
        try:
            result = await invoke_processor(processor, started, progress_callback, self._timeout)
        except JobTimeoutError as exc:
            logger.error("Job %s failed: %s", job_id, exc)
            self._store.update(job_id, status=JobStatus.failed, error=str(exc))
            return
        except Exception as exc:
            logger.error("Job %s failed: %s", job_id, exc, exc_info=True)
            self._store.update(job_id, status=JobStatus.failed, error=str(exc) or _UNKNOWN_ERROR)
            return

        self._store.update(job_id, status=JobStatus.succeeded, progress=100, result=result)
        logger.info("Job %s completed successfully", job_id)

    # ── Shutdown ─────────────────────────────────────────────────────

    def _fail_cancelled(self, job_id: str) -> None:
        """Mark a queued or running job failed; a queued job passes through ``running``."""
        rec = self._store.get(job_id)
        if rec is None or rec.status.is_terminal:
            return
        if rec.status is JobStatus.queued:
            self._store.update(job_id, status=JobStatus.running)
        self._store.update(job_id, status=JobStatus.failed, error=_CANCELLED_ERROR)
        logger.warning("Job %s failed: %s", job_id, _CANCELLED_ERROR)

    async def shutdown(self) -> None:
        """Cancel background runs still in progress and fail their jobs.

        A run cancelled before its first step never reaches ``run``'s
        handler, so its still-queued job is failed here.
        """
        pending = dict(self._active_tasks)
        for task in pending.values():
            task.cancel()
        if pending:
            await asyncio.gather(*pending.values(), return_exceptions=True)
        for job_id in pending:
            self._fail_cancelled(job_id)
