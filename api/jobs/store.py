"""In-memory job store with owner accounting and retention-based eviction."""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .models import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    JobRecord,
    JobStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

_DEFAULT_RETENTION_SECONDS = 15 * 60


class InvalidJobTransition(Exception):
    """Raised when an update would move a job backwards or out of a terminal status."""


class JobStore:
    """Process-wide job table.

    Every read returns a copy and every mutation goes through ``create`` /
    ``update`` / ``remove`` / ``evict_stale`` under one re-entrant lock, so
    processors running in worker threads can report progress safely.

    Nothing is persisted: a new store starts empty.
    """

    def __init__(
        self,
        retention_seconds: float = _DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._jobs: Dict[str, JobRecord] = {}
        self._owner_jobs: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    # ── CRUD ─────────────────────────────────────────────────────────

    def create(self, job_type: str, payload: Any = None, owner: Optional[str] = None) -> JobRecord:
        """Insert a new queued job and return its record."""
        self.evict_stale(self.retention_seconds)
        with self._lock:
            now = self._clock()
            rec = JobRecord(
                job_id=uuid.uuid4().hex,
                job_type=job_type,
                owner=owner,
                payload=payload,
                created_at=now,
                updated_at=now,
            )
            self._jobs[rec.job_id] = rec
            if owner:
                self._owner_jobs.setdefault(owner, set()).add(rec.job_id)
            logger.info("Created job %s of type %s for %s", rec.job_id, job_type, owner or "anonymous")
            return rec.model_copy()

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Fetch a single job by ID."""
        with self._lock:
            rec = self._jobs.get(job_id)
            return rec.model_copy() if rec is not None else None

    def update(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        progress: Optional[int] = None,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[JobRecord]:
        """Apply the provided fields and return the updated record.

        Returns ``None`` when the job is unknown: it may have been evicted or
        removed while its processor was still running.  A progress-only
        update against a job that is not running is dropped.
        """
        with self._lock:
            rec = self._jobs.get(job_id)
            if rec is None:
                logger.debug("Update for unknown job %s ignored", job_id)
                return None

            new_status = rec.status if status is None else JobStatus(status)
            if new_status != rec.status and new_status not in ALLOWED_TRANSITIONS[rec.status]:
                raise InvalidJobTransition(
                    f"Job {job_id} cannot move from {rec.status.value} to {new_status.value}"
                )

            if new_status == rec.status and rec.status is not JobStatus.running:
                if result is not None or error is not None:
                    raise InvalidJobTransition(
                        f"Job {job_id} is {rec.status.value}; result/error may only be set on completion"
                    )
                if progress is not None:
                    logger.debug(
                        "Dropped progress %s for job %s in status %s", progress, job_id, rec.status.value
                    )
                    return rec.model_copy()
            if result is not None and new_status is not JobStatus.succeeded:
                raise InvalidJobTransition(f"Job {job_id}: result is only stored on success")
            if error is not None and new_status is not JobStatus.failed:
                raise InvalidJobTransition(f"Job {job_id}: error is only stored on failure")

            rec.status = new_status
            if progress is not None:
                rec.progress = max(0, min(100, int(progress)))
            if result is not None:
                rec.result = result
            if error is not None:
                rec.error = error
            rec.updated_at = self._clock()
            return rec.model_copy()

    def remove(self, job_id: str) -> bool:
        """Delete a job regardless of status.  Does not stop a running processor."""
        with self._lock:
            rec = self._jobs.pop(job_id, None)
            if rec is None:
                return False
            self._unindex(rec)
        logger.info("Manually removed job %s", job_id)
        return True

    # ── Admission & retention ────────────────────────────────────────

    def active_count(self, owner: str) -> int:
        """Number of queued or running jobs recorded for *owner*."""
        with self._lock:
            ids = self._owner_jobs.get(owner, ())
            return sum(
                1 for jid in ids
                if jid in self._jobs and self._jobs[jid].status in ACTIVE_STATUSES
            )

    def can_admit(self, owner: Optional[str], max_concurrent: int) -> bool:
        """Return True while *owner* has fewer than *max_concurrent* active jobs.

        Anonymous callers are not tracked and always pass.  The check is
        advisory: pair it with ``create`` without yielding in between.
        """
        if not owner:
            return True
        running = self.active_count(owner)
        logger.debug("Owner %s concurrency check: %d/%d active jobs", owner, running, max_concurrent)
        return running < max_concurrent

    def evict_stale(self, retention: Union[float, timedelta, None] = None) -> int:
        """Remove terminal jobs last updated more than *retention* ago.

        Queued and running jobs are never evicted.  Returns the number of
        jobs removed.
        """
        if retention is None:
            retention = self.retention_seconds
        if not isinstance(retention, timedelta):
            retention = timedelta(seconds=retention)
        with self._lock:
            cutoff = self._clock() - retention
            stale = [
                rec for rec in self._jobs.values()
                if rec.status.is_terminal and rec.updated_at < cutoff
            ]
            for rec in stale:
                del self._jobs[rec.job_id]
                self._unindex(rec)
        if stale:
            logger.info("Evicted %d finished jobs", len(stale))
        return len(stale)

    # ── Diagnostics ──────────────────────────────────────────────────

    def list_jobs(self, owner: Optional[str] = None, limit: Optional[int] = None) -> List[JobRecord]:
        """List jobs newest first, optionally restricted to one owner."""
        with self._lock:
            if owner is None:
                recs = list(self._jobs.values())
            else:
                recs = [self._jobs[j] for j in self._owner_jobs.get(owner, ()) if j in self._jobs]
            recs = sorted(recs, key=lambda r: r.created_at, reverse=True)
            if limit is not None:
                recs = recs[:limit]
            return [r.model_copy() for r in recs]

    def owner_mapping(self) -> Dict[str, List[str]]:
        """Snapshot of the owner → job-id index."""
        with self._lock:
            return {owner: sorted(ids) for owner, ids in self._owner_jobs.items()}

    def stats(self) -> Dict[str, int]:
        """Job counts by status."""
        with self._lock:
            counts = {s.value: 0 for s in JobStatus}
            for rec in self._jobs.values():
                counts[rec.status.value] += 1
            return {"total": len(self._jobs), **counts}

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # ── Helpers ───────────────────────────────────────────────────────

    def _unindex(self, rec: JobRecord) -> None:
        if not rec.owner:
            return
        ids = self._owner_jobs.get(rec.owner)
        if ids is None:
            return
        ids.discard(rec.job_id)
        if not ids:
            del self._owner_jobs[rec.owner]
