"""Job data models."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, enum.Enum):
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.succeeded, JobStatus.failed})
ACTIVE_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.queued, JobStatus.running})

# Forward-only state machine.  Terminal statuses have no outgoing edges.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.queued: frozenset({JobStatus.running}),
    JobStatus.running: frozenset({JobStatus.succeeded, JobStatus.failed}),
    JobStatus.succeeded: frozenset(),
    JobStatus.failed: frozenset(),
}


class JobRecord(BaseModel):
    """In-memory representation of an asynchronous job."""

    job_id: str
    job_type: str
    status: JobStatus = JobStatus.queued
    owner: Optional[str] = None
    payload: Any = None
    progress: int = 0
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public_view(self) -> Dict[str, Any]:
        """Fields returned to pollers.  Payload and owner are never echoed back."""
        return {
            "job_id": self.job_id,
            "job_type": self.job_type,
            "status": self.status.value,
            "progress": self.progress,
            "result": _dump(self.result),
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def summary_view(self) -> Dict[str, Any]:
        """Diagnostic listing entry: no payload or result bodies."""
        return {
            "job_id": self.job_id,
            "job_type": self.job_type,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "has_result": self.result is not None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value
