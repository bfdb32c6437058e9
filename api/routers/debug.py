"""Read-only diagnostics over the job store."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..deps.providers import get_dispatcher, get_job_runner, get_job_store
from ..jobs.dispatch import JobDispatcher
from ..jobs.runner import JobRunner
from ..jobs.store import JobStore
from ..schemas.envelope import ApiResponse

router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get("/jobs")
async def debug_jobs(
    store: JobStore = Depends(get_job_store),
    runner: JobRunner = Depends(get_job_runner),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> ApiResponse:
    jobs = store.list_jobs()
    return ApiResponse.success(
        {
            "stats": store.stats(),
            "jobs": [j.summary_view() for j in jobs],
            "owner_jobs": store.owner_mapping(),
            "total_jobs": len(jobs),
            "pending_runs": runner.pending_count,
            "processors": runner.registry.types(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        execution_mode=dispatcher.mode.value,
    )
