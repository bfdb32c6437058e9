"""Job polling and maintenance endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..deps.auth import require_auth
from ..deps.client import get_client_identifier
from ..deps.providers import get_job_store, get_settings
from ..config import ApiSettings
from ..errors import JobNotFoundError
from ..jobs.models import JobRecord
from ..jobs.store import JobStore
from ..schemas.envelope import ApiResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def _visible_job(store: JobStore, job_id: str, requester: str, request: Request) -> JobRecord:
    """Return the job if *requester* may see it; otherwise raise JobNotFoundError.

    A job owned by someone else is reported exactly like a missing one.
    """
    rec = store.get(job_id)
    if rec is None:
        raise JobNotFoundError("Job not found")
    if rec.owner and rec.owner != requester:
        logger.warning(
            "Unauthorized job access attempt: job %s (owner %s) requested by %s, user-agent %s",
            job_id, rec.owner, requester, request.headers.get("user-agent", "unknown"),
        )
        raise JobNotFoundError("Job not found")
    return rec


@router.get("")
async def list_my_jobs(
    limit: int = 50,
    requester: str = Depends(get_client_identifier),
    store: JobStore = Depends(get_job_store),
) -> ApiResponse:
    jobs = store.list_jobs(owner=requester, limit=limit)
    return ApiResponse.success([j.public_view() for j in jobs])


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    request: Request,
    requester: str = Depends(get_client_identifier),
    store: JobStore = Depends(get_job_store),
) -> ApiResponse:
    rec = _visible_job(store, job_id, requester, request)
    logger.debug("Job %s status=%s progress=%s", job_id, rec.status.value, rec.progress)
    return ApiResponse.success(rec.public_view())


@router.delete("/{job_id}", dependencies=[Depends(require_auth)])
async def remove_job(
    job_id: str,
    store: JobStore = Depends(get_job_store),
) -> ApiResponse:
    if not store.remove(job_id):
        raise JobNotFoundError("Job not found")
    return ApiResponse.success({"removed": job_id})


@router.post("/cleanup", dependencies=[Depends(require_auth)])
async def cleanup_jobs(
    store: JobStore = Depends(get_job_store),
    settings: ApiSettings = Depends(get_settings),
) -> ApiResponse:
    evicted = store.evict_stale(settings.job_retention_seconds)
    return ApiResponse.success({"evicted": evicted, "stats": store.stats()})
