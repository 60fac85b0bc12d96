from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_job_queue
from app.models.enums import JobStatus, JobType
from app.schemas.jobs import (
    CancelJobResponse,
    CleanupRequest,
    CleanupResponse,
    EnqueueJobRequest,
    JobCreateResponse,
    JobResponse,
    QueueOverview,
)
from app.schemas.payloads import JobValidationError
from app.services.job_queue import FEED_JOBS_LIMIT, JobQueue

router = APIRouter(prefix="/queue", tags=["queue"])

@router.get("", response_model=QueueOverview)
def get_queue(
    feed_id: Optional[str] = None,
    status: Optional[JobStatus] = None,
    type: Optional[JobType] = None,
    limit: int = Query(FEED_JOBS_LIMIT, ge=1, le=500),
    queue: JobQueue = Depends(get_job_queue),
):
    stats = queue.get_stats()
    if feed_id is None and status is None and type is None:
        return QueueOverview(stats=stats)

    jobs = queue.get_jobs(status=status, job_type=type, resource_id=feed_id, limit=limit)
    return QueueOverview(stats=stats, jobs=[JobResponse.model_validate(j) for j in jobs])

@router.post("", status_code=201, response_model=JobCreateResponse)
def enqueue_job(req: EnqueueJobRequest, queue: JobQueue = Depends(get_job_queue)):
    try:
        job_id = queue.add_job(
            req.type,
            req.payload,
            scheduled_for=req.scheduled_for,
            max_attempts=req.max_attempts,
            priority=req.priority,
        )
    except JobValidationError as e:
        raise HTTPException(400, str(e))
    return JobCreateResponse(job_id=job_id)

@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str, queue: JobQueue = Depends(get_job_queue)):
    job = queue.get_job(job_id)
    if not job:
        raise HTTPException(404, "Job not found")
    return JobResponse.model_validate(job)

@router.delete("/{job_id}", response_model=CancelJobResponse)
def cancel_job(job_id: str, queue: JobQueue = Depends(get_job_queue)):
    return CancelJobResponse(cancelled=queue.cancel_job(job_id), job_id=job_id)

@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_jobs(req: CleanupRequest, queue: JobQueue = Depends(get_job_queue)):
    removed = queue.cleanup(timedelta(days=req.older_than_days))
    return CleanupResponse(cleaned_up=removed, older_than_days=req.older_than_days)
