import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Collection, Dict, List, Optional, Union

import structlog

from app.config import JOB_DEFAULT_MAX_ATTEMPTS, JOB_RETRY_DELAY_SECONDS
from app.models.enums import JobStatus, JobType
from app.models.job import Job
from app.repositories.job_store import JobStore
from app.schemas.jobs import QueueStats
from app.schemas.payloads import JobValidationError, parse_job_type, parse_payload

logger = structlog.get_logger(__name__)

LEASE_EXPIRED_ERROR = "lease expired"
FEED_JOBS_LIMIT = 50


def _to_timestamp(value: Union[None, float, int, datetime]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)


class JobQueue:
    """Lifecycle of jobs, independent of what a job does.

    PENDING -> PROCESSING (claim, attempts += 1)
    PROCESSING -> COMPLETED | FAILED | PENDING (retry while attempts remain)
    PENDING -> deleted (cancel)

    Transitions out of PROCESSING are compare-and-swap on the status, which
    makes complete_job/fail_job idempotent.
    """

    def __init__(
        self,
        store: JobStore,
        clock: Callable[[], float] = time.time,
        default_max_attempts: int = JOB_DEFAULT_MAX_ATTEMPTS,
        retry_delay_seconds: float = JOB_RETRY_DELAY_SECONDS,
    ):
        self.store = store
        self.clock = clock
        self.default_max_attempts = default_max_attempts
        self.retry_delay_seconds = retry_delay_seconds

    def add_job(
        self,
        job_type: Any,
        payload: Any,
        scheduled_for: Union[None, float, int, datetime] = None,
        max_attempts: Optional[int] = None,
        priority: int = 0,
    ) -> str:
        jtype = parse_job_type(job_type)
        parsed = parse_payload(jtype, payload)
        if max_attempts is None:
            max_attempts = self.default_max_attempts
        if max_attempts < 1:
            raise JobValidationError("max_attempts must be >= 1")

        now = self.clock()
        run_at = _to_timestamp(scheduled_for)
        job = Job(
            type=jtype,
            resource_id=parsed.feed_id,
            payload=parsed.model_dump(exclude_none=True),
            status=JobStatus.PENDING,
            priority=priority,
            attempts=0,
            max_attempts=max_attempts,
            scheduled_for=run_at if run_at is not None else now,
            created_at=now,
            updated_at=now,
        )
        job = self.store.add(job)

        logger.info(
            "job_added",
            job_id=job.id,
            job_type=jtype.value,
            resource_id=job.resource_id,
            scheduled_for=job.scheduled_for,
        )
        return job.id

    def get_next_job(self, exclude: Collection[str] = ()) -> Optional[Job]:
        job = self.store.claim_next(self.clock(), exclude)
        if job is not None:
            logger.info(
                "job_claimed",
                job_id=job.id,
                job_type=job.type.value,
                attempt=job.attempts,
                max_attempts=job.max_attempts,
            )
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def get_jobs_for_feed(
        self,
        resource_id: str,
        status: Optional[JobStatus] = None,
        limit: int = FEED_JOBS_LIMIT,
    ) -> List[Job]:
        return self.store.list(status=status, resource_id=resource_id, limit=limit)

    def get_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        resource_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Job]:
        return self.store.list(status=status, job_type=job_type, resource_id=resource_id, limit=limit)

    def complete_job(self, job_id: str, result: Optional[Dict[str, Any]] = None) -> bool:
        now = self.clock()
        job = self.store.update_if_status(
            job_id,
            JobStatus.PROCESSING,
            {
                "status": JobStatus.COMPLETED,
                "result": result if result is not None else {},
                "completed_at": now,
                "updated_at": now,
                "locked_at": None,
            },
        )
        if job is None:
            logger.warning("job_complete_ignored", job_id=job_id, reason="not processing")
            return False
        logger.info("job_completed", job_id=job_id, attempts=job.attempts)
        return True

    def fail_job(self, job_id: str, error: str) -> bool:
        job = self.store.get(job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            logger.warning("job_fail_ignored", job_id=job_id, reason="not processing")
            return False
        return self._release(job, error)

    def cancel_job(self, job_id: str) -> bool:
        cancelled = self.store.delete_if_status(job_id, JobStatus.PENDING)
        if cancelled:
            logger.info("job_cancelled", job_id=job_id)
        return cancelled

    def get_stats(self) -> QueueStats:
        counts = self.store.count_by_status()
        return QueueStats(
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            total=sum(counts.values()),
        )

    def cleanup(self, older_than: timedelta = timedelta(days=7)) -> int:
        """Delete COMPLETED/FAILED jobs not touched within `older_than`."""
        cutoff = self.clock() - older_than.total_seconds()
        removed = self.store.delete_terminal_before(cutoff)
        logger.info("jobs_cleaned_up", removed=removed, older_than_s=older_than.total_seconds())
        return removed

    def recover_stale_jobs(self, lease_seconds: float) -> int:
        """Release PROCESSING jobs whose claim is older than the lease.

        A worker that died mid-job never reports back; its job goes through
        the normal failure path so the attempt still counts.
        """
        cutoff = self.clock() - lease_seconds
        recovered = 0
        for job in self.store.list_expired_leases(cutoff):
            if self._release(job, LEASE_EXPIRED_ERROR):
                recovered += 1
        if recovered:
            logger.warning("stale_jobs_recovered", count=recovered, lease_seconds=lease_seconds)
        return recovered

    def _release(self, job: Job, error: str) -> bool:
        now = self.clock()
        exhausted = job.attempts >= job.max_attempts
        changes: Dict[str, Any] = {
            "status": JobStatus.FAILED if exhausted else JobStatus.PENDING,
            "last_error": error,
            "updated_at": now,
            "locked_at": None,
        }
        if not exhausted and self.retry_delay_seconds > 0:
            changes["scheduled_for"] = max(job.scheduled_for, now + self.retry_delay_seconds * job.attempts)

        # Pinned to the claim we read, not a later re-claim of the same job
        updated = self.store.update_if_status(
            job.id, JobStatus.PROCESSING, changes, expected_attempts=job.attempts
        )
        if updated is None:
            logger.warning("job_fail_ignored", job_id=job.id, reason="not processing")
            return False

        if exhausted:
            logger.warning(
                "job_failed_permanently",
                job_id=job.id,
                attempts=updated.attempts,
                error=error,
            )
        else:
            logger.info(
                "job_retry_scheduled",
                job_id=job.id,
                attempt=updated.attempts,
                max_attempts=updated.max_attempts,
                error=error,
            )
        return True
