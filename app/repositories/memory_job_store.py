import threading
from typing import Any, Collection, Dict, List, Optional
from app.models.enums import JobStatus, JobType, TERMINAL_STATUSES
from app.models.job import Job


def _copy(job: Job) -> Job:
    return Job(**job.model_dump())


class InMemoryJobStore:
    """JobStore kept in a dict behind one mutex.

    Callers only ever get copies, so nothing outside the lock can mutate
    stored state.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def add(self, job: Job) -> Job:
        with self._lock:
            self._jobs[job.id] = _copy(job)
            return _copy(job)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return _copy(job) if job else None

    def claim_next(self, now: float, exclude: Collection[str] = ()) -> Optional[Job]:
        with self._lock:
            eligible = [
                j for j in self._jobs.values()
                if j.status == JobStatus.PENDING
                and j.scheduled_for <= now
                and j.attempts < j.max_attempts
                and j.id not in exclude
            ]
            if not eligible:
                return None
            job = min(eligible, key=lambda j: (j.scheduled_for, -j.priority, j.created_at))
            job.status = JobStatus.PROCESSING
            job.attempts += 1
            job.locked_at = now
            job.updated_at = now
            return _copy(job)

    def update_if_status(
        self,
        job_id: str,
        expected: JobStatus,
        changes: Dict[str, Any],
        expected_attempts: Optional[int] = None,
    ) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != expected:
                return None
            if expected_attempts is not None and job.attempts != expected_attempts:
                return None
            for field, value in changes.items():
                setattr(job, field, value)
            return _copy(job)

    def delete_if_status(self, job_id: str, expected: JobStatus) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != expected:
                return False
            del self._jobs[job_id]
            return True

    def list(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        resource_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Job]:
        with self._lock:
            jobs = [
                j for j in self._jobs.values()
                if (status is None or j.status == status)
                and (job_type is None or j.type == job_type)
                and (resource_id is None or j.resource_id == resource_id)
            ]
            jobs.sort(key=lambda j: j.created_at, reverse=True)
            if limit is not None:
                jobs = jobs[:limit]
            return [_copy(j) for j in jobs]

    def count_by_status(self) -> Dict[JobStatus, int]:
        with self._lock:
            counts = {status: 0 for status in JobStatus}
            for job in self._jobs.values():
                counts[job.status] += 1
            return counts

    def list_expired_leases(self, locked_before: float) -> List[Job]:
        with self._lock:
            return [
                _copy(j) for j in self._jobs.values()
                if j.status == JobStatus.PROCESSING
                and j.locked_at is not None
                and j.locked_at < locked_before
            ]

    def delete_terminal_before(self, cutoff: float) -> int:
        with self._lock:
            doomed = [
                job_id for job_id, j in self._jobs.items()
                if j.status in TERMINAL_STATUSES and j.updated_at < cutoff
            ]
            for job_id in doomed:
                del self._jobs[job_id]
            return len(doomed)
