from typing import Any, Collection, Dict, List, Optional
from sqlalchemy import delete, func, update
from sqlmodel import col, select
from app.repositories.base_repository import BaseRepository
from app.models.job import Job
from app.models.enums import JobStatus, JobType, TERMINAL_STATUSES

# How many eligible candidates a claim tries before giving up on this call
CLAIM_CANDIDATES = 5

class JobRepository(BaseRepository):
    """Durable JobStore on top of SQLModel.

    Claims and transitions are single conditional UPDATE statements
    (compare-and-swap on status), so concurrent workers sharing the database
    never both win the same job.
    """

    def add(self, job: Job) -> Job:
        self.session.add(job)
        self._commit()
        self.session.refresh(job)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self.session.get(Job, job_id)

    def claim_next(self, now: float, exclude: Collection[str] = ()) -> Optional[Job]:
        statement = (
            select(Job.id)
            .where(
                Job.status == JobStatus.PENDING,
                Job.scheduled_for <= now,
                Job.attempts < Job.max_attempts,
            )
        )
        if exclude:
            statement = statement.where(col(Job.id).not_in(list(exclude)))
        statement = (
            statement.order_by(col(Job.scheduled_for), col(Job.priority).desc(), col(Job.created_at))
            .limit(CLAIM_CANDIDATES)
        )
        candidates = list(self.session.exec(statement).all())

        for job_id in candidates:
            result = self._write(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PENDING)
                .values(
                    status=JobStatus.PROCESSING,
                    attempts=Job.attempts + 1,
                    locked_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 1:
                return self.session.get(Job, job_id)
            # another worker won this one, try the next candidate
        return None

    def update_if_status(
        self,
        job_id: str,
        expected: JobStatus,
        changes: Dict[str, Any],
        expected_attempts: Optional[int] = None,
    ) -> Optional[Job]:
        statement = update(Job).where(Job.id == job_id, Job.status == expected)
        if expected_attempts is not None:
            statement = statement.where(Job.attempts == expected_attempts)
        result = self._write(statement.values(**changes))
        if result.rowcount != 1:
            return None
        return self.session.get(Job, job_id)

    def delete_if_status(self, job_id: str, expected: JobStatus) -> bool:
        result = self._write(delete(Job).where(Job.id == job_id, Job.status == expected))
        return result.rowcount == 1

    def list(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        resource_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Job]:
        statement = select(Job)
        if status is not None:
            statement = statement.where(Job.status == status)
        if job_type is not None:
            statement = statement.where(Job.type == job_type)
        if resource_id is not None:
            statement = statement.where(Job.resource_id == resource_id)
        statement = statement.order_by(col(Job.created_at).desc())
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def count_by_status(self) -> Dict[JobStatus, int]:
        counts = {status: 0 for status in JobStatus}
        statement = select(Job.status, func.count()).group_by(Job.status)
        for status, count in self.session.exec(statement).all():
            counts[JobStatus(status)] = count
        return counts

    def list_expired_leases(self, locked_before: float) -> List[Job]:
        statement = select(Job).where(
            Job.status == JobStatus.PROCESSING,
            col(Job.locked_at).is_not(None),
            col(Job.locked_at) < locked_before,
        )
        return list(self.session.exec(statement).all())

    def delete_terminal_before(self, cutoff: float) -> int:
        result = self._write(
            delete(Job).where(
                col(Job.status).in_(TERMINAL_STATUSES),
                Job.updated_at < cutoff,
            )
        )
        return result.rowcount
