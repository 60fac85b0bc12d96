from typing import Any, Collection, Dict, List, Optional, Protocol
from app.models.enums import JobStatus, JobType
from app.models.job import Job


class JobStore(Protocol):
    """Persistence contract the JobQueue drives its state machine through.

    Every method is atomic on its own: readers never observe a partially
    applied write.
    """

    def add(self, job: Job) -> Job:
        ...

    def get(self, job_id: str) -> Optional[Job]:
        ...

    def claim_next(self, now: float, exclude: Collection[str] = ()) -> Optional[Job]:
        """Move the next eligible PENDING job to PROCESSING and bump attempts.

        Eligible means scheduled_for <= now and attempts < max_attempts.
        Order: scheduled_for asc, priority desc, created_at asc. A job is
        never handed to two callers. Ids in `exclude` are passed over.
        """
        ...

    def update_if_status(
        self,
        job_id: str,
        expected: JobStatus,
        changes: Dict[str, Any],
        expected_attempts: Optional[int] = None,
    ) -> Optional[Job]:
        """Apply changes only if the job is still in `expected` status
        (and, when given, still at `expected_attempts`)."""
        ...

    def delete_if_status(self, job_id: str, expected: JobStatus) -> bool:
        ...

    def list(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        resource_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Job]:
        """Newest created_at first."""
        ...

    def count_by_status(self) -> Dict[JobStatus, int]:
        ...

    def list_expired_leases(self, locked_before: float) -> List[Job]:
        ...

    def delete_terminal_before(self, cutoff: float) -> int:
        ...
