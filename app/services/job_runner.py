import time

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.config import JOB_LEASE_SECONDS, MAX_JOBS_PER_RUN
from app.schemas.results import JobOutcome, RunSummary
from app.services.job_processor import JobProcessor
from app.services.job_queue import JobQueue

logger = structlog.get_logger(__name__)

class JobRunner:
    """One "process due jobs" cycle: claim, process, report, up to a batch cap.

    Safe to run repeatedly and concurrently; with nothing due it just reports
    zero processed. Storage errors end the cycle early and are logged, never
    raised.
    """

    def __init__(
        self,
        queue: JobQueue,
        processor: JobProcessor,
        batch_size: int = MAX_JOBS_PER_RUN,
        lease_seconds: float = JOB_LEASE_SECONDS,
    ):
        self.queue = queue
        self.processor = processor
        self.batch_size = batch_size
        self.lease_seconds = lease_seconds

    def process_due_jobs(self) -> RunSummary:
        t0 = time.time()
        summary = RunSummary()

        try:
            summary.recovered = self.queue.recover_stale_jobs(self.lease_seconds)
        except SQLAlchemyError:
            logger.exception("job_cycle_skipped", stage="recover")
            summary.skipped = True
            return self._finish(summary, t0)

        # A job released for retry waits for a later cycle
        dispatched = set()
        for _ in range(self.batch_size):
            try:
                job = self.queue.get_next_job(exclude=dispatched)
            except SQLAlchemyError:
                logger.exception("job_cycle_skipped", stage="claim")
                summary.skipped = True
                break
            if job is None:
                break

            job_id, job_type = job.id, getattr(job.type, "value", job.type)
            dispatched.add(job_id)
            result = self.processor.process(job)

            try:
                if result.success:
                    self.queue.complete_job(job_id, result.data)
                else:
                    self.queue.fail_job(job_id, result.error or "unknown error")
            except SQLAlchemyError:
                # Job stays PROCESSING until its lease expires
                logger.exception("job_report_failed", job_id=job_id)
                summary.skipped = True
                break
            finally:
                summary.processed += 1
                if result.success:
                    summary.succeeded += 1
                else:
                    summary.failed += 1
                summary.results.append(
                    JobOutcome(job_id=job_id, type=job_type, success=result.success, error=result.error)
                )

        return self._finish(summary, t0)

    def _finish(self, summary: RunSummary, t0: float) -> RunSummary:
        summary.duration_ms = int((time.time() - t0) * 1000)
        logger.info(
            "job_cycle_finished",
            processed=summary.processed,
            succeeded=summary.succeeded,
            failed=summary.failed,
            recovered=summary.recovered,
            skipped=summary.skipped,
            duration_ms=summary.duration_ms,
        )
        return summary
