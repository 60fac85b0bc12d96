from datetime import timedelta
from celery import Task
from celery.signals import worker_process_init
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from app.celery_app import celery_app
from app.config import JOB_CLEANUP_DAYS, LOG_LEVEL
from app.dependencies import engine, get_job_queue, get_job_runner, get_rate_limiter, init_db
from app.log import setup_logging

class BaseTaskWithRetry(Task):
    autoretry_for = (OperationalError,)
    retry_kwargs = {"max_retries": 10, "countdown": 3}
    retry_backoff = True

@worker_process_init.connect
def _init_worker(**_):
    setup_logging(LOG_LEVEL)
    init_db()

@celery_app.task(acks_late=True)
def process_due_jobs():
    # Storage errors are handled inside the runner: the cycle is skipped, not retried
    with Session(engine) as session:
        runner = get_job_runner(get_job_queue(session), get_rate_limiter(session))
        summary = runner.process_due_jobs()
        return summary.model_dump()

@celery_app.task(bind=True, base=BaseTaskWithRetry, acks_late=True)
def cleanup_jobs(self, older_than_days: float = JOB_CLEANUP_DAYS):
    with Session(engine) as session:
        removed = get_job_queue(session).cleanup(timedelta(days=older_than_days))
        return {"cleaned_up": removed, "older_than_days": older_than_days}
