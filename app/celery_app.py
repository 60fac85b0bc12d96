from celery import Celery
from app.config import REDIS_URL, PROCESS_JOBS_INTERVAL_SECONDS, CLEANUP_INTERVAL_SECONDS

celery_app = Celery("feed_automation", broker=REDIS_URL, backend=REDIS_URL, include=["worker.tasks"])

celery_app.conf.beat_schedule = {
    "process-due-jobs": {
        "task": "worker.tasks.process_due_jobs",
        "schedule": float(PROCESS_JOBS_INTERVAL_SECONDS),
    },
    "cleanup-terminal-jobs": {
        "task": "worker.tasks.cleanup_jobs",
        "schedule": float(CLEANUP_INTERVAL_SECONDS),
    },
}

celery_app.conf.task_acks_late = True
celery_app.conf.worker_prefetch_multiplier = 1
