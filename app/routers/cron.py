from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import CRON_SECRET
from app.dependencies import get_job_runner
from app.schemas.results import RunSummary
from app.services.job_runner import JobRunner

router = APIRouter(prefix="/cron", tags=["cron"])

def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    if CRON_SECRET and authorization != f"Bearer {CRON_SECRET}":
        raise HTTPException(401, "Unauthorized")

@router.api_route(
    "/process-jobs",
    methods=["GET", "POST"],
    response_model=RunSummary,
    dependencies=[Depends(verify_cron_secret)],
)
def process_jobs(runner: JobRunner = Depends(get_job_runner)):
    return runner.process_due_jobs()
