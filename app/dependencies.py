from fastapi import Depends
from sqlmodel import Session, SQLModel, create_engine
from app.config import DATABASE_URL
from app.repositories.job_repository import JobRepository
from app.repositories.rate_limit_repository import RateLimitRepository
from app.services.graph_api_client import GraphApiClient
from app.services.job_processor import JobProcessor
from app.services.job_queue import JobQueue
from app.services.job_runner import JobRunner
from app.services.rate_limiter import RateLimiter

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

def init_db():
    # Import for side effect: table registration on SQLModel.metadata
    from app.models import job, rate_limit  # noqa: F401
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session

def get_job_queue(session: Session = Depends(get_session)) -> JobQueue:
    return JobQueue(JobRepository(session))

def get_rate_limiter(session: Session = Depends(get_session)) -> RateLimiter:
    return RateLimiter(RateLimitRepository(session))

def get_job_runner(
    queue: JobQueue = Depends(get_job_queue),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> JobRunner:
    return JobRunner(queue, JobProcessor(limiter, GraphApiClient()))
