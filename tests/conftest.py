import os

# Must be set before app modules read their config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CRON_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.dependencies import get_session
from app.main import app
from app.models import job as _job_model, rate_limit as _rate_limit_model  # noqa: F401
from app.repositories.job_repository import JobRepository
from app.repositories.memory_job_store import InMemoryJobStore
from app.repositories.memory_rate_limit_store import InMemoryRateLimitStore
from app.repositories.rate_limit_repository import RateLimitRepository
from app.services.job_queue import JobQueue
from app.services.rate_limiter import RateLimiter

TEST_LIMITS = {
    "LIKE": {"daily": 150, "hourly": None},
    "COMMENT": {"daily": 30, "hourly": None},
    "FOLLOW": {"daily": 50, "hourly": None},
    "UNFOLLOW": {"daily": 50, "hourly": None},
    "DM": {"daily": 20, "hourly": None},
    "PUBLISH": {"daily": 25, "hourly": None},
}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(params=["memory", "sql"])
def job_store(request, session):
    if request.param == "memory":
        return InMemoryJobStore()
    return JobRepository(session)


@pytest.fixture
def job_queue(job_store, clock):
    return JobQueue(job_store, clock=clock, retry_delay_seconds=0)


@pytest.fixture(params=["memory", "sql"])
def rate_store(request, session):
    if request.param == "memory":
        return InMemoryRateLimitStore()
    return RateLimitRepository(session)


@pytest.fixture
def limiter(rate_store, clock):
    return RateLimiter(rate_store, defaults=TEST_LIMITS, clock=clock)
