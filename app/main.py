from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.config import LOG_LEVEL
from app.dependencies import init_db
from app.log import setup_logging
from app.routers import cron, health, queue, rate_limits

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)
    init_db()
    yield

app = FastAPI(title="Feed Automation", lifespan=lifespan)

app.include_router(queue.router, prefix="/api/v1")
app.include_router(rate_limits.router, prefix="/api/v1")
app.include_router(cron.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1")
