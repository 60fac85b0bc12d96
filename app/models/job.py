import time
import uuid
from typing import Dict, Optional
from sqlmodel import SQLModel, Field, JSON
from app.models.enums import JobStatus, JobType

class Job(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    type: JobType
    resource_id: str = Field(index=True)

    payload: Dict = Field(default_factory=dict, sa_type=JSON)

    status: JobStatus = Field(default=JobStatus.PENDING, index=True)
    priority: int = Field(default=0)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)

    scheduled_for: float = Field(default_factory=time.time, index=True)
    locked_at: Optional[float] = None  # claim time, drives lease recovery

    last_error: Optional[str] = None
    result: Optional[Dict] = Field(default=None, sa_type=JSON)

    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    completed_at: Optional[float] = None
