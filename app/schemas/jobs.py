from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from app.models.enums import JobStatus, JobType

class EnqueueJobRequest(BaseModel):
    type: str  # validated against JobType by the queue so the API answers 400
    payload: Dict[str, Any] = Field(default_factory=dict)
    scheduled_for: Optional[datetime] = None
    max_attempts: Optional[int] = Field(default=None, ge=1)
    priority: int = 0

class JobCreateResponse(BaseModel):
    job_id: str

class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: JobType
    resource_id: str
    status: JobStatus
    priority: int
    scheduled_for: float
    attempts: int
    max_attempts: int
    last_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    created_at: float
    updated_at: float
    completed_at: Optional[float] = None

class QueueStats(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0

class QueueOverview(BaseModel):
    stats: QueueStats
    jobs: Optional[List[JobResponse]] = None

class CancelJobResponse(BaseModel):
    cancelled: bool
    job_id: str

class CleanupRequest(BaseModel):
    older_than_days: float = Field(default=7, gt=0)

class CleanupResponse(BaseModel):
    cleaned_up: int
    older_than_days: float
