from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

class ProcessResult(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, **data: Any) -> "ProcessResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, **data: Any) -> "ProcessResult":
        return cls(success=False, error=error, data=data or None)

class JobOutcome(BaseModel):
    job_id: str
    type: str
    success: bool
    error: Optional[str] = None

class RunSummary(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    recovered: int = 0
    skipped: bool = False  # cycle cut short by a storage error
    duration_ms: int = 0
    results: List[JobOutcome] = Field(default_factory=list)
