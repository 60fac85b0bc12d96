import time
from typing import Optional
from sqlmodel import SQLModel, Field

class RateLimitCounter(SQLModel, table=True):
    resource_id: str = Field(primary_key=True)
    action_type: str = Field(primary_key=True)

    daily_count: int = Field(default=0)
    hourly_count: int = Field(default=0)
    daily_reset_at: float
    hourly_reset_at: float

    # None means "use the built-in default for this action type"
    custom_daily_limit: Optional[int] = None
    custom_hourly_limit: Optional[int] = None

    blocked_until: Optional[float] = None
    block_reason: Optional[str] = None

    updated_at: float = Field(default_factory=time.time)
