from pydantic import BaseModel, Field
from typing import Dict, Optional

from app.models.enums import ActionType

class LimitStatus(BaseModel):
    allowed: bool
    remaining_daily: int
    remaining_hourly: Optional[int] = None  # None when no hourly cap applies
    daily_limit: int
    hourly_limit: Optional[int] = None
    daily_reset_at: float
    hourly_reset_at: float
    blocked_until: Optional[float] = None
    block_reason: Optional[str] = None

class DailyUsage(BaseModel):
    used: int
    limit: int
    remaining: int

class RecordActionRequest(BaseModel):
    feed_id: str = Field(min_length=1)
    action_type: ActionType

class CustomLimitsRequest(BaseModel):
    feed_id: str = Field(min_length=1)
    action_type: ActionType
    daily_limit: Optional[int] = Field(default=None, ge=0)
    hourly_limit: Optional[int] = Field(default=None, ge=0)

class ActionLimitResponse(BaseModel):
    action_type: ActionType
    status: LimitStatus

class AllLimitsResponse(BaseModel):
    limits: Dict[str, LimitStatus]
    daily_usage: Dict[str, DailyUsage]

class RecordActionResponse(BaseModel):
    recorded: bool
    status: LimitStatus

class CustomLimitsResponse(BaseModel):
    updated: bool
    status: LimitStatus

class ClearBlockResponse(BaseModel):
    cleared: bool
    status: LimitStatus
