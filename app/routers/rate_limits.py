from typing import Optional
from fastapi import APIRouter, Depends

from app.dependencies import get_rate_limiter
from app.models.enums import ActionType
from app.schemas.rate_limits import (
    ActionLimitResponse,
    AllLimitsResponse,
    ClearBlockResponse,
    CustomLimitsRequest,
    CustomLimitsResponse,
    RecordActionRequest,
    RecordActionResponse,
)
from app.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/rate-limits", tags=["rate-limits"])

# Unknown action types never reach the limiter: the ActionType enum on every
# request model / query param makes FastAPI answer 422 first.

@router.get("", response_model=None)
def get_limits(
    feed_id: str,
    action_type: Optional[ActionType] = None,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    if action_type is not None:
        return ActionLimitResponse(action_type=action_type, status=limiter.check_limit(feed_id, action_type))

    return AllLimitsResponse(
        limits=limiter.get_all_limits(feed_id),
        daily_usage=limiter.get_daily_usage(feed_id),
    )

@router.post("", response_model=RecordActionResponse)
def record_action(req: RecordActionRequest, limiter: RateLimiter = Depends(get_rate_limiter)):
    status = limiter.record_action(req.feed_id, req.action_type)
    return RecordActionResponse(recorded=status.allowed, status=status)

@router.put("", response_model=CustomLimitsResponse)
def set_custom_limits(req: CustomLimitsRequest, limiter: RateLimiter = Depends(get_rate_limiter)):
    status = limiter.set_custom_limits(
        req.feed_id, req.action_type, daily=req.daily_limit, hourly=req.hourly_limit
    )
    return CustomLimitsResponse(updated=True, status=status)

@router.delete("", response_model=ClearBlockResponse)
def clear_block(
    feed_id: str,
    action_type: ActionType,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    status = limiter.clear_block(feed_id, action_type)
    return ClearBlockResponse(cleared=True, status=status)
