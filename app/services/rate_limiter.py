import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from app.config import RATE_LIMITS
from app.models.enums import ActionType
from app.models.rate_limit import RateLimitCounter
from app.repositories.rate_limit_store import RateLimitStore
from app.schemas.rate_limits import DailyUsage, LimitStatus

logger = structlog.get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60
HOUR_SECONDS = 60 * 60

FALLBACK_LIMITS = {"daily": 50, "hourly": None}


@dataclass
class _Window:
    """Counter state as seen at a given instant, elapsed windows zeroed."""
    daily_count: int
    hourly_count: int
    daily_reset_at: float
    hourly_reset_at: float
    blocked_until: Optional[float]
    block_reason: Optional[str]


def parse_action_type(value: Any) -> ActionType:
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(str(value).strip().upper())
    except ValueError:
        valid = ", ".join(a.value for a in ActionType)
        raise ValueError(f"Invalid action_type {value!r}. Must be one of: {valid}")


class RateLimiter:
    """Per-feed admission control for platform actions.

    Counters live in a RateLimitStore keyed by (resource_id, action_type).
    Only record_action increments them; check_limit never writes.
    """

    def __init__(
        self,
        store: RateLimitStore,
        defaults: Optional[Dict[str, Dict[str, Optional[int]]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.defaults = defaults if defaults is not None else RATE_LIMITS
        self.clock = clock

    def check_limit(self, resource_id: str, action_type: Any) -> LimitStatus:
        action = parse_action_type(action_type)
        now = self.clock()
        counter = self.store.get(resource_id, action.value)
        if counter is None:
            counter = self._new_counter(resource_id, action, now)
        daily, hourly = self._limits(counter, action)
        return self._status(self._roll(counter, now), daily, hourly, now)

    def record_action(self, resource_id: str, action_type: Any) -> LimitStatus:
        """Count one action if the quota admits it.

        `allowed` on the returned status tells whether this action was
        admitted; the remaining counts are after the increment.
        """
        action = parse_action_type(action_type)
        now = self.clock()

        with self.store.locked(
            resource_id, action.value, lambda: self._new_counter(resource_id, action, now)
        ) as counter:
            window = self._roll(counter, now)
            self._apply(counter, window)
            daily, hourly = self._limits(counter, action)

            blocked = counter.blocked_until is not None and counter.blocked_until > now
            exhausted = counter.daily_count >= daily or (
                hourly is not None and counter.hourly_count >= hourly
            )
            if blocked or exhausted:
                counter.updated_at = now
                logger.info(
                    "rate_limit_denied",
                    resource_id=resource_id,
                    action_type=action.value,
                    daily_count=counter.daily_count,
                    blocked_until=counter.blocked_until,
                )
                return self._status(self._roll(counter, now), daily, hourly, now, allowed=False)

            counter.daily_count += 1
            counter.hourly_count += 1
            self._block_if_exhausted(counter, daily, hourly)
            counter.updated_at = now

            logger.info(
                "rate_limit_recorded",
                resource_id=resource_id,
                action_type=action.value,
                daily_count=counter.daily_count,
                hourly_count=counter.hourly_count,
            )
            return self._status(self._roll(counter, now), daily, hourly, now, allowed=True)

    def set_custom_limits(
        self,
        resource_id: str,
        action_type: Any,
        daily: Optional[int] = None,
        hourly: Optional[int] = None,
    ) -> LimitStatus:
        """Override the defaults; None puts that window back on its default."""
        action = parse_action_type(action_type)
        for name, value in (("daily", daily), ("hourly", hourly)):
            if value is not None and value < 0:
                raise ValueError(f"{name} limit must be >= 0")

        now = self.clock()
        with self.store.locked(
            resource_id, action.value, lambda: self._new_counter(resource_id, action, now)
        ) as counter:
            counter.custom_daily_limit = daily
            counter.custom_hourly_limit = hourly
            counter.updated_at = now

        logger.info(
            "rate_limit_custom_limits_set",
            resource_id=resource_id,
            action_type=action.value,
            daily=daily,
            hourly=hourly,
        )
        return self.check_limit(resource_id, action)

    def clear_block(self, resource_id: str, action_type: Any) -> LimitStatus:
        action = parse_action_type(action_type)
        now = self.clock()
        with self.store.locked(
            resource_id, action.value, lambda: self._new_counter(resource_id, action, now)
        ) as counter:
            counter.blocked_until = None
            counter.block_reason = None
            counter.updated_at = now

        logger.info("rate_limit_block_cleared", resource_id=resource_id, action_type=action.value)
        return self.check_limit(resource_id, action)

    def get_all_limits(self, resource_id: str) -> Dict[str, LimitStatus]:
        return {action.value: self.check_limit(resource_id, action) for action in ActionType}

    def get_daily_usage(self, resource_id: str) -> Dict[str, DailyUsage]:
        now = self.clock()
        usage = {}
        for counter in self.store.list_for_resource(resource_id):
            action = parse_action_type(counter.action_type)
            daily, _ = self._limits(counter, action)
            used = self._roll(counter, now).daily_count
            usage[action.value] = DailyUsage(used=used, limit=daily, remaining=max(0, daily - used))
        return usage

    # Internal helpers

    def _new_counter(self, resource_id: str, action: ActionType, now: float) -> RateLimitCounter:
        return RateLimitCounter(
            resource_id=resource_id,
            action_type=action.value,
            daily_reset_at=now + DAY_SECONDS,
            hourly_reset_at=now + HOUR_SECONDS,
            updated_at=now,
        )

    def _limits(self, counter: RateLimitCounter, action: ActionType) -> Tuple[int, Optional[int]]:
        default = self.defaults.get(action.value, FALLBACK_LIMITS)
        daily = counter.custom_daily_limit
        if daily is None:
            daily = default["daily"]
        hourly = counter.custom_hourly_limit
        if hourly is None:
            hourly = default.get("hourly")
        return daily, hourly

    @staticmethod
    def _roll(counter: RateLimitCounter, now: float) -> _Window:
        window = _Window(
            daily_count=counter.daily_count,
            hourly_count=counter.hourly_count,
            daily_reset_at=counter.daily_reset_at,
            hourly_reset_at=counter.hourly_reset_at,
            blocked_until=counter.blocked_until,
            block_reason=counter.block_reason,
        )
        if now >= window.daily_reset_at:
            window.daily_count = 0
            window.daily_reset_at = now + DAY_SECONDS
        if now >= window.hourly_reset_at:
            window.hourly_count = 0
            window.hourly_reset_at = now + HOUR_SECONDS
        if window.blocked_until is not None and now >= window.blocked_until:
            window.blocked_until = None
            window.block_reason = None
        return window

    @staticmethod
    def _apply(counter: RateLimitCounter, window: _Window):
        counter.daily_count = window.daily_count
        counter.hourly_count = window.hourly_count
        counter.daily_reset_at = window.daily_reset_at
        counter.hourly_reset_at = window.hourly_reset_at
        counter.blocked_until = window.blocked_until
        counter.block_reason = window.block_reason

    @staticmethod
    def _block_if_exhausted(counter: RateLimitCounter, daily: int, hourly: Optional[int]):
        # Block until the latest window that just ran out resets
        reached = []
        if counter.daily_count >= daily:
            reached.append((counter.daily_reset_at, "Daily limit reached"))
        if hourly is not None and counter.hourly_count >= hourly:
            reached.append((counter.hourly_reset_at, "Hourly limit reached"))
        if reached:
            counter.blocked_until, counter.block_reason = max(reached)

    @staticmethod
    def _status(
        window: _Window,
        daily: int,
        hourly: Optional[int],
        now: float,
        allowed: Optional[bool] = None,
    ) -> LimitStatus:
        blocked = window.blocked_until is not None and window.blocked_until > now
        remaining_daily = max(0, daily - window.daily_count)
        remaining_hourly = None if hourly is None else max(0, hourly - window.hourly_count)
        if blocked:
            remaining_daily = 0
            remaining_hourly = None if hourly is None else 0
        if allowed is None:
            allowed = not blocked and remaining_daily > 0 and (
                remaining_hourly is None or remaining_hourly > 0
            )
        return LimitStatus(
            allowed=allowed,
            remaining_daily=remaining_daily,
            remaining_hourly=remaining_hourly,
            daily_limit=daily,
            hourly_limit=hourly,
            daily_reset_at=window.daily_reset_at,
            hourly_reset_at=window.hourly_reset_at,
            blocked_until=window.blocked_until if blocked else None,
            block_reason=window.block_reason if blocked else None,
        )
