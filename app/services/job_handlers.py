"""
Handlers for each job type.

A handler receives the claimed job, its validated payload and a
HandlerContext, and returns a ProcessResult. Expected failures (no token,
rate limit, Graph API errors) come back as failed results; handlers never
change job status themselves.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import structlog

from app.models.enums import ActionType, JobType
from app.models.job import Job
from app.schemas.payloads import (
    AutoCommentPayload,
    AutoFollowPayload,
    AutoLikePayload,
    JobPayload,
    PublishPostPayload,
    RefreshTokenPayload,
    SyncMetricsPayload,
    WelcomeDMPayload,
)
from app.schemas.results import ProcessResult
from app.services.graph_api_client import GraphApiClient, GraphApiError
from app.services.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

RATE_LIMIT_ERROR = "rate limit exceeded"
NO_TOKEN_ERROR = "No access token available"


@dataclass
class HandlerContext:
    limiter: RateLimiter
    client: GraphApiClient


JobHandler = Callable[[Job, JobPayload, HandlerContext], ProcessResult]


class HandlerRegistry:
    """Maps job types to handlers. New types register here; the processor
    never changes."""

    def __init__(self):
        self._handlers: Dict[JobType, JobHandler] = {}

    def register(self, job_type: JobType, handler: JobHandler) -> None:
        self._handlers[JobType(job_type)] = handler

    def get(self, job_type) -> Optional[JobHandler]:
        try:
            return self._handlers.get(JobType(job_type))
        except ValueError:
            return None

    def list(self) -> List[str]:
        return [t.value for t in self._handlers]


def _admit(ctx: HandlerContext, feed_id: str, action: ActionType) -> Optional[ProcessResult]:
    """Check then record one rate-limited action. Returns a failure when denied."""
    status = ctx.limiter.check_limit(feed_id, action)
    if status.allowed:
        status = ctx.limiter.record_action(feed_id, action)
    if status.allowed:
        return None
    logger.info("action_rate_limited", resource_id=feed_id, action_type=action.value,
                blocked_until=status.blocked_until)
    return ProcessResult.fail(
        RATE_LIMIT_ERROR,
        action_type=action.value,
        blocked_until=status.blocked_until,
        remaining_daily=status.remaining_daily,
    )


def _api_failure(e: GraphApiError) -> ProcessResult:
    return ProcessResult.fail(str(e), error_code=e.code, retryable=e.retryable)


def handle_publish_post(job: Job, payload: PublishPostPayload, ctx: HandlerContext) -> ProcessResult:
    if not payload.access_token:
        return ProcessResult.fail(NO_TOKEN_ERROR)

    denied = _admit(ctx, payload.feed_id, ActionType.PUBLISH)
    if denied:
        return denied

    logger.info("publishing_post", job_id=job.id, resource_id=payload.feed_id)
    try:
        media_id = ctx.client.publish_media(
            payload.instagram_user_id,
            payload.access_token,
            payload.media_url,
            caption=payload.caption,
            media_type=payload.media_type,
        )
    except GraphApiError as e:
        return _api_failure(e)

    return ProcessResult.ok(
        media_id=media_id,
        published_at=datetime.now(timezone.utc).isoformat(),
    )


def handle_auto_like(job: Job, payload: AutoLikePayload, ctx: HandlerContext) -> ProcessResult:
    denied = _admit(ctx, payload.feed_id, ActionType.LIKE)
    if denied:
        return denied
    # The Graph API has no like endpoint; the action only counts against quota
    return ProcessResult.ok(media_id=payload.media_id, executed=False,
                            message="Like action recorded (API limitations apply)")


def handle_auto_comment(job: Job, payload: AutoCommentPayload, ctx: HandlerContext) -> ProcessResult:
    if not payload.access_token:
        return ProcessResult.fail(NO_TOKEN_ERROR)

    denied = _admit(ctx, payload.feed_id, ActionType.COMMENT)
    if denied:
        return denied

    try:
        comment_id = ctx.client.post_comment(payload.media_id, payload.comment, payload.access_token)
    except GraphApiError as e:
        return _api_failure(e)
    return ProcessResult.ok(comment_id=comment_id)


def handle_auto_follow(job: Job, payload: AutoFollowPayload, ctx: HandlerContext) -> ProcessResult:
    denied = _admit(ctx, payload.feed_id, ActionType.FOLLOW)
    if denied:
        return denied
    # No follow endpoint either
    return ProcessResult.ok(target_user_id=payload.target_user_id, executed=False,
                            message="Follow action recorded (API limitations apply)")


def handle_welcome_dm(job: Job, payload: WelcomeDMPayload, ctx: HandlerContext) -> ProcessResult:
    if not payload.access_token:
        return ProcessResult.fail(NO_TOKEN_ERROR)

    denied = _admit(ctx, payload.feed_id, ActionType.DM)
    if denied:
        return denied

    try:
        message_id = ctx.client.send_message(payload.recipient_id, payload.message, payload.access_token)
    except GraphApiError as e:
        return _api_failure(e)
    return ProcessResult.ok(message_id=message_id)


def handle_sync_metrics(job: Job, payload: SyncMetricsPayload, ctx: HandlerContext) -> ProcessResult:
    if not payload.access_token:
        return ProcessResult.fail(NO_TOKEN_ERROR)

    try:
        profile = ctx.client.fetch_profile(payload.access_token)
    except GraphApiError as e:
        return _api_failure(e)

    return ProcessResult.ok(
        followers=profile.get("followers_count"),
        following=profile.get("follows_count"),
        posts=profile.get("media_count"),
        synced_at=datetime.now(timezone.utc).isoformat(),
    )


def handle_refresh_token(job: Job, payload: RefreshTokenPayload, ctx: HandlerContext) -> ProcessResult:
    if not payload.access_token:
        return ProcessResult.fail("No token to refresh")

    try:
        out = ctx.client.refresh_access_token(payload.access_token)
    except GraphApiError as e:
        return _api_failure(e)
    return ProcessResult.ok(access_token=out["access_token"], expires_in=out.get("expires_in"))


def register_default_handlers(registry: HandlerRegistry) -> HandlerRegistry:
    registry.register(JobType.PUBLISH_POST, handle_publish_post)
    registry.register(JobType.AUTO_LIKE, handle_auto_like)
    registry.register(JobType.AUTO_COMMENT, handle_auto_comment)
    registry.register(JobType.AUTO_FOLLOW, handle_auto_follow)
    registry.register(JobType.WELCOME_DM, handle_welcome_dm)
    registry.register(JobType.SYNC_METRICS, handle_sync_metrics)
    registry.register(JobType.REFRESH_TOKEN, handle_refresh_token)
    return registry
