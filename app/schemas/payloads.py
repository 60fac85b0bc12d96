"""Typed job payloads, one model per job type.

Payloads are validated when a job is enqueued and again before a handler
runs, so handlers always receive the model for their own job type.
"""

from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.enums import JobType


class JobValidationError(ValueError):
    """Raised for an unknown job type or a malformed payload."""


class BaseJobPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    feed_id: str = Field(min_length=1)
    access_token: Optional[str] = None
    rule_id: Optional[str] = None


class PublishPostPayload(BaseJobPayload):
    media_url: str = Field(min_length=1)
    caption: Optional[str] = None
    media_type: Literal["IMAGE", "VIDEO", "REELS"] = "IMAGE"
    instagram_user_id: str = "me"
    scheduled_post_id: Optional[str] = None


class AutoLikePayload(BaseJobPayload):
    media_id: str = Field(min_length=1)


class AutoCommentPayload(BaseJobPayload):
    media_id: str = Field(min_length=1)
    comment: str = Field(min_length=1)


class AutoFollowPayload(BaseJobPayload):
    target_user_id: str = Field(min_length=1)


class WelcomeDMPayload(BaseJobPayload):
    recipient_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class SyncMetricsPayload(BaseJobPayload):
    pass


class RefreshTokenPayload(BaseJobPayload):
    pass


JobPayload = Union[
    PublishPostPayload,
    AutoLikePayload,
    AutoCommentPayload,
    AutoFollowPayload,
    WelcomeDMPayload,
    SyncMetricsPayload,
    RefreshTokenPayload,
]

PAYLOAD_MODELS: Dict[JobType, Type[BaseJobPayload]] = {
    JobType.PUBLISH_POST: PublishPostPayload,
    JobType.AUTO_LIKE: AutoLikePayload,
    JobType.AUTO_COMMENT: AutoCommentPayload,
    JobType.AUTO_FOLLOW: AutoFollowPayload,
    JobType.WELCOME_DM: WelcomeDMPayload,
    JobType.SYNC_METRICS: SyncMetricsPayload,
    JobType.REFRESH_TOKEN: RefreshTokenPayload,
}


def parse_job_type(value: Any) -> JobType:
    try:
        return JobType(value)
    except ValueError:
        raise JobValidationError(f"unknown job type: {value}")


def parse_payload(job_type: Any, payload: Any) -> JobPayload:
    """Validate `payload` against the model registered for `job_type`."""
    model = PAYLOAD_MODELS[parse_job_type(job_type)]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise JobValidationError(f"invalid payload for {model.__name__}: {e}")
