from enum import Enum

class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)

class JobType(str, Enum):
    PUBLISH_POST = "PUBLISH_POST"
    AUTO_LIKE = "AUTO_LIKE"
    AUTO_COMMENT = "AUTO_COMMENT"
    AUTO_FOLLOW = "AUTO_FOLLOW"
    WELCOME_DM = "WELCOME_DM"
    SYNC_METRICS = "SYNC_METRICS"
    REFRESH_TOKEN = "REFRESH_TOKEN"

class ActionType(str, Enum):
    LIKE = "LIKE"
    COMMENT = "COMMENT"
    FOLLOW = "FOLLOW"
    UNFOLLOW = "UNFOLLOW"
    DM = "DM"
    PUBLISH = "PUBLISH"
