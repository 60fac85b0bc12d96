import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./automation.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Shared secret for the HTTP cron trigger; empty disables the check
CRON_SECRET = os.getenv("CRON_SECRET", "")

JOB_DEFAULT_MAX_ATTEMPTS = int(os.getenv("JOB_DEFAULT_MAX_ATTEMPTS", "3"))
MAX_JOBS_PER_RUN = int(os.getenv("MAX_JOBS_PER_RUN", "10"))
JOB_LEASE_SECONDS = int(os.getenv("JOB_LEASE_SECONDS", "300"))
# A retry waits delay * attempts before it is claimable again
JOB_RETRY_DELAY_SECONDS = int(os.getenv("JOB_RETRY_DELAY_SECONDS", "60"))
JOB_CLEANUP_DAYS = int(os.getenv("JOB_CLEANUP_DAYS", "7"))

PROCESS_JOBS_INTERVAL_SECONDS = int(os.getenv("PROCESS_JOBS_INTERVAL_SECONDS", "300"))
CLEANUP_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "86400"))

GRAPH_API_URL = os.getenv("GRAPH_API_URL", "https://graph.instagram.com/v21.0")
GRAPH_REFRESH_URL = os.getenv("GRAPH_REFRESH_URL", "https://graph.instagram.com/refresh_access_token")

HTTP_CONNECT_TIMEOUT_S = float(os.getenv("HTTP_CONNECT_TIMEOUT_S", "3.0"))
HTTP_READ_TIMEOUT_S = float(os.getenv("HTTP_READ_TIMEOUT_S", "30.0"))

# Media container polling while publishing
PUBLISH_POLL_INTERVAL_S = float(os.getenv("PUBLISH_POLL_INTERVAL_S", "3.0"))
PUBLISH_MAX_POLLS = int(os.getenv("PUBLISH_MAX_POLLS", "10"))

# Platform action quotas per feed. Hourly sub-limits are off unless configured.
RATE_LIMITS = {
    "LIKE": {
        "daily": int(os.getenv("RATE_LIMIT_LIKE_DAILY", "150")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_LIKE_HOURLY")),
    },
    "COMMENT": {
        "daily": int(os.getenv("RATE_LIMIT_COMMENT_DAILY", "30")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_COMMENT_HOURLY")),
    },
    "FOLLOW": {
        "daily": int(os.getenv("RATE_LIMIT_FOLLOW_DAILY", "50")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_FOLLOW_HOURLY")),
    },
    "UNFOLLOW": {
        "daily": int(os.getenv("RATE_LIMIT_UNFOLLOW_DAILY", "50")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_UNFOLLOW_HOURLY")),
    },
    "DM": {
        "daily": int(os.getenv("RATE_LIMIT_DM_DAILY", "20")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_DM_HOURLY")),
    },
    "PUBLISH": {
        "daily": int(os.getenv("RATE_LIMIT_PUBLISH_DAILY", "25")),
        "hourly": _optional_int(os.getenv("RATE_LIMIT_PUBLISH_HOURLY")),
    },
}
