import logging
from typing import Union

import structlog

_CONFIGURED = False


def _level_to_int(level: Union[str, int]) -> int:
    """Accept 'INFO' / 'info' / 20 and return an int level."""
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Union[str, int] = "INFO") -> None:
    """
    Configure stdlib logging + structlog once per process.
    Called from the API startup hook and from the Celery worker.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    lvl = _level_to_int(level)

    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)-7s %(name)s - %(message)s",
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(lvl),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True
