import time
from typing import Optional

import structlog

from app.models.job import Job
from app.schemas.payloads import JobValidationError, parse_payload
from app.schemas.results import ProcessResult
from app.services.graph_api_client import GraphApiClient
from app.services.job_handlers import HandlerContext, HandlerRegistry, register_default_handlers
from app.services.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

class JobProcessor:
    """Runs one claimed job through the handler for its type.

    process() always returns a ProcessResult: unknown types, bad payloads and
    unexpected handler exceptions all become failed results. Reporting the
    outcome to the queue is the caller's job.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        client: GraphApiClient,
        registry: Optional[HandlerRegistry] = None,
    ):
        self.registry = registry if registry is not None else register_default_handlers(HandlerRegistry())
        self.context = HandlerContext(limiter=limiter, client=client)

    def process(self, job: Job) -> ProcessResult:
        job_type = getattr(job.type, "value", job.type)
        log = logger.bind(job_id=job.id, job_type=job_type, attempt=job.attempts)

        handler = self.registry.get(job.type)
        if handler is None:
            log.warning("job_type_unknown")
            return ProcessResult.fail(f"unknown job type: {job_type}")

        try:
            payload = parse_payload(job.type, job.payload)
        except JobValidationError as e:
            log.warning("job_payload_invalid", error=str(e))
            return ProcessResult.fail(str(e))

        log.info("job_processing")
        t0 = time.time()
        try:
            result = handler(job, payload, self.context)
        except Exception as e:
            log.exception("job_handler_crashed")
            return ProcessResult.fail(str(e) or type(e).__name__)

        exec_ms = int((time.time() - t0) * 1000)
        if result.success:
            log.info("job_processed", execution_time_ms=exec_ms)
        else:
            log.info("job_processing_failed", execution_time_ms=exec_ms, error=result.error)
        return result
