import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.models.enums import JobStatus, JobType
from app.repositories.memory_job_store import InMemoryJobStore
from app.schemas.payloads import JobValidationError
from app.services.job_queue import LEASE_EXPIRED_ERROR, JobQueue

DAY = 24 * 60 * 60


def _like(feed_id="feed-1", media_id="m-1"):
    return {"feed_id": feed_id, "media_id": media_id}


def test_add_job_defaults(job_queue, clock):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())
    job = job_queue.get_job(job_id)

    assert job.status == JobStatus.PENDING
    assert job.attempts == 0
    assert job.max_attempts == 3
    assert job.resource_id == "feed-1"
    assert job.scheduled_for == clock()
    assert job.payload == {"feed_id": "feed-1", "media_id": "m-1"}


def test_add_job_accepts_type_name(job_queue):
    job_id = job_queue.add_job("AUTO_LIKE", _like())
    assert job_queue.get_job(job_id).type == JobType.AUTO_LIKE


@pytest.mark.parametrize(
    "job_type,payload,kwargs",
    [
        ("NOT_A_JOB", _like(), {}),
        (JobType.AUTO_LIKE, {"media_id": "m-1"}, {}),
        (JobType.AUTO_LIKE, {"feed_id": "", "media_id": "m-1"}, {}),
        (JobType.AUTO_LIKE, {**_like(), "surprise": 1}, {}),
        (JobType.PUBLISH_POST, {"feed_id": "feed-1"}, {}),
        (JobType.AUTO_LIKE, _like(), {"max_attempts": 0}),
    ],
)
def test_add_job_rejects_invalid_input(job_queue, job_type, payload, kwargs):
    with pytest.raises(JobValidationError):
        job_queue.add_job(job_type, payload, **kwargs)
    assert job_queue.get_stats().total == 0


def test_validation_error_is_value_error():
    assert issubclass(JobValidationError, ValueError)


def test_claim_marks_processing_and_counts_attempt(job_queue, clock):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())

    job = job_queue.get_next_job()
    assert job.id == job_id
    assert job.status == JobStatus.PROCESSING
    assert job.attempts == 1
    assert job.locked_at == clock()

    assert job_queue.get_next_job() is None


def test_claim_skips_future_jobs(job_queue, clock):
    job_queue.add_job(JobType.AUTO_LIKE, _like(), scheduled_for=clock() + 60)
    assert job_queue.get_next_job() is None

    clock.advance(60)
    assert job_queue.get_next_job() is not None


def test_claim_order(job_queue, clock):
    late = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="late"), scheduled_for=clock() - 10)
    clock.advance(1)
    first_low = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="low"), scheduled_for=clock() - 100)
    clock.advance(1)
    first_high = job_queue.add_job(
        JobType.AUTO_LIKE, _like(media_id="high"), scheduled_for=clock() - 101, priority=5
    )
    clock.advance(1)
    fifo_a = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="a"), scheduled_for=clock() - 50)
    clock.advance(1)
    fifo_b = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="b"), scheduled_for=clock() - 51)

    claimed = []
    while True:
        job = job_queue.get_next_job()
        if job is None:
            break
        claimed.append(job.id)

    # earliest schedule first, then priority, then insertion order
    assert claimed == [first_high, first_low, fifo_a, fifo_b, late]


def test_priority_breaks_ties_then_fifo(job_queue, clock):
    run_at = clock() - 10
    a = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="a"), scheduled_for=run_at)
    clock.advance(1)
    b = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="b"), scheduled_for=run_at)
    clock.advance(1)
    urgent = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="c"), scheduled_for=run_at, priority=10)

    assert job_queue.get_next_job().id == urgent
    assert job_queue.get_next_job().id == a
    assert job_queue.get_next_job().id == b


def test_complete_job(job_queue, clock):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())
    job_queue.get_next_job()
    clock.advance(5)

    assert job_queue.complete_job(job_id, {"media_id": "m-1"}) is True

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.result == {"media_id": "m-1"}
    assert job.completed_at == clock()
    assert job.locked_at is None


def test_complete_requires_processing(job_queue):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())
    assert job_queue.complete_job(job_id) is False
    assert job_queue.fail_job(job_id, "nope") is False
    assert job_queue.get_job(job_id).status == JobStatus.PENDING


def test_unknown_job_id_is_ignored(job_queue):
    assert job_queue.get_job("missing") is None
    assert job_queue.complete_job("missing") is False
    assert job_queue.fail_job("missing", "boom") is False
    assert job_queue.cancel_job("missing") is False


def test_terminal_status_is_final(job_queue):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())
    job_queue.get_next_job()
    assert job_queue.complete_job(job_id, {"ok": 1}) is True

    assert job_queue.fail_job(job_id, "late failure") is False
    assert job_queue.complete_job(job_id, {"ok": 2}) is False

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.result == {"ok": 1}
    assert job.last_error is None


def test_retry_until_attempts_exhausted(job_queue):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like(), max_attempts=3)

    for attempt in (1, 2):
        job = job_queue.get_next_job()
        assert job.attempts == attempt
        assert job_queue.fail_job(job_id, f"boom {attempt}") is True
        retried = job_queue.get_job(job_id)
        assert retried.status == JobStatus.PENDING
        assert retried.last_error == f"boom {attempt}"

    assert job_queue.get_next_job().attempts == 3
    assert job_queue.fail_job(job_id, "boom 3") is True

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.attempts == 3
    assert job.last_error == "boom 3"
    assert job_queue.get_next_job() is None


def test_single_attempt_job_fails_permanently(job_queue):
    job_id = job_queue.add_job(
        JobType.PUBLISH_POST,
        {"feed_id": "feed-1", "media_url": "https://cdn.example.com/a.jpg"},
        max_attempts=1,
    )
    job_queue.get_next_job()
    job_queue.fail_job(job_id, "Media processing failed")

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.attempts == 1


def test_fail_twice_does_not_double_count(job_queue):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like(), max_attempts=2)
    job_queue.get_next_job()

    assert job_queue.fail_job(job_id, "first") is True
    assert job_queue.fail_job(job_id, "second") is False

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.PENDING
    assert job.attempts == 1
    assert job.last_error == "first"


def test_retry_delay_pushes_schedule(job_store, clock):
    queue = JobQueue(job_store, clock=clock, retry_delay_seconds=60)
    job_id = queue.add_job(JobType.AUTO_LIKE, _like())
    queue.get_next_job()
    queue.fail_job(job_id, "boom")

    assert queue.get_job(job_id).scheduled_for == clock() + 60
    assert queue.get_next_job() is None

    clock.advance(60)
    assert queue.get_next_job().attempts == 2


def test_cancel_pending_only(job_queue):
    pending = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="p"))
    running = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="r"), priority=1)
    assert job_queue.get_next_job().id == running

    assert job_queue.cancel_job(pending) is True
    assert job_queue.get_job(pending) is None
    assert job_queue.cancel_job(pending) is False

    assert job_queue.cancel_job(running) is False
    assert job_queue.get_job(running).status == JobStatus.PROCESSING


def test_stats(job_queue):
    done = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="1"), priority=3)
    failed = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="2"), priority=2, max_attempts=1)
    running = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="3"), priority=1)
    job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="4"))

    assert job_queue.get_next_job().id == done
    job_queue.complete_job(done)
    assert job_queue.get_next_job().id == failed
    job_queue.fail_job(failed, "boom")
    assert job_queue.get_next_job().id == running

    stats = job_queue.get_stats()
    assert stats.pending == 1
    assert stats.processing == 1
    assert stats.completed == 1
    assert stats.failed == 1
    assert stats.total == 4


def test_cleanup_only_removes_old_terminal_jobs(job_queue, clock):
    old_pending = job_queue.add_job(
        JobType.AUTO_LIKE, _like(media_id="pending"), scheduled_for=clock() + 30 * DAY
    )
    old_done = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="old"))
    assert job_queue.get_next_job().id == old_done
    job_queue.complete_job(old_done)

    clock.advance(2 * DAY)
    recent_done = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="recent"))
    assert job_queue.get_next_job().id == recent_done
    job_queue.complete_job(recent_done)

    clock.advance(6 * DAY)
    removed = job_queue.cleanup(timedelta(days=7))

    assert removed == 1
    assert job_queue.get_job(old_done) is None
    assert job_queue.get_job(recent_done) is not None
    assert job_queue.get_job(old_pending).status == JobStatus.PENDING


def test_jobs_for_feed_newest_first(job_queue, clock):
    first = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="1"))
    clock.advance(1)
    second = job_queue.add_job(JobType.AUTO_FOLLOW, {"feed_id": "feed-1", "target_user_id": "u-1"})
    clock.advance(1)
    job_queue.add_job(JobType.AUTO_LIKE, _like(feed_id="feed-2"))

    jobs = job_queue.get_jobs_for_feed("feed-1")
    assert [j.id for j in jobs] == [second, first]

    assert [j.id for j in job_queue.get_jobs_for_feed("feed-1", limit=1)] == [second]
    assert job_queue.get_jobs_for_feed("feed-1", status=JobStatus.COMPLETED) == []
    assert [j.id for j in job_queue.get_jobs(job_type=JobType.AUTO_FOLLOW)] == [second]


def test_recover_expired_lease(job_queue, clock):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like())
    job_queue.get_next_job()

    clock.advance(299)
    assert job_queue.recover_stale_jobs(300) == 0

    clock.advance(2)
    assert job_queue.recover_stale_jobs(300) == 1

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.PENDING
    assert job.attempts == 1
    assert job.last_error == LEASE_EXPIRED_ERROR
    assert job.locked_at is None


def test_recover_expired_lease_on_last_attempt(job_queue, clock):
    job_id = job_queue.add_job(JobType.AUTO_LIKE, _like(), max_attempts=1)
    job_queue.get_next_job()
    clock.advance(301)

    job_queue.recover_stale_jobs(300)
    assert job_queue.get_job(job_id).status == JobStatus.FAILED


def test_concurrent_claims_are_exclusive(clock):
    queue = JobQueue(InMemoryJobStore(), clock=clock)
    job_ids = {queue.add_job(JobType.AUTO_LIKE, _like(media_id=str(i))) for i in range(40)}

    claimed = []
    claimed_lock = threading.Lock()

    def worker():
        while True:
            job = queue.get_next_job()
            if job is None:
                return
            with claimed_lock:
                claimed.append(job.id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(claimed) == len(job_ids)
    assert set(claimed) == job_ids


def test_returned_jobs_are_copies(clock):
    queue = JobQueue(InMemoryJobStore(), clock=clock)
    job_id = queue.add_job(JobType.AUTO_LIKE, _like())

    job = queue.get_job(job_id)
    job.status = JobStatus.COMPLETED

    assert queue.get_job(job_id).status == JobStatus.PENDING


def test_naive_schedule_is_utc(job_queue):
    naive = job_queue.add_job(JobType.AUTO_LIKE, _like(), scheduled_for=datetime(2030, 1, 1))
    aware = job_queue.add_job(
        JobType.AUTO_LIKE, _like(), scheduled_for=datetime(2030, 1, 1, tzinfo=timezone.utc)
    )

    assert job_queue.get_job(naive).scheduled_for == 1893456000.0
    assert job_queue.get_job(aware).scheduled_for == 1893456000.0


def test_claim_passes_over_excluded_jobs(job_queue, clock):
    first = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="1"), priority=1)
    second = job_queue.add_job(JobType.AUTO_LIKE, _like(media_id="2"))

    assert job_queue.get_next_job(exclude={first}).id == second
    assert job_queue.get_next_job(exclude={first}) is None
    assert job_queue.get_next_job().id == first
