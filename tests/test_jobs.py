import threading

import pytest

from objdiff.jobs import (
    Job,
    JobCancelled,
    JobContext,
    JobQueue,
    JobStatus,
    start_job,
    update_status,
)


def _wait(job):
    job.thread.join(timeout=5)
    assert not job.thread.is_alive()


def _blocking_job(kind, gate):
    return start_job("Blocking", kind, lambda ctx: gate.wait(5))


def test_result_is_collected():
    queue = JobQueue()
    job = start_job("Sum", Job.OBJ_DIFF, lambda ctx: 1 + 2)
    queue.push(job)
    _wait(job)
    finished = list(queue.iter_finished())
    assert finished == [(job, 3)]
    assert job.thread is None


def test_error_is_stored_in_status():
    queue = JobQueue()

    def fail(ctx):
        raise ValueError("boom")

    job = start_job("Fail", Job.CREATE_SCRATCH, fail)
    queue.push(job)
    _wait(job)
    assert list(queue.iter_finished()) == [(job, None)]
    assert isinstance(job.context.status.error, ValueError)
    assert str(job.context.status.error) == "boom"


def test_clear_finished_keeps_failed_jobs():
    queue = JobQueue()

    def fail(ctx):
        raise RuntimeError("broken")

    ok = start_job("Ok", Job.OBJ_DIFF, lambda ctx: None)
    bad = start_job("Bad", Job.UPDATE, fail)
    queue.push(ok)
    queue.push(bad)
    _wait(ok)
    _wait(bad)
    list(queue.iter_finished())
    queue.clear_finished()
    assert queue.jobs == [bad]


def test_clear_finished_respects_should_remove():
    queue = JobQueue()
    job = start_job("Keep", Job.OBJ_DIFF, lambda ctx: None)
    job.should_remove = False
    queue.push(job)
    _wait(job)
    list(queue.iter_finished())
    queue.clear_finished()
    assert queue.jobs == [job]


def test_clear_finished_keeps_uncollected_jobs():
    queue = JobQueue()
    job = start_job("Done", Job.OBJ_DIFF, lambda ctx: None)
    queue.push(job)
    _wait(job)
    queue.clear_finished()
    assert queue.jobs == [job]


def test_is_running_and_push_once():
    queue = JobQueue()
    gate = threading.Event()
    first = _blocking_job(Job.OBJ_DIFF, gate)
    queue.push(first)
    try:
        assert queue.is_running(Job.OBJ_DIFF)
        assert not queue.is_running(Job.CHECK_UPDATE)
        assert queue.any_running()
        queue.push_once(Job.OBJ_DIFF, lambda: _blocking_job(Job.OBJ_DIFF, gate))
        assert queue.jobs == [first]
        queue.push_once(Job.CHECK_UPDATE, lambda: start_job("Other", Job.CHECK_UPDATE, lambda c: 7))
        assert [job.kind for job in queue.jobs] == [Job.OBJ_DIFF, Job.CHECK_UPDATE]
    finally:
        gate.set()
    for job in queue.jobs:
        _wait(job)
    assert not queue.any_running()
    list(queue.iter_finished())
    assert not queue.is_running(Job.OBJ_DIFF)


def test_unfinished_job_is_not_yielded():
    queue = JobQueue()
    gate = threading.Event()
    job = _blocking_job(Job.UPDATE, gate)
    queue.push(job)
    try:
        assert list(queue.iter_finished()) == []
        assert job.thread is not None and job.thread.is_alive()
    finally:
        gate.set()
        _wait(job)


def test_cancellation_stops_job():
    started = threading.Event()

    def run(ctx):
        started.set()
        ctx.cancel_event.wait(5)
        update_status(ctx, "Working", 1, 2)
        return "finished"

    job = start_job("Cancel me", Job.OBJ_DIFF, run)
    assert started.wait(5)
    job.cancel()
    _wait(job)
    assert job.result is None
    assert isinstance(job.context.status.error, JobCancelled)
    assert job.context.status.status == "Cancelled"


def test_update_status_records_progress():
    context = JobContext(JobStatus("Title"))
    update_status(context, "Working", 1, 4)
    assert context.status.progress_items == (1, 4)
    assert context.status.progress_percent == pytest.approx(0.25)
    assert context.status.status == "Working"


def test_update_status_raises_when_cancelled():
    context = JobContext(JobStatus("Title"))
    context.cancel_event.set()
    with pytest.raises(JobCancelled):
        update_status(context, "Working", 2, 2)
    assert context.status.status == "Cancelled"
    assert context.status.progress_items == (2, 2)


def test_status_starts_with_title():
    job = start_job("Object diff", Job.OBJ_DIFF, lambda ctx: None)
    _wait(job)
    assert job.context.status.title == "Object diff"
    assert job.context.status.error is None


def test_remove_by_id():
    queue = JobQueue()
    a = start_job("A", Job.OBJ_DIFF, lambda ctx: None)
    b = start_job("B", Job.OBJ_DIFF, lambda ctx: None)
    queue.push(a)
    queue.push(b)
    queue.remove(a.id)
    assert queue.jobs == [b]
    _wait(a)
    _wait(b)


def test_job_ids_increase():
    a = start_job("A", Job.OBJ_DIFF, lambda ctx: None)
    b = start_job("B", Job.OBJ_DIFF, lambda ctx: None)
    _wait(a)
    _wait(b)
    assert b.id > a.id