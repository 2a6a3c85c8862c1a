"""Background jobs run on threads, with progress reporting and cancellation."""

from __future__ import annotations

import enum
import itertools
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

log = logging.getLogger(__name__)


class Job(enum.Enum):
    OBJ_DIFF = "obj_diff"
    CHECK_UPDATE = "check_update"
    UPDATE = "update"
    CREATE_SCRATCH = "create_scratch"


class JobCancelled(Exception):
    """Raised inside a job when it has been asked to stop."""


@dataclass
class JobStatus:
    title: str
    progress_percent: float = 0.0
    progress_items: Optional[tuple[int, int]] = None
    status: str = ""
    error: Optional[BaseException] = None


@dataclass(eq=False)
class JobContext:
    """Shared between a job's thread and its owner; guard ``status`` with ``lock``."""

    status: JobStatus
    cancel_event: threading.Event = field(default_factory=threading.Event)
    lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


@dataclass(eq=False)
class JobState:
    id: int
    kind: Job
    context: JobContext
    thread: Optional[threading.Thread] = None
    result: Any = None
    should_remove: bool = True

    def cancel(self) -> None:
        self.context.cancel_event.set()


@dataclass
class JobQueue:
    jobs: list[JobState] = field(default_factory=list)
    results: list[Any] = field(default_factory=list)

    def push(self, state: JobState) -> None:
        """Add a job to the queue."""
        self.jobs.append(state)

    def push_once(self, kind: Job, factory: Callable[[], JobState]) -> None:
        """Add a job made by ``factory`` unless a job of this kind is already running."""
        if not self.is_running(kind):
            self.push(factory())

    def is_running(self, kind: Job) -> bool:
        """Whether a job of this kind has not yet been collected."""
        return any(job.kind is kind and job.thread is not None for job in self.jobs)

    def any_running(self) -> bool:
        """Whether any job's thread is still alive."""
        return any(job.thread is not None and job.thread.is_alive() for job in self.jobs)

    def iter_finished(self) -> Iterator[tuple[JobState, Any]]:
        """Collect finished jobs, yielding each with its result."""
        for job in list(self.jobs):
            thread = job.thread
            if thread is None or thread.is_alive():
                continue
            thread.join()
            job.thread = None
            yield job, job.result

    def clear_finished(self) -> None:
        """Drop collected jobs that ended without an error."""

        def keep(job: JobState) -> bool:
            with job.context.lock:
                failed = job.context.status.error is not None
            return not (job.should_remove and job.thread is None and not failed)

        self.jobs = [job for job in self.jobs if keep(job)]

    def remove(self, job_id: int) -> None:
        self.jobs = [job for job in self.jobs if job.id != job_id]


_job_ids = itertools.count()
_job_ids_lock = threading.Lock()


def _next_job_id() -> int:
    with _job_ids_lock:
        return next(_job_ids)


def start_job(title: str, kind: Job, run: Callable[[JobContext], Any]) -> JobState:
    """Run ``run(context)`` on a new thread; an exception it raises becomes the job's error."""
    context = JobContext(JobStatus(title))
    state = JobState(_next_job_id(), kind, context)

    def worker() -> None:
        try:
            state.result = run(context)
        except Exception as exc:  # the job's failure is reported through its status
            with context.lock:
                context.status.error = exc
            state.result = None

    state.thread = threading.Thread(
        target=worker, name=f"job-{state.id}-{kind.value}", daemon=True
    )
    state.thread.start()
    log.info("Started job %d", state.id)
    return state


def update_status(context: JobContext, status: str, count: int, total: int) -> None:
    """Record progress; raise :class:`JobCancelled` if the job was asked to stop."""
    with context.lock:
        current = context.status
        current.progress_items = (count, total)
        current.progress_percent = count / total if total else 0.0
        if context.cancel_event.is_set():
            current.status = "Cancelled"
            raise JobCancelled("Cancelled")
        current.status = status