"""Job queue backends for batch grading jobs."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from salesgrader.pipeline.batches import GradingBatch
from salesgrader.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingJob:
    session_id: int
    batch_index: int
    batch: GradingBatch
    total_batches: int
    rubric_id: str
    rep_name: str = ""
    customer_name: str = ""

    @property
    def job_id(self) -> str:
        return f"{self.session_id}:{self.batch_index}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "batch_index": self.batch_index,
            "batch": self.batch.as_dict(),
            "total_batches": self.total_batches,
            "rubric_id": self.rubric_id,
            "rep_name": self.rep_name,
            "customer_name": self.customer_name,
        }


JobHandler = Callable[[GradingJob], object]


class JobQueue(Protocol):
    def enqueue(self, job: GradingJob) -> None:
        """Deliver the job to a worker at least once."""

    def shutdown(self) -> None:
        """Stop accepting work and release workers."""


def _log_attempt_failure(job: GradingJob, attempt: int, max_attempts: int, exc: Exception) -> None:
    extra = {
        "job_id": job.job_id,
        "session_id": job.session_id,
        "batch_index": job.batch_index,
        "stage": "grading_job",
        "attempt": attempt,
        "max_attempts": max_attempts,
    }
    if attempt >= max_attempts:
        logger.error("grading job exhausted retries: %s", exc, extra=extra)
    else:
        logger.warning("grading job failed; redelivering: %s", exc, extra=extra)


class InlineJobQueue:
    """Runs jobs synchronously in the caller, retrying on failure."""

    def __init__(self, handler: JobHandler, max_attempts: int = 3, retry_backoff_seconds: float = 0.0) -> None:
        self._handler = handler
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

    def enqueue(self, job: GradingJob) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._handler(job)
                return
            except Exception as exc:
                _log_attempt_failure(job, attempt, self._max_attempts, exc)
                if attempt < self._max_attempts and self._retry_backoff_seconds:
                    time.sleep(self._retry_backoff_seconds * attempt)

    def shutdown(self) -> None:
        return None


class ThreadedJobQueue:
    """Fixed pool of daemon worker threads with at-least-once redelivery."""

    def __init__(
        self,
        handler: JobHandler,
        concurrency: int = 3,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self._handler = handler
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._jobs: queue.Queue[tuple[GradingJob, int] | None] = queue.Queue()
        self._workers = [
            threading.Thread(target=self._run, name=f"grading-worker-{index}", daemon=True)
            for index in range(concurrency)
        ]
        for worker in self._workers:
            worker.start()

    def enqueue(self, job: GradingJob) -> None:
        self._jobs.put((job, 1))

    def join(self) -> None:
        """Block until every delivered job, including redeliveries, has settled."""
        self._jobs.join()

    def _run(self) -> None:
        while True:
            item = self._jobs.get()
            try:
                if item is None:
                    return
                job, attempt = item
                try:
                    self._handler(job)
                except Exception as exc:
                    _log_attempt_failure(job, attempt, self._max_attempts, exc)
                    if attempt < self._max_attempts:
                        time.sleep(self._retry_backoff_seconds * attempt)
                        self._jobs.put((job, attempt + 1))
            finally:
                self._jobs.task_done()

    def shutdown(self) -> None:
        for _ in self._workers:
            self._jobs.put(None)
        for worker in self._workers:
            worker.join(timeout=5)


_queue: JobQueue | None = None


def _default_handler(job: GradingJob) -> object:
    from salesgrader.pipeline.worker import process_grading_job

    return process_grading_job(job)


def _create_queue() -> JobQueue:
    backend = settings.queue_backend.lower().strip()
    if backend == "inline":
        return InlineJobQueue(_default_handler, max_attempts=settings.job_max_attempts)
    if backend == "threaded":
        return ThreadedJobQueue(
            _default_handler,
            concurrency=settings.worker_concurrency,
            max_attempts=settings.job_max_attempts,
            retry_backoff_seconds=settings.job_retry_backoff_seconds,
        )
    raise RuntimeError(f"Unknown queue backend '{settings.queue_backend}'. Use one of: inline, threaded")


def get_job_queue() -> JobQueue:
    global _queue
    if _queue is None:
        _queue = _create_queue()
    return _queue


def reset_job_queue() -> None:
    global _queue
    if _queue is not None:
        _queue.shutdown()
    _queue = None
