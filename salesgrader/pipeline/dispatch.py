"""Fan a session transcript out into one grading job per batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from salesgrader.grading.rubrics import get_rubric
from salesgrader.models import GradingState
from salesgrader.pipeline.batches import split_into_batches
from salesgrader.pipeline.queue import GradingJob, JobQueue
from salesgrader.settings import settings
from salesgrader.store import GradingConflict, GradingStore, StatusSnapshot
from salesgrader.transcripts.normalize import Transcript, TranscriptError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    total_batches: int
    jobs_queued: int
    status: StatusSnapshot


def dispatch_session_grading(
    session_id: int,
    transcript: Transcript,
    rubric_id: str,
    job_queue: JobQueue,
    store: GradingStore | None = None,
    batch_size: int | None = None,
    rep_name: str = "",
    customer_name: str = "",
) -> DispatchResult:
    """Record the batch count, then enqueue every batch.

    A session that is still in progress has all of its batches enqueued
    again; completed batches are skipped by the worker.
    """

    store = store or GradingStore()
    rubric = get_rubric(rubric_id)
    batches = split_into_batches(transcript, batch_size or settings.batch_size)
    if not batches:
        raise TranscriptError(f"Session {session_id} has no transcript turns to grade")

    status, created = store.begin_grading(session_id, len(batches))
    if not created and status.total_batches != len(batches):
        raise GradingConflict(
            f"Session {session_id} is already tracked with {status.total_batches} batches, not {len(batches)}"
        )
    if status.status is GradingState.COMPLETE:
        logger.info("grading already complete", extra={"session_id": session_id, "stage": "dispatch"})
        return DispatchResult(total_batches=status.total_batches, jobs_queued=0, status=status)

    for batch in batches:
        job_queue.enqueue(
            GradingJob(
                session_id=session_id,
                batch_index=batch.batch_index,
                batch=batch,
                total_batches=len(batches),
                rubric_id=rubric.id,
                rep_name=rep_name,
                customer_name=customer_name,
            )
        )

    logger.info(
        "grading jobs dispatched",
        extra={"session_id": session_id, "stage": "dispatch", "total_batches": len(batches), "redispatch": not created},
    )
    return DispatchResult(total_batches=len(batches), jobs_queued=len(batches), status=status)
