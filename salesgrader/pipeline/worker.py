"""Batch grading job execution."""

from __future__ import annotations

import logging

from salesgrader.grading.lines import rate_batch_lines
from salesgrader.grading.rubrics import get_rubric
from salesgrader.pipeline.grade import grade_and_store_session
from salesgrader.pipeline.queue import GradingJob
from salesgrader.store import BatchCompletion, GradingStore

logger = logging.getLogger(__name__)


def finalize_session(session_id: int, rubric_id: str) -> None:
    try:
        grade_and_store_session(session_id, rubric_id=rubric_id, request_id=f"session-{session_id}")
    except Exception:
        logger.exception("session finalization failed", extra={"session_id": session_id, "stage": "finalize"})


def process_grading_job(job: GradingJob, store: GradingStore | None = None) -> BatchCompletion:
    """Rate one batch and record it; redelivered jobs are no-ops."""

    store = store or GradingStore()
    extra = {"job_id": job.job_id, "session_id": job.session_id, "batch_index": job.batch_index, "stage": "grading_job"}

    if store.has_batch_result(job.session_id, job.batch_index):
        logger.info("batch already graded; skipping", extra=extra)
        return BatchCompletion(recorded=False)

    tracked = store.get_status(job.session_id)
    if tracked is None or tracked.total_batches != job.total_batches:
        logger.warning("job does not match the tracked grading run; dropping", extra=extra)
        return BatchCompletion(recorded=False, dropped=True)

    store.mark_processing(job.session_id)
    rubric = get_rubric(job.rubric_id)
    ratings = rate_batch_lines(job.batch.lines, job.batch.start_line, rubric, job.batch.context)
    result = {
        "batch_index": job.batch_index,
        "start_line": job.batch.start_line,
        "line_count": len(job.batch.lines),
        "rubric_id": rubric.id,
        "rep_name": job.rep_name,
        "line_ratings": [rating.as_dict() for rating in ratings],
    }
    logger.info("batch rated", extra={**extra, "rated_lines": len(ratings)})

    completion = store.record_batch_completion(job.session_id, job.batch_index, result, total_batches=job.total_batches)
    if completion.became_complete:
        logger.info("session grading complete", extra={**extra, "total_batches": completion.total_batches})
        finalize_session(job.session_id, job.rubric_id)
    return completion
