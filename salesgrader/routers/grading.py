"""Batch grading trigger and status polling endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from salesgrader.db import get_session
from salesgrader.grading.base import RubricNotFound
from salesgrader.models import PracticeSession
from salesgrader.pipeline.dispatch import dispatch_session_grading
from salesgrader.pipeline.queue import JobQueue, get_job_queue
from salesgrader.schemas import GradeTriggerRequest, GradeTriggerResponse, GradingStatusRead, LineRatingRead
from salesgrader.store import GradingConflict, GradingStore
from salesgrader.transcripts.normalize import TranscriptError, Turn, normalize_transcript, transcript_to_records
from salesgrader.transcripts.provider import TranscriptProviderError, get_transcript_provider

router = APIRouter(prefix="/grading", tags=["grading"])


def get_grading_store() -> GradingStore:
    return GradingStore()


def _load_transcript(record: PracticeSession, session: Session) -> tuple[Turn, ...]:
    transcript = normalize_transcript(json.loads(record.transcript_json), allow_empty=True)
    if transcript or not record.conversation_id:
        return transcript

    provider = get_transcript_provider()
    if provider is None:
        return transcript
    transcript = provider.fetch(record.conversation_id)
    record.transcript_json = json.dumps(transcript_to_records(transcript))
    session.add(record)
    session.commit()
    return transcript


@router.post("/trigger", response_model=GradeTriggerResponse)
def trigger_grading(
    payload: GradeTriggerRequest,
    session: Session = Depends(get_session),
    job_queue: JobQueue = Depends(get_job_queue),
    store: GradingStore = Depends(get_grading_store),
) -> GradeTriggerResponse:
    record = session.get(PracticeSession, payload.session_id)
    if not record:
        raise HTTPException(status_code=404, detail="Session not found")

    try:
        transcript = _load_transcript(record, session)
    except TranscriptProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except TranscriptError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not transcript:
        raise HTTPException(status_code=400, detail="Session has no transcript to grade")

    try:
        result = dispatch_session_grading(
            payload.session_id,
            transcript,
            rubric_id=record.rubric_id,
            job_queue=job_queue,
            store=store,
            rep_name=record.rep_name,
            customer_name=record.persona_name,
        )
    except (RubricNotFound, TranscriptError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GradingConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return GradeTriggerResponse(success=True, total_batches=result.total_batches, jobs_queued=result.jobs_queued)


@router.get("/{session_id}/status", response_model=GradingStatusRead)
def get_grading_status(session_id: int, store: GradingStore = Depends(get_grading_store)) -> GradingStatusRead:
    status = store.get_status(session_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Grading not started for this session")
    return GradingStatusRead(
        status=status.status,
        total_batches=status.total_batches,
        completed_batches=status.completed_batches,
    )


@router.get("/{session_id}/lines", response_model=list[LineRatingRead])
def get_line_ratings(session_id: int, store: GradingStore = Depends(get_grading_store)) -> list[LineRatingRead]:
    if store.get_status(session_id) is None:
        raise HTTPException(status_code=404, detail="Grading not started for this session")
    ratings: list[LineRatingRead] = []
    for result in store.list_batch_results(session_id):
        ratings.extend(LineRatingRead(**rating) for rating in result.get("line_ratings", []))
    return sorted(ratings, key=lambda rating: rating.line_index)
