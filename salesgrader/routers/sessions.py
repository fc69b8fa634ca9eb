"""Practice session endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlmodel import Session

from salesgrader.ai.openai_grader import get_enhanced_grader
from salesgrader.db import get_session
from salesgrader.grading.base import RubricNotFound
from salesgrader.grading.rubrics import get_rubric
from salesgrader.models import PracticeSession
from salesgrader.pipeline.grade import apply_session_grade, grade_transcript
from salesgrader.schemas import SessionCreate, SessionRead, SessionResults
from salesgrader.settings import settings
from salesgrader.store import GradingStore
from salesgrader.transcripts.normalize import TranscriptError, normalize_transcript, transcript_to_records

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _to_read(record: PracticeSession) -> SessionRead:
    return SessionRead(
        id=record.id,
        rep_name=record.rep_name,
        persona_name=record.persona_name,
        conversation_id=record.conversation_id,
        rubric_id=record.rubric_id,
        duration_seconds=record.duration_seconds,
        turn_count=len(json.loads(record.transcript_json)),
        created_at=record.created_at,
        overall_score=record.overall_score,
        max_score=record.max_score,
        letter_grade=record.letter_grade,
        outcome=record.outcome,
        grade_source=record.grade_source,
        graded_at=record.graded_at,
    )


def _get_or_404(session: Session, session_id: int) -> PracticeSession:
    record = session.get(PracticeSession, session_id)
    if not record:
        raise HTTPException(status_code=404, detail="Session not found")
    return record


@router.post("", response_model=SessionRead, status_code=201)
def create_session(payload: SessionCreate, session: Session = Depends(get_session)) -> SessionRead:
    rubric_id = payload.rubric_id or settings.default_rubric
    try:
        rubric = get_rubric(rubric_id)
    except RubricNotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not payload.transcript and not payload.conversation_id:
        raise HTTPException(status_code=400, detail="Provide a transcript or a conversation_id")
    try:
        transcript = normalize_transcript(payload.transcript, allow_empty=bool(payload.conversation_id))
    except TranscriptError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = PracticeSession(
        rep_name=payload.rep_name.strip(),
        persona_name=payload.persona_name.strip(),
        conversation_id=payload.conversation_id,
        transcript_json=json.dumps(transcript_to_records(transcript)),
        duration_seconds=payload.duration_seconds,
        rubric_id=rubric.id,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return _to_read(record)


@router.get("/{session_id}", response_model=SessionRead)
def get_practice_session(session_id: int, session: Session = Depends(get_session)) -> SessionRead:
    return _to_read(_get_or_404(session, session_id))


@router.delete("/{session_id}", status_code=204)
def delete_practice_session(session_id: int, session: Session = Depends(get_session)) -> Response:
    record = _get_or_404(session, session_id)
    session.delete(record)
    session.commit()
    GradingStore().delete_session_state(session_id)
    return Response(status_code=204)


@router.post("/{session_id}/grade", response_model=SessionResults)
def grade_practice_session(
    session_id: int,
    rubric: str | None = Query(None),
    session: Session = Depends(get_session),
) -> SessionResults:
    record = _get_or_404(session, session_id)
    try:
        rubric_impl = get_rubric(rubric or record.rubric_id)
        transcript = normalize_transcript(json.loads(record.transcript_json))
    except (RubricNotFound, TranscriptError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    grade = grade_transcript(
        transcript,
        rubric_impl.id,
        persona_name=record.persona_name,
        duration_seconds=record.duration_seconds,
        enhancer=get_enhanced_grader(),
        request_id=f"session-{session_id}",
    )
    apply_session_grade(record, grade)
    session.add(record)
    session.commit()
    session.refresh(record)
    return get_results(session_id, session)


@router.get("/{session_id}/results", response_model=SessionResults)
def get_results(session_id: int, session: Session = Depends(get_session)) -> SessionResults:
    record = _get_or_404(session, session_id)
    return SessionResults(
        session_id=session_id,
        overall_score=record.overall_score,
        letter_grade=record.letter_grade,
        outcome=record.outcome,
        grade=json.loads(record.grade_json) if record.grade_json else None,
        metrics=json.loads(record.metrics_json) if record.metrics_json else None,
        summary=record.summary,
    )
