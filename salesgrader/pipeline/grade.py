"""Session-level grading: metrics, rubric score, enhancement and outcome."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from sqlmodel import Session

from salesgrader import db
from salesgrader.ai.openai_grader import get_enhanced_grader
from salesgrader.grading.aggregate import (
    SOURCE_POLICY,
    EnhancedGrader,
    FinalGrade,
    merge_grades,
    request_enhanced_grade,
)
from salesgrader.grading.base import DeterministicGrade
from salesgrader.grading.lexicon import PROFANITY_RX
from salesgrader.grading.metrics import BasicMetrics, extract_metrics
from salesgrader.grading.outcome import Outcome, classify_outcome, letter_grade
from salesgrader.grading.rubrics import get_rubric, score_transcript
from salesgrader.models import PracticeSession, utcnow
from salesgrader.transcripts.normalize import Speaker, Transcript, normalize_transcript

logger = logging.getLogger(__name__)

INAPPROPRIATE_LANGUAGE_NOTE = "Score set to 0 because the conversation contained inappropriate language."


@dataclass(frozen=True)
class SessionGrade:
    metrics: BasicMetrics
    deterministic: DeterministicGrade
    final: FinalGrade
    outcome: Outcome
    letter_grade: str
    duration_seconds: float
    summary: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "deterministic": self.deterministic.as_dict(),
            "final": self.final.as_dict(),
            "outcome": self.outcome.value,
            "letter_grade": self.letter_grade,
            "duration_seconds": self.duration_seconds,
            "summary": self.summary,
        }


def contains_inappropriate_language(transcript: Transcript, speaker: Speaker = Speaker.REP) -> bool:
    return any(turn.speaker is speaker and PROFANITY_RX.search(turn.text) for turn in transcript)


def _policy_grade(deterministic: DeterministicGrade) -> FinalGrade:
    return FinalGrade(
        total=0,
        max_total=deterministic.max_total,
        axes={key: 0 for key in deterministic.axes},
        notes=(INAPPROPRIATE_LANGUAGE_NOTE,),
        source=SOURCE_POLICY,
    )


def summarize_conversation(metrics: BasicMetrics, final: FinalGrade, outcome: Outcome, duration_seconds: float) -> str:
    """One-line recap, e.g. "44s conversation, successfully closed, 1 objection handled, 95/100 score"."""

    parts = [f"{round(duration_seconds)}s conversation"]
    parts.append("successfully closed" if outcome is Outcome.SUCCESS else "not closed")
    if metrics.objections_raised:
        plural = "s" if metrics.objections_raised > 1 else ""
        parts.append(f"{metrics.objections_raised} objection{plural} handled")
    if metrics.close_attempted:
        parts.append(f"close attempted ({metrics.closing_technique})")
    if metrics.response_pattern != "moderate_responsive":
        parts.append(f"{metrics.response_pattern.replace('_', ' ')} customer")
    parts.append(f"{round(final.total)}/{round(final.max_total)} score")
    return ", ".join(parts)


def grade_transcript(
    transcript: Transcript,
    rubric_id: str,
    persona_name: str | None = None,
    duration_seconds: float | None = None,
    enhancer: EnhancedGrader | None = None,
    request_id: str = "",
) -> SessionGrade:
    rubric = get_rubric(rubric_id)
    metrics = extract_metrics(transcript)
    deterministic = score_transcript(transcript, rubric)

    if contains_inappropriate_language(transcript):
        logger.info("inappropriate language detected; zeroing grade", extra={"request_id": request_id, "stage": "screen"})
        final = _policy_grade(deterministic)
    else:
        enhanced = request_enhanced_grade(enhancer, transcript, rubric, request_id)
        final = merge_grades(deterministic, enhanced)

    duration = duration_seconds if duration_seconds is not None else metrics.duration_seconds
    outcome = classify_outcome(final.total, persona_name, duration)
    logger.info(
        "session graded",
        extra={
            "request_id": request_id,
            "stage": "grade_session",
            "rubric_id": rubric.id,
            "total": final.total,
            "source": final.source,
            "outcome": outcome.value,
        },
    )
    return SessionGrade(
        metrics=metrics,
        deterministic=deterministic,
        final=final,
        outcome=outcome,
        letter_grade=letter_grade(final.total, final.max_total),
        duration_seconds=duration,
        summary=summarize_conversation(metrics, final, outcome, duration),
    )


def apply_session_grade(record: PracticeSession, grade: SessionGrade) -> None:
    record.overall_score = grade.final.total
    record.max_score = grade.final.max_total
    record.letter_grade = grade.letter_grade
    record.outcome = grade.outcome
    record.grade_source = grade.final.source
    record.grade_json = json.dumps(grade.as_dict())
    record.metrics_json = json.dumps(grade.metrics.as_dict())
    record.summary = grade.summary
    record.graded_at = utcnow()


def grade_and_store_session(session_id: int, rubric_id: str | None = None, request_id: str = "") -> SessionGrade | None:
    """Grade a stored session and persist the result; None if the session is gone."""

    with Session(db.engine) as session:
        record = session.get(PracticeSession, session_id)
        if record is None:
            logger.warning("session missing; grade not stored", extra={"request_id": request_id, "session_id": session_id})
            return None

        transcript = normalize_transcript(json.loads(record.transcript_json))
        grade = grade_transcript(
            transcript,
            rubric_id or record.rubric_id,
            persona_name=record.persona_name,
            duration_seconds=record.duration_seconds,
            enhancer=get_enhanced_grader(),
            request_id=request_id,
        )
        apply_session_grade(record, grade)
        session.add(record)
        session.commit()
        return grade
