"""SQLModel ORM models for practice sessions and grading bookkeeping."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from salesgrader.grading.outcome import Outcome


def utcnow() -> datetime:
    """Return timezone-aware UTC now timestamp."""
    return datetime.now(timezone.utc)


class GradingState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"


class PracticeSession(SQLModel, table=True):
    # Ids are never reused, so jobs from a deleted session cannot reach a new one.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    rep_name: str = ""
    persona_name: str = ""
    conversation_id: Optional[str] = Field(default=None, index=True)
    transcript_json: str = "[]"
    duration_seconds: Optional[float] = None
    rubric_id: str = "door_to_door"
    created_at: datetime = Field(default_factory=utcnow)

    overall_score: Optional[float] = None
    max_score: Optional[float] = None
    letter_grade: Optional[str] = None
    outcome: Optional[Outcome] = None
    grade_source: Optional[str] = None
    grade_json: Optional[str] = None
    metrics_json: Optional[str] = None
    summary: Optional[str] = None
    graded_at: Optional[datetime] = None


class GradingStatus(SQLModel, table=True):
    # No foreign key: batch jobs may outlive a deleted session.
    session_id: int = Field(primary_key=True)
    status: str = Field(default=GradingState.QUEUED.value)
    total_batches: int
    completed_batches: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BatchResult(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("session_id", "batch_index", name="uq_batchresult_session_batch"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(index=True)
    batch_index: int
    line_count: int = 0
    result_json: str = "{}"
    created_at: datetime = Field(default_factory=utcnow)
