"""Request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from salesgrader.grading.outcome import Outcome
from salesgrader.models import GradingState


class SessionCreate(BaseModel):
    rep_name: str = ""
    persona_name: str = ""
    conversation_id: str | None = None
    transcript: list[dict[str, Any]] = Field(default_factory=list)
    duration_seconds: float | None = Field(default=None, ge=0)
    rubric_id: str | None = None


class SessionRead(BaseModel):
    id: int
    rep_name: str
    persona_name: str
    conversation_id: str | None
    rubric_id: str
    duration_seconds: float | None
    turn_count: int
    created_at: datetime
    overall_score: float | None
    max_score: float | None
    letter_grade: str | None
    outcome: Outcome | None
    grade_source: str | None
    graded_at: datetime | None


class SessionResults(BaseModel):
    session_id: int
    overall_score: float | None
    letter_grade: str | None
    outcome: Outcome | None
    grade: dict[str, Any] | None
    metrics: dict[str, Any] | None
    summary: str | None = None


class GradeTriggerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: int = Field(alias="sessionId")


class GradeTriggerResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    total_batches: int = Field(alias="totalBatches")
    jobs_queued: int = Field(alias="jobsQueued")


class GradingStatusRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: GradingState
    total_batches: int = Field(alias="totalBatches")
    completed_batches: int = Field(alias="completedBatches")


class LineRatingRead(BaseModel):
    line_index: int
    speaker: str
    text: str
    rating: str
    axes_hit: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
