"""Merge the deterministic grade with an optional enhanced grade."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from salesgrader.grading.base import DeterministicGrade, Rubric
from salesgrader.transcripts.normalize import Transcript

logger = logging.getLogger(__name__)

MAX_NOTES = 3

SOURCE_DETERMINISTIC = "deterministic"
SOURCE_ENHANCED = "enhanced"
SOURCE_POLICY = "policy"


@dataclass(frozen=True)
class EnhancedGrade:
    total: float
    axes: dict[str, float] = field(default_factory=dict)
    notes: tuple[str, ...] = ()
    model: str = ""


@dataclass(frozen=True)
class FinalGrade:
    total: float
    max_total: float
    axes: dict[str, float] = field(default_factory=dict)
    notes: tuple[str, ...] = ()
    source: str = SOURCE_DETERMINISTIC

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "max_total": self.max_total,
            "axes": dict(self.axes),
            "notes": list(self.notes),
            "source": self.source,
        }


class EnhancedGrader(Protocol):
    name: str

    def grade(self, transcript: Transcript, rubric: Rubric, request_id: str) -> dict[str, object]:
        """Return an enhanced-grade shaped JSON payload."""


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_enhanced_grade(payload: object, model: str = "") -> EnhancedGrade | None:
    """Validate an untrusted enhancement payload; None means fall back."""

    if not isinstance(payload, Mapping):
        return None
    total = payload.get("total")
    if not _is_number(total):
        return None

    raw_axes = payload.get("axes")
    axes: dict[str, float] = {}
    if isinstance(raw_axes, Mapping):
        for key, value in raw_axes.items():
            if isinstance(value, Mapping):
                value = value.get("score")
            if _is_number(value):
                axes[str(key)] = float(value)

    raw_notes = payload.get("notes")
    notes: tuple[str, ...] = ()
    if isinstance(raw_notes, list):
        notes = tuple(str(note) for note in raw_notes if str(note).strip())[:MAX_NOTES]

    return EnhancedGrade(total=float(total), axes=axes, notes=notes, model=model)


def deterministic_notes(grade: DeterministicGrade) -> tuple[str, ...]:
    notes = [result.reasons[0] for result in grade.axes.values() if result.reasons]
    return tuple(notes[:MAX_NOTES])


def merge_grades(deterministic: DeterministicGrade, enhanced: EnhancedGrade | None = None) -> FinalGrade:
    """Enhanced grade replaces the deterministic one outright; axes are never blended."""

    if enhanced is not None:
        return FinalGrade(
            total=enhanced.total,
            max_total=deterministic.max_total,
            axes=dict(enhanced.axes),
            notes=enhanced.notes,
            source=SOURCE_ENHANCED,
        )
    return FinalGrade(
        total=deterministic.total,
        max_total=deterministic.max_total,
        axes={key: result.score for key, result in deterministic.axes.items()},
        notes=deterministic_notes(deterministic),
        source=SOURCE_DETERMINISTIC,
    )


def request_enhanced_grade(
    grader: EnhancedGrader | None,
    transcript: Transcript,
    rubric: Rubric,
    request_id: str,
) -> EnhancedGrade | None:
    """Run the enhancement pass; any failure means no enhancement."""

    if grader is None:
        return None
    try:
        payload = grader.grade(transcript, rubric, request_id)
    except Exception as exc:
        logger.warning(
            "enhanced grade failed; using deterministic grade",
            extra={"request_id": request_id, "stage": "enhance", "grader": grader.name, "error": str(exc)},
        )
        return None

    enhanced = parse_enhanced_grade(payload, model=getattr(grader, "model", grader.name))
    if enhanced is None:
        logger.warning(
            "enhanced grade malformed; using deterministic grade",
            extra={"request_id": request_id, "stage": "enhance", "grader": grader.name},
        )
    return enhanced
