"""Rubric interfaces and grade result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from salesgrader.transcripts.normalize import Speaker, Transcript


@dataclass(frozen=True)
class AxisResult:
    score: int
    reasons: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {"score": self.score, "reasons": list(self.reasons)}


AxisDetector = Callable[[Transcript, Speaker], AxisResult]


@dataclass(frozen=True)
class RubricAxis:
    key: str
    label: str
    max_score: int
    detector: AxisDetector


@dataclass(frozen=True)
class Rubric:
    id: str
    name: str
    axes: tuple[RubricAxis, ...]

    @property
    def max_total(self) -> int:
        return sum(axis.max_score for axis in self.axes)

    def axis(self, key: str) -> RubricAxis:
        for axis in self.axes:
            if axis.key == key:
                return axis
        raise KeyError(key)


@dataclass(frozen=True)
class DeterministicGrade:
    rubric_id: str
    total: int
    max_total: int
    axes: dict[str, AxisResult] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "rubric_id": self.rubric_id,
            "total": self.total,
            "max_total": self.max_total,
            "axes": {key: result.as_dict() for key, result in self.axes.items()},
        }


class RubricNotFound(LookupError):
    def __init__(self, rubric_id: str, known: list[str]) -> None:
        self.rubric_id = rubric_id
        super().__init__(f"Unknown rubric '{rubric_id}'. Use one of: {', '.join(known)}")
