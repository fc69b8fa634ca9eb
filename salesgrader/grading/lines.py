"""Per-line ratings built from the rubric axis detectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from salesgrader.grading.base import Rubric
from salesgrader.grading.lexicon import objection_kind
from salesgrader.grading.rubrics import score_transcript
from salesgrader.transcripts.normalize import Speaker, Turn

EXCELLENT = "excellent"
GOOD = "good"
POOR = "poor"
MISSED_OPPORTUNITY = "missed_opportunity"


@dataclass(frozen=True)
class LineRating:
    line_index: int
    speaker: Speaker
    text: str
    rating: str
    axes_hit: tuple[str, ...] = ()
    reasons: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "line_index": self.line_index,
            "speaker": self.speaker.value,
            "text": self.text,
            "rating": self.rating,
            "axes_hit": list(self.axes_hit),
            "reasons": list(self.reasons),
        }


def _needs_response(turn: Turn | None) -> bool:
    if turn is None or turn.speaker is not Speaker.CUSTOMER:
        return False
    return turn.text.rstrip().endswith("?") or objection_kind(turn.text) is not None


def rate_line(turn: Turn, line_index: int, rubric: Rubric, context: Turn | None = None) -> LineRating:
    """Rate one rep line against the rubric, using the prior turn as context.

    An axis counts as hit when the line scores above a blank rep line in the
    same position, so fixed credit and penalty-only axes never count.
    """

    blank = Turn(Speaker.REP, "")
    window = (context, turn) if context is not None else (turn,)
    baseline_window = (context, blank) if context is not None else (blank,)
    grade = score_transcript(window, rubric, Speaker.REP)
    baseline = score_transcript(baseline_window, rubric, Speaker.REP)

    hits = tuple(key for key, result in grade.axes.items() if result.score > baseline.axes[key].score)
    reasons = tuple(grade.axes[key].reasons[0] for key in hits if grade.axes[key].reasons)

    if len(hits) >= 2:
        rating = EXCELLENT
    elif hits:
        rating = GOOD
    elif _needs_response(context):
        rating = MISSED_OPPORTUNITY
        reasons = ("The customer raised a question or concern that this line did not address.",)
    else:
        rating = POOR
    return LineRating(line_index, turn.speaker, turn.text, rating, hits, reasons)


def rate_batch_lines(lines: tuple[Turn, ...], start_line: int, rubric: Rubric, context: Turn | None = None) -> list[LineRating]:
    """Rate every rep line in a batch; customer lines carry no rating."""

    ratings: list[LineRating] = []
    previous = context
    for offset, turn in enumerate(lines):
        if turn.speaker is Speaker.REP:
            ratings.append(rate_line(turn, start_line + offset, rubric, previous))
        previous = turn
    return ratings
