"""Split a transcript into fixed-size line batches for parallel grading."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from salesgrader.transcripts.normalize import Transcript, Turn, normalize_transcript, transcript_to_records


@dataclass(frozen=True)
class GradingBatch:
    batch_index: int
    lines: tuple[Turn, ...]
    batch_size: int
    start_line: int = 0
    context: Turn | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "lines": transcript_to_records(self.lines),
            "batch_size": self.batch_size,
            "start_line": self.start_line,
            "context": self.context.as_dict() if self.context else None,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GradingBatch":
        context = payload.get("context")
        return cls(
            batch_index=int(payload["batch_index"]),
            lines=normalize_transcript(payload["lines"]),
            batch_size=int(payload["batch_size"]),
            start_line=int(payload.get("start_line", 0)),
            context=normalize_transcript([context])[0] if context else None,
        )


def split_into_batches(transcript: Transcript, batch_size: int = 5) -> list[GradingBatch]:
    """Partition turns in order; the last batch may be shorter."""

    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    turns = tuple(transcript)
    return [
        GradingBatch(
            batch_index=index,
            lines=turns[start : start + batch_size],
            batch_size=batch_size,
            start_line=start,
            context=turns[start - 1] if start > 0 else None,
        )
        for index, start in enumerate(range(0, len(turns), batch_size))
    ]
