"""Canonicalize raw conversation records into ordered speaker turns."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Numeric timestamps above this are epoch milliseconds, not seconds.
_EPOCH_MS_THRESHOLD = 100_000_000_000

_SPEAKER_ALIASES = {
    "rep": "Rep",
    "user": "Rep",
    "agent": "Rep",
    "salesperson": "Rep",
    "sales_rep": "Rep",
    "seller": "Rep",
    "customer": "Customer",
    "homeowner": "Customer",
    "prospect": "Customer",
    "buyer": "Customer",
    "assistant": "Customer",
    "ai": "Customer",
}


class Speaker(str, Enum):
    REP = "Rep"
    CUSTOMER = "Customer"

    @property
    def counterpart(self) -> "Speaker":
        return Speaker.CUSTOMER if self is Speaker.REP else Speaker.REP


@dataclass(frozen=True)
class Turn:
    speaker: Speaker
    text: str
    timestamp: float | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"speaker": self.speaker.value, "text": self.text}
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload


Transcript = Sequence[Turn]


class TranscriptError(ValueError):
    """Raised when a raw transcript cannot be canonicalized."""


def _parse_speaker(value: object, position: int) -> Speaker:
    if isinstance(value, Speaker):
        return value
    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    canonical = _SPEAKER_ALIASES.get(key)
    if canonical is None:
        raise TranscriptError(f"Turn {position} has unknown speaker {value!r}")
    return Speaker(canonical)


def _parse_timestamp(value: object, position: int) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise TranscriptError(f"Turn {position} has invalid timestamp {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as exc:
                raise TranscriptError(f"Turn {position} has invalid timestamp {value!r}") from exc
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.timestamp()
    if not math.isfinite(seconds):
        raise TranscriptError(f"Turn {position} has invalid timestamp {value!r}")
    if abs(seconds) > _EPOCH_MS_THRESHOLD:
        seconds /= 1000.0
    return seconds


def normalize_turn(raw: object, position: int = 0) -> Turn | None:
    """Return a canonical turn, or None when the record carries no text."""

    if isinstance(raw, Turn):
        return raw if raw.text.strip() else None
    if not isinstance(raw, Mapping):
        raise TranscriptError(f"Turn {position} must be an object, got {type(raw).__name__}")

    text = raw.get("text")
    if text is None:
        text = raw.get("message", raw.get("content"))
    text = str(text or "").strip()
    if not text:
        return None

    speaker = _parse_speaker(raw.get("speaker", raw.get("role")), position)
    timestamp = _parse_timestamp(raw.get("timestamp", raw.get("time")), position)
    return Turn(speaker=speaker, text=text, timestamp=timestamp)


def normalize_transcript(raw: object, *, allow_empty: bool = False) -> tuple[Turn, ...]:
    """Canonicalize a raw turn list, preserving conversational order.

    Records without text are dropped. A record with an unknown speaker or an
    unparseable timestamp rejects the whole transcript.
    """

    if isinstance(raw, Mapping) and "transcript" in raw:
        raw = raw["transcript"]
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise TranscriptError("Transcript must be a list of turns")

    turns: list[Turn] = []
    for position, record in enumerate(raw):
        turn = normalize_turn(record, position)
        if turn is not None:
            turns.append(turn)

    if not turns and not allow_empty:
        raise TranscriptError("Transcript has no turns with text")
    return tuple(turns)


def transcript_to_records(transcript: Transcript) -> list[dict[str, Any]]:
    return [turn.as_dict() for turn in transcript]
