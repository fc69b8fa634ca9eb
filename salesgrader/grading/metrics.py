"""Heuristic conversation metrics derived from a normalized transcript.

Every function here is total: an empty or sparse transcript yields zero or
empty values rather than an error.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from salesgrader.grading.lexicon import (
    FILLER_RX,
    RAPPORT_RX,
    SALE_CLOSED_RX,
    VALUE_RX,
    is_close_attempt,
    is_resolution,
    objection_kind,
)
from salesgrader.transcripts.normalize import Speaker, Transcript, Turn

SECONDS_PER_TURN_ESTIMATE = 4
INTERRUPTION_MAX_CHARS = 6
RAPPORT_QUESTION_BONUS = 5
RAPPORT_CAP = 20
UTTERANCE_PREVIEW_CHARS = 200
SHORT_RESPONSE_CHARS = 15
DETAILED_RESPONSE_CHARS = 100
CURIOUS_QUESTION_RATE = 0.5
SALE_CLOSED_WINDOW = 2


@dataclass(frozen=True)
class BasicMetrics:
    total_turns: int = 0
    rep_turns: int = 0
    customer_turns: int = 0
    duration_seconds: float = 0.0
    question_count: int = 0
    key_questions: list[str] = field(default_factory=list)
    filler_word_count: int = 0
    interruption_count: int = 0
    objections_raised: int = 0
    objections_resolved: int = 0
    rapport_score: int = 0
    time_to_value_seconds: float = 0.0
    close_attempted: bool = False
    closing_technique: str = ""
    first_customer_utterance: str = ""
    last_customer_utterance: str = ""
    response_pattern: str = "no_response"
    sale_closed: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _timestamps(transcript: Transcript) -> list[float]:
    return [turn.timestamp for turn in transcript if turn.timestamp is not None]


def conversation_duration(transcript: Transcript) -> float:
    stamps = _timestamps(transcript)
    if len(stamps) >= 2:
        return max(0.0, stamps[-1] - stamps[0])
    return float(SECONDS_PER_TURN_ESTIMATE * len(transcript))


def count_filler_words(text: str) -> int:
    return len(FILLER_RX.findall(text))


def count_interruptions(transcript: Transcript) -> int:
    count = 0
    for current, following in zip(transcript, transcript[1:]):
        if (
            current.speaker is Speaker.CUSTOMER
            and following.speaker is Speaker.REP
            and len(current.text.strip()) < INTERRUPTION_MAX_CHARS
        ):
            count += 1
    return count


def time_to_value(transcript: Transcript, duration: float) -> float:
    stamps = _timestamps(transcript)
    timed = len(stamps) >= 2
    for index, turn in enumerate(transcript):
        if turn.speaker is not Speaker.REP or not VALUE_RX.search(turn.text):
            continue
        if timed and turn.timestamp is not None:
            return max(0.0, turn.timestamp - stamps[0])
        return float(index * SECONDS_PER_TURN_ESTIMATE)
    return duration


def response_pattern(transcript: Transcript) -> str:
    """Label how the customer responded: short, curious, detailed or moderate."""

    customer = [turn for turn in transcript if turn.speaker is Speaker.CUSTOMER]
    if not customer:
        return "no_response"
    average_length = sum(len(turn.text) for turn in customer) / len(customer)
    question_rate = sum(1 for turn in customer if "?" in turn.text) / len(customer)
    if average_length < SHORT_RESPONSE_CHARS:
        return "short_dismissive"
    if question_rate > CURIOUS_QUESTION_RATE:
        return "engaged_curious"
    if average_length > DETAILED_RESPONSE_CHARS:
        return "detailed_responsive"
    return "moderate_responsive"


def detect_sale_closed(transcript: Transcript) -> bool:
    customer = [turn for turn in transcript if turn.speaker is Speaker.CUSTOMER]
    final_words = " ".join(turn.text for turn in customer[-SALE_CLOSED_WINDOW:])
    return bool(SALE_CLOSED_RX.search(final_words))


def _preview(turn: Turn | None) -> str:
    if turn is None:
        return ""
    return turn.text[:UTTERANCE_PREVIEW_CHARS]


def extract_metrics(transcript: Transcript) -> BasicMetrics:
    rep = [turn for turn in transcript if turn.speaker is Speaker.REP]
    customer = [turn for turn in transcript if turn.speaker is Speaker.CUSTOMER]

    duration = conversation_duration(transcript)
    key_questions = [turn.text for turn in customer if turn.text.rstrip().endswith("?")]

    rapport = sum(1 for turn in rep if RAPPORT_RX.search(turn.text))
    if len(key_questions) > 2:
        rapport += RAPPORT_QUESTION_BONUS

    close_attempted = any(is_close_attempt(turn.text) for turn in rep)

    return BasicMetrics(
        total_turns=len(transcript),
        rep_turns=len(rep),
        customer_turns=len(customer),
        duration_seconds=duration,
        question_count=len(key_questions),
        key_questions=key_questions,
        filler_word_count=count_filler_words(" ".join(turn.text for turn in rep)),
        interruption_count=count_interruptions(transcript),
        objections_raised=sum(1 for turn in customer if objection_kind(turn.text)),
        objections_resolved=sum(1 for turn in rep if is_resolution(turn.text)),
        rapport_score=min(RAPPORT_CAP, rapport),
        time_to_value_seconds=time_to_value(transcript, duration),
        close_attempted=close_attempted,
        closing_technique="standard" if close_attempted else "",
        first_customer_utterance=_preview(customer[0] if customer else None),
        last_customer_utterance=_preview(customer[-1] if customer else None),
        response_pattern=response_pattern(transcript),
        sale_closed=detect_sale_closed(transcript),
    )
