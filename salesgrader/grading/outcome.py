"""Persona-dependent outcome classification and letter grades."""

from __future__ import annotations

from enum import Enum
from typing import Callable


class Outcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


OutcomeRule = Callable[[float, float], bool]

# First matching keyword wins. Thresholds mix the 0-100 and ~0-140 scales
# used by different persona pools; they are kept as observed.
PERSONA_RULES: tuple[tuple[str, OutcomeRule], ...] = (
    ("decisive", lambda total, duration: total >= 70 and duration < 600),
    ("skeptical", lambda total, duration: total >= 120),
    ("budget", lambda total, duration: total >= 80),
    ("analytical", lambda total, duration: total >= 120),
)


def _default_rule(total: float, duration: float) -> bool:
    return total >= 70


def rule_for_persona(persona_name: str | None) -> OutcomeRule:
    name = (persona_name or "").lower()
    for keyword, rule in PERSONA_RULES:
        if keyword in name:
            return rule
    return _default_rule


def classify_outcome(total: float, persona_name: str | None, duration_seconds: float) -> Outcome:
    rule = rule_for_persona(persona_name)
    return Outcome.SUCCESS if rule(total, duration_seconds) else Outcome.FAILURE


LETTER_BANDS: tuple[tuple[float, str], ...] = (
    (97, "A+"),
    (93, "A"),
    (87, "B+"),
    (83, "B"),
    (77, "C+"),
    (73, "C"),
    (70, "D"),
)


def letter_grade(total: float, max_total: float = 100) -> str:
    if max_total <= 0:
        return "F"
    percent = total * 100.0 / max_total
    for floor, letter in LETTER_BANDS:
        if percent >= floor:
            return letter
    return "F"
