"""Rule-based rubric detectors and the rubric registry."""

from __future__ import annotations

from salesgrader.grading.base import AxisResult, DeterministicGrade, Rubric, RubricAxis, RubricNotFound
from salesgrader.grading.lexicon import (
    ACKNOWLEDGE_RX,
    ADDRESS_RX,
    CLARIFY_RX,
    CONFIRM_RX,
    GREETING_RX,
    INTRODUCTION_RX,
    NEEDS_RX,
    PRESSURE_RX,
    PRICE_DEFLECTION_RX,
    PRICE_FRAMING_RX,
    PRICE_RX,
    RUDE_RX,
    SAFETY_RX,
    VALUE_RX,
    closing_style,
    is_close_attempt,
    objection_kind,
)
from salesgrader.grading.metrics import count_filler_words, count_interruptions
from salesgrader.transcripts.normalize import Speaker, Transcript, Turn

OBJECTION_WINDOW_TURNS = 5


def _own(transcript: Transcript, speaker: Speaker) -> list[Turn]:
    return [turn for turn in transcript if turn.speaker is speaker]


# door_to_door axes


def detect_opening(transcript: Transcript, speaker: Speaker) -> AxisResult:
    own = _own(transcript, speaker)
    if not own:
        return AxisResult(0, ("No opener delivered; start with a greeting and introduce yourself.",))

    greeted = bool(GREETING_RX.search(own[0].text))
    introduced = any(INTRODUCTION_RX.search(turn.text) for turn in own[:2])
    score = (5 if greeted else 0) + (5 if introduced else 0)

    if greeted and introduced:
        return AxisResult(score, ("Strong opener: greeted the customer and introduced yourself.",))
    reasons = []
    if not introduced:
        reasons.append("Introduce yourself and your company in the first few lines.")
    if not greeted:
        reasons.append("Open with a friendly greeting before the pitch.")
    return AxisResult(score, tuple(reasons))


def detect_discovery(transcript: Transcript, speaker: Speaker) -> AxisResult:
    questions = [turn for turn in _own(transcript, speaker) if "?" in turn.text]
    needs_probe = any(NEEDS_RX.search(turn.text) for turn in questions)
    score = min(16, 4 * len(questions)) + (4 if needs_probe else 0)

    if not questions:
        return AxisResult(0, ("Ask discovery questions to learn what the customer needs.",))
    reasons = [f"Asked {len(questions)} discovery question(s)."]
    if not needs_probe:
        reasons.insert(0, "Probe for specific problems or concerns the customer has noticed.")
    return AxisResult(score, tuple(reasons))


def detect_value(transcript: Transcript, speaker: Speaker) -> AxisResult:
    own = _own(transcript, speaker)
    value_turns = [turn for turn in own if VALUE_RX.search(turn.text)]
    safety = any(SAFETY_RX.search(turn.text) for turn in own)
    score = min(15, 5 * len(value_turns)) + (5 if safety else 0)

    if not value_turns:
        reasons = ["Explain the benefits and results the customer gets from the service."]
    else:
        reasons = [f"Communicated value in {len(value_turns)} line(s)."]
    if not safety:
        reasons.append("Address safety for the family and pets to build trust.")
    return AxisResult(score, tuple(reasons))


def _objection_case_score(window: list[Turn]) -> tuple[int, list[str]]:
    missing: list[str] = []
    steps = 0
    checks = (
        (ACKNOWLEDGE_RX, "Acknowledge the objection before responding."),
        (CLARIFY_RX, "Ask a clarifying question to understand the objection."),
        (ADDRESS_RX, "Address the concern directly with how you handle it."),
        (CONFIRM_RX, "Confirm the concern is resolved before moving on."),
    )
    for pattern, advice in checks:
        if any(pattern.search(turn.text) for turn in window):
            steps += 1
        else:
            missing.append(advice)
    return steps * 5, missing


def detect_objection_handling(transcript: Transcript, speaker: Speaker) -> AxisResult:
    other = speaker.counterpart
    cases: list[tuple[str, int, list[str]]] = []
    for index, turn in enumerate(transcript):
        if turn.speaker is not other:
            continue
        kind = objection_kind(turn.text)
        if kind is None:
            continue
        window = [
            candidate
            for candidate in transcript[index + 1 : index + 1 + OBJECTION_WINDOW_TURNS]
            if candidate.speaker is speaker
        ]
        score, missing = _objection_case_score(window)
        cases.append((kind, score, missing))

    if not cases:
        return AxisResult(10, ("No objections came up; half credit awarded for objection handling.",))

    score = sum(case_score for _, case_score, _ in cases) // len(cases)
    reasons: list[str] = []
    for kind, _, missing in cases:
        if missing:
            reasons.append(f"{kind.replace('_', ' ').capitalize()} objection: {missing[0]}")
    reasons.append(f"Handled {len(cases)} objection(s).")
    return AxisResult(score, tuple(reasons))


def detect_closing(transcript: Transcript, speaker: Speaker) -> AxisResult:
    own = _own(transcript, speaker)
    attempts = [turn for turn in own if is_close_attempt(turn.text)]
    if not attempts:
        return AxisResult(0, ("No close attempted; ask for the appointment before the conversation ends.",))

    style = next((found for found in (closing_style(turn.text) for turn in own) if found), None)
    score = 10
    if len(attempts) >= 2:
        score += 5
    if style in {"assumptive", "alternative"}:
        score += 5

    reasons = [f"Used the {style} close." if style else "Asked for the business."]
    if len(attempts) < 2:
        reasons.append("Make a second close attempt after handling hesitation.")
    return AxisResult(score, tuple(reasons))


def detect_delivery(transcript: Transcript, speaker: Speaker) -> AxisResult:
    own = _own(transcript, speaker)
    if not own:
        return AxisResult(0, ("No lines delivered.",))

    fillers = count_filler_words(" ".join(turn.text for turn in own))
    interruptions = count_interruptions(transcript)
    pressure = any(PRESSURE_RX.search(turn.text) for turn in own)
    rude = any(RUDE_RX.search(turn.text) for turn in own)

    score = 10 - fillers // 3 - interruptions - (3 if pressure else 0) - (3 if rude else 0)
    reasons: list[str] = []
    if rude:
        reasons.append("Keep a respectful tone even when the customer pushes back.")
    if pressure:
        reasons.append("Avoid high-pressure lines; they erode trust.")
    if fillers >= 3:
        reasons.append(f"Cut down on filler words ({fillers} used).")
    if interruptions:
        reasons.append("Let the customer finish speaking before you respond.")
    if not reasons:
        reasons.append("Clear, confident delivery.")
    return AxisResult(score, tuple(reasons))


# quick_pitch axes


def detect_safety(transcript: Transcript, speaker: Speaker) -> AxisResult:
    mentions = sum(1 for turn in _own(transcript, speaker) if SAFETY_RX.search(turn.text))
    if not mentions:
        return AxisResult(0, ("Mention how the treatment is safe for kids and pets.",))
    return AxisResult(3 + (2 if mentions >= 2 else 0), ("Reassured the customer about safety.",))


def detect_quick_value(transcript: Transcript, speaker: Speaker) -> AxisResult:
    value_turns = sum(1 for turn in _own(transcript, speaker) if VALUE_RX.search(turn.text))
    if not value_turns:
        return AxisResult(0, ("State the concrete benefit of the service.",))
    return AxisResult(2 * value_turns, ("Stated the benefit of the service.",))


def detect_time_to_value(transcript: Transcript, speaker: Speaker) -> AxisResult:
    for position, turn in enumerate(_own(transcript, speaker)):
        if VALUE_RX.search(turn.text):
            if position <= 2:
                return AxisResult(5, ("Got to the value quickly.",))
            if position <= 5:
                return AxisResult(3, ("Lead with value sooner; it came after several lines.",))
            return AxisResult(1, ("Value came late; lead with it in your first lines.",))
    return AxisResult(0, ("Never reached the value proposition.",))


def detect_price(transcript: Transcript, speaker: Speaker) -> AxisResult:
    own = _own(transcript, speaker)
    price_turns = [turn for turn in own if PRICE_RX.search(turn.text)]
    if not price_turns:
        return AxisResult(0, ("Be upfront about price instead of avoiding it.",))

    framed = any(PRICE_FRAMING_RX.search(turn.text) for turn in price_turns)
    deflected = any(PRICE_DEFLECTION_RX.search(turn.text) for turn in own)
    score = 2 + (2 if framed else 0) + (0 if deflected else 1)
    if deflected:
        return AxisResult(score, ("Answer price questions directly instead of deflecting.",))
    if not framed:
        return AxisResult(score, ("Frame the price against the value delivered.",))
    return AxisResult(score, ("Presented price clearly and framed it as value.",))


DOOR_TO_DOOR = Rubric(
    id="door_to_door",
    name="Door-to-door service sale",
    axes=(
        RubricAxis("opening", "Opening", 10, detect_opening),
        RubricAxis("discovery", "Discovery", 20, detect_discovery),
        RubricAxis("value", "Value communication", 20, detect_value),
        RubricAxis("objection_handling", "Objection handling", 20, detect_objection_handling),
        RubricAxis("closing", "Closing", 20, detect_closing),
        RubricAxis("delivery", "Delivery", 10, detect_delivery),
    ),
)

QUICK_PITCH = Rubric(
    id="quick_pitch",
    name="Quick pitch",
    axes=(
        RubricAxis("safety", "Safety", 5, detect_safety),
        RubricAxis("value", "Value", 5, detect_quick_value),
        RubricAxis("time", "Time to value", 5, detect_time_to_value),
        RubricAxis("price", "Price clarity", 5, detect_price),
    ),
)

_RUBRICS: dict[str, Rubric] = {rubric.id: rubric for rubric in (DOOR_TO_DOOR, QUICK_PITCH)}


def register_rubric(rubric: Rubric) -> None:
    if rubric.id in _RUBRICS:
        raise ValueError(f"Rubric '{rubric.id}' is already registered")
    _RUBRICS[rubric.id] = rubric


def available_rubrics() -> list[str]:
    return sorted(_RUBRICS)


def get_rubric(rubric_id: str) -> Rubric:
    rubric = _RUBRICS.get(rubric_id.strip().lower())
    if rubric is None:
        raise RubricNotFound(rubric_id, available_rubrics())
    return rubric


def score_transcript(transcript: Transcript, rubric: str | Rubric, speaker: Speaker = Speaker.REP) -> DeterministicGrade:
    """Score each rubric axis independently and sum the clamped axis scores."""

    resolved = rubric if isinstance(rubric, Rubric) else get_rubric(rubric)
    axes: dict[str, AxisResult] = {}
    for axis in resolved.axes:
        result = axis.detector(transcript, speaker)
        score = max(0, min(axis.max_score, int(result.score)))
        axes[axis.key] = AxisResult(score, tuple(result.reasons))
    return DeterministicGrade(
        rubric_id=resolved.id,
        total=sum(result.score for result in axes.values()),
        max_total=resolved.max_total,
        axes=axes,
    )
