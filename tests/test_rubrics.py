from __future__ import annotations

import pytest

from salesgrader.grading.base import AxisResult, Rubric, RubricAxis, RubricNotFound
from salesgrader.grading.rubrics import available_rubrics, get_rubric, register_rubric, score_transcript
from salesgrader.transcripts.normalize import Speaker, Turn, normalize_transcript


def test_registry_lists_builtin_rubrics() -> None:
    assert available_rubrics() == ["door_to_door", "quick_pitch"]
    assert get_rubric("door_to_door").max_total == 100
    assert get_rubric(" Quick_Pitch ").max_total == 20


def test_unknown_rubric_raises_rubric_not_found() -> None:
    with pytest.raises(RubricNotFound) as excinfo:
        score_transcript([Turn(Speaker.REP, "hi")], "cold_call")

    assert isinstance(excinfo.value, LookupError)
    assert "door_to_door" in str(excinfo.value)


def test_scoring_is_deterministic(sample_records) -> None:
    transcript = normalize_transcript(sample_records)

    for rubric_id in available_rubrics():
        first = score_transcript(transcript, rubric_id)
        second = score_transcript(list(transcript), rubric_id)
        assert first == second
        assert first.as_dict() == second.as_dict()


def test_axis_scores_are_bounded_and_summed(sample_records) -> None:
    transcript = normalize_transcript(sample_records)

    for rubric_id in available_rubrics():
        rubric = get_rubric(rubric_id)
        grade = score_transcript(transcript, rubric)
        assert list(grade.axes) == [axis.key for axis in rubric.axes]
        for axis in rubric.axes:
            result = grade.axes[axis.key]
            assert 0 <= result.score <= axis.max_score
            assert result.reasons
        assert grade.total == sum(result.score for result in grade.axes.values())


def test_sample_conversation_door_to_door_scores(sample_records) -> None:
    grade = score_transcript(normalize_transcript(sample_records), "door_to_door")

    assert {key: result.score for key, result in grade.axes.items()} == {
        "opening": 10,
        "discovery": 20,
        "value": 15,
        "objection_handling": 20,
        "closing": 20,
        "delivery": 10,
    }
    assert grade.total == 95
    assert grade.axes["closing"].reasons[0] == "Used the assumptive close."


def test_sample_conversation_quick_pitch_scores(sample_records) -> None:
    grade = score_transcript(normalize_transcript(sample_records), "quick_pitch")

    assert {key: result.score for key, result in grade.axes.items()} == {
        "safety": 3,
        "value": 4,
        "time": 5,
        "price": 5,
    }
    assert grade.total == 17


def test_empty_transcript_scores_without_error() -> None:
    grade = score_transcript([], "door_to_door")

    assert grade.total == 10
    assert grade.axes["objection_handling"].score == 10


def test_unhandled_objection_scores_zero_with_coaching() -> None:
    transcript = [
        Turn(Speaker.REP, "Hi, I'm Jo with Bright Pest Control."),
        Turn(Speaker.CUSTOMER, "That's too expensive for us."),
        Turn(Speaker.REP, "Okay, bye then."),
    ]

    result = score_transcript(transcript, "door_to_door").axes["objection_handling"]

    assert result.score == 0
    assert result.reasons[0] == "Price objection: Acknowledge the objection before responding."


def test_scorer_clamps_detector_output() -> None:
    def wild(transcript, speaker) -> AxisResult:
        return AxisResult(99, ("Too generous.",))

    def negative(transcript, speaker) -> AxisResult:
        return AxisResult(-4, ())

    rubric = Rubric(
        id="clamp_check",
        name="Clamp check",
        axes=(RubricAxis("high", "High", 5, wild), RubricAxis("low", "Low", 5, negative)),
    )

    grade = score_transcript([Turn(Speaker.REP, "hello")], rubric)

    assert grade.axes["high"].score == 5
    assert grade.axes["low"].score == 0
    assert grade.total == 5


def test_register_rubric_rejects_duplicates() -> None:
    with pytest.raises(ValueError):
        register_rubric(get_rubric("door_to_door"))


def test_scoring_customer_speaker_evaluates_customer_turns() -> None:
    transcript = [Turn(Speaker.CUSTOMER, "Hello! My name is Pat."), Turn(Speaker.REP, "Hi.")]

    grade = score_transcript(transcript, "door_to_door", speaker=Speaker.CUSTOMER)

    assert grade.axes["opening"].score == 10
