from __future__ import annotations

import pytest

from salesgrader.transcripts.normalize import Speaker, TranscriptError, Turn, normalize_transcript


def test_normalize_maps_speaker_aliases_and_text_keys() -> None:
    transcript = normalize_transcript(
        [
            {"speaker": "user", "text": "  Hi there!  "},
            {"role": "homeowner", "message": "Who are you?"},
            {"speaker": "AI", "content": "Go on."},
        ]
    )

    assert transcript == (
        Turn(Speaker.REP, "Hi there!"),
        Turn(Speaker.CUSTOMER, "Who are you?"),
        Turn(Speaker.CUSTOMER, "Go on."),
    )


def test_normalize_drops_blank_turns_and_keeps_order() -> None:
    transcript = normalize_transcript(
        [
            {"speaker": "Rep", "text": "one"},
            {"speaker": "Customer", "text": "   "},
            {"speaker": "Customer", "text": "two"},
        ]
    )

    assert [turn.text for turn in transcript] == ["one", "two"]


def test_normalize_parses_timestamps() -> None:
    transcript = normalize_transcript(
        [
            {"speaker": "Rep", "text": "a", "timestamp": 12},
            {"speaker": "Rep", "text": "b", "timestamp": "1970-01-01T00:01:00Z"},
            {"speaker": "Rep", "text": "c", "timestamp": 1_700_000_000_000},
            {"speaker": "Rep", "text": "d"},
        ]
    )

    assert [turn.timestamp for turn in transcript] == [12.0, 60.0, 1_700_000_000.0, None]


def test_normalize_accepts_wrapped_payload() -> None:
    transcript = normalize_transcript({"transcript": [{"speaker": "rep", "text": "hello"}]})

    assert transcript == (Turn(Speaker.REP, "hello"),)


@pytest.mark.parametrize(
    "raw",
    [
        "not a list",
        [{"speaker": "narrator", "text": "hello"}],
        [{"speaker": "Rep", "text": "hello", "timestamp": "yesterday"}],
        ["plain string turn"],
        [],
    ],
)
def test_normalize_rejects_malformed_transcripts(raw: object) -> None:
    with pytest.raises(TranscriptError):
        normalize_transcript(raw)


def test_normalize_allows_empty_when_requested() -> None:
    assert normalize_transcript([], allow_empty=True) == ()
