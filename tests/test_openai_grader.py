from __future__ import annotations

import json

import httpx
import pytest

from salesgrader.ai.openai_grader import (
    MockEnhancedGrader,
    OpenAIEnhancedGrader,
    OpenAIRequestError,
    SchemaBuildError,
    build_enhanced_grade_request,
    build_grade_response_schema,
    build_grading_prompt,
    get_enhanced_grader,
    validate_schema_strictness,
)
from salesgrader.grading.rubrics import get_rubric
from salesgrader.settings import settings
from salesgrader.transcripts.normalize import Speaker, Turn

RUBRIC = get_rubric("quick_pitch")


def test_grade_schema_is_strict_and_lists_rubric_axes() -> None:
    schema = build_grade_response_schema(RUBRIC)

    assert schema["required"] == ["total", "axes", "notes"]
    assert schema["additionalProperties"] is False
    axes = schema["properties"]["axes"]
    assert axes["required"] == ["safety", "value", "time", "price"]
    assert axes["additionalProperties"] is False


def test_validate_schema_strictness_flags_loose_objects() -> None:
    with pytest.raises(SchemaBuildError):
        validate_schema_strictness({"type": "object", "properties": {}})


def test_build_request_uses_json_schema_format() -> None:
    prompt = build_grading_prompt([Turn(Speaker.REP, "Hi there"), Turn(Speaker.CUSTOMER, "Hello?")], RUBRIC)

    payload = build_enhanced_grade_request("gpt-4o-mini", prompt, build_grade_response_schema(RUBRIC))

    assert payload["model"] == "gpt-4o-mini"
    assert payload["input"][0]["content"][0]["text"] == prompt
    assert "Rep: Hi there" in prompt
    assert "safety (Safety): 0 to 5" in prompt
    text_format = payload["text"]["format"]
    assert text_format["type"] == "json_schema"
    assert text_format["strict"] is True


def test_mock_grader_returns_rubric_shaped_payload() -> None:
    payload = MockEnhancedGrader().grade([Turn(Speaker.REP, "Hi")], RUBRIC, "req")

    assert payload["total"] == 16
    assert set(payload["axes"]) == {"safety", "value", "time", "price"}


def test_get_enhanced_grader_selection(monkeypatch) -> None:
    assert get_enhanced_grader() is None

    monkeypatch.setattr(settings, "enhancement_enabled", True)
    assert get_enhanced_grader() is None

    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert isinstance(get_enhanced_grader(), OpenAIEnhancedGrader)

    monkeypatch.setenv("OPENAI_MOCK", "1")
    assert isinstance(get_enhanced_grader(), MockEnhancedGrader)


class _Response:
    def __init__(self, payload: dict) -> None:
        self.output_text = json.dumps(payload)


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class _FakeResponses:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = outcomes
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _FakeClient:
    def __init__(self, outcomes: list) -> None:
        self.responses = _FakeResponses(outcomes)


def _grader(monkeypatch, outcomes: list) -> OpenAIEnhancedGrader:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    grader = OpenAIEnhancedGrader(model="gpt-4o-mini", timeout_seconds=5.0, retry_backoffs_seconds=(0.0, 0.0))
    grader._client = _FakeClient(outcomes)
    return grader


def test_openai_grader_retries_transient_errors(monkeypatch) -> None:
    grader = _grader(monkeypatch, [_StatusError(503), _Response({"total": 12, "axes": {}, "notes": []})])

    payload = grader.grade([Turn(Speaker.REP, "Hi")], RUBRIC, "req-1")

    assert payload["total"] == 12
    calls = grader._client.responses.calls
    assert len(calls) == 2
    assert 0 < calls[1]["timeout"] <= 5.0


def test_openai_grader_raises_after_timeouts(monkeypatch) -> None:
    timeouts = [httpx.ReadTimeout("slow") for _ in range(3)]
    grader = _grader(monkeypatch, timeouts)

    with pytest.raises(OpenAIRequestError) as excinfo:
        grader.grade([Turn(Speaker.REP, "Hi")], RUBRIC, "req-2")

    assert excinfo.value.status_code == 504
    assert len(grader._client.responses.calls) == 3


def test_openai_grader_does_not_retry_client_errors(monkeypatch) -> None:
    grader = _grader(monkeypatch, [_StatusError(400)])

    with pytest.raises(OpenAIRequestError) as excinfo:
        grader.grade([Turn(Speaker.REP, "Hi")], RUBRIC, "req-3")

    assert excinfo.value.status_code == 400
