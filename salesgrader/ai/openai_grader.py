"""OpenAI-backed enhanced grading client."""

from __future__ import annotations

import copy
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

import httpx

from salesgrader.grading.aggregate import EnhancedGrader
from salesgrader.grading.base import Rubric
from salesgrader.settings import settings
from salesgrader.transcripts.normalize import Transcript

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 503, 504}


@dataclass
class OpenAIRequestError(Exception):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class SchemaBuildError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


def _base_grade_schema(rubric: Rubric) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "total": {"type": "number"},
            "axes": {
                "type": "object",
                "properties": {axis.key: {"type": "number"} for axis in rubric.axes},
            },
            "notes": {"type": "array", "items": {"type": "string"}},
        },
    }


def _ensure_strict_schema_node(node: object) -> None:
    if isinstance(node, list):
        for item in node:
            _ensure_strict_schema_node(item)
        return

    if not isinstance(node, dict):
        return

    if node.get("type") == "object":
        properties = node.get("properties")
        if not isinstance(properties, dict):
            properties = {}
            node["properties"] = properties
        node["additionalProperties"] = False
        node["required"] = list(properties.keys())

    properties = node.get("properties")
    if isinstance(properties, dict):
        for value in properties.values():
            _ensure_strict_schema_node(value)

    items = node.get("items")
    if items is not None:
        _ensure_strict_schema_node(items)


def validate_schema_strictness(schema: dict[str, Any]) -> None:
    def _walk(node: object, path: str) -> None:
        if isinstance(node, list):
            for idx, item in enumerate(node):
                _walk(item, f"{path}[{idx}]")
            return

        if not isinstance(node, dict):
            return

        if node.get("type") == "object":
            if node.get("additionalProperties") is not False:
                raise SchemaBuildError(f"Object at {path} missing additionalProperties=false")
            if not isinstance(node.get("required"), list):
                raise SchemaBuildError(f"Object at {path} missing required list")

        for key, value in node.items():
            _walk(value, f"{path}.{key}")

    _walk(schema, "schema")


def build_grade_response_schema(rubric: Rubric) -> dict[str, Any]:
    schema = copy.deepcopy(_base_grade_schema(rubric))
    _ensure_strict_schema_node(schema)
    validate_schema_strictness(schema)
    return schema


def build_grading_prompt(transcript: Transcript, rubric: Rubric) -> str:
    axis_lines = "\n".join(f"- {axis.key} ({axis.label}): 0 to {axis.max_score}" for axis in rubric.axes)
    dialogue = "\n".join(f"{turn.speaker.value}: {turn.text}" for turn in transcript)
    return (
        "You are an expert sales coach grading a door-to-door sales practice conversation. "
        "Score the Rep's performance on each rubric axis using the integer range given. "
        f"The total must be the sum of the axis scores, between 0 and {rubric.max_total}. "
        "Return up to 3 short, specific coaching notes addressed to the Rep.\n\n"
        f"Rubric '{rubric.name}':\n{axis_lines}\n\n"
        f"Transcript:\n{dialogue}\n\n"
        "Return ONLY JSON matching the provided schema."
    )


def build_enhanced_grade_request(model: str, prompt: str, schema: dict[str, object]) -> dict[str, object]:
    return {
        "model": model,
        "input": [{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
        "temperature": 0.3,
        "text": {
            "format": {
                "type": "json_schema",
                "name": "enhanced_grade",
                "strict": True,
                "schema": schema,
            }
        },
    }


class OpenAIEnhancedGrader:
    name = "openai"

    def __init__(
        self,
        model: str,
        timeout_seconds: float = 30.0,
        retry_backoffs_seconds: tuple[float, ...] = (1.0, 2.0),
    ) -> None:
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")

        from openai import OpenAI

        self.model = model
        self._client = OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self._timeout_seconds = timeout_seconds
        self._retry_backoffs_seconds = retry_backoffs_seconds

    def _call_openai_with_retry(self, request_payload: dict[str, object], request_id: str) -> dict[str, object]:
        deadline = time.monotonic() + self._timeout_seconds
        backoffs = self._retry_backoffs_seconds
        attempts = len(backoffs) + 1
        for attempt in range(attempts):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise OpenAIRequestError(status_code=504, body="", message="OpenAI request deadline exceeded")
            try:
                response = self._client.responses.create(**request_payload, timeout=remaining)
                return json.loads(response.output_text)
            except json.JSONDecodeError as exc:
                raise OpenAIRequestError(status_code=None, body=str(exc), message="OpenAI returned invalid JSON") from exc
            except Exception as exc:
                status_code = getattr(exc, "status_code", None)
                if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
                    status_code = 504
                response_obj = getattr(exc, "response", None)
                body_text = ""
                if response_obj is not None:
                    body_text = getattr(response_obj, "text", "") or ""
                if not body_text:
                    body_text = str(exc)

                retryable = isinstance(exc, (httpx.TimeoutException, TimeoutError)) or status_code in _RETRYABLE_STATUS
                error = OpenAIRequestError(status_code=status_code, body=body_text, message=f"OpenAI request failed: {exc}")
                has_time = deadline - time.monotonic() > (backoffs[attempt] if attempt < len(backoffs) else 0)

                if retryable and attempt < attempts - 1 and has_time:
                    logger.warning(
                        "enhanced grade openai retry",
                        extra={
                            "request_id": request_id,
                            "stage": "openai_retry",
                            "model": self.model,
                            "attempt": attempt + 1,
                            "status_code": status_code,
                        },
                    )
                    time.sleep(backoffs[attempt])
                    continue
                raise error from exc

        raise OpenAIRequestError(status_code=None, body="Unknown OpenAI error", message="OpenAI request failed")

    def grade(self, transcript: Transcript, rubric: Rubric, request_id: str) -> dict[str, object]:
        request_payload = build_enhanced_grade_request(
            model=self.model,
            prompt=build_grading_prompt(transcript, rubric),
            schema=build_grade_response_schema(rubric),
        )
        started = time.perf_counter()
        payload = self._call_openai_with_retry(request_payload, request_id=request_id)
        logger.info(
            "enhanced grade openai timing",
            extra={
                "request_id": request_id,
                "stage": "call_openai",
                "model": self.model,
                "rubric_id": rubric.id,
                "openai_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return payload


class MockEnhancedGrader:
    name = "mock"
    model = "mock"

    def grade(self, transcript: Transcript, rubric: Rubric, request_id: str) -> dict[str, object]:
        _ = request_id
        axes = {axis.key: round(axis.max_score * 0.8) for axis in rubric.axes}
        return {
            "total": sum(axes.values()),
            "axes": axes,
            "notes": [
                f"Mock review of {len(transcript)} turns.",
                "Slow down when presenting price.",
                "Ask for the appointment twice.",
            ],
        }


def get_enhanced_grader() -> EnhancedGrader | None:
    if os.getenv("OPENAI_MOCK", "").strip() == "1":
        return MockEnhancedGrader()
    if not settings.enhancement_enabled:
        return None
    if not os.getenv("OPENAI_API_KEY", "").strip():
        return None
    return OpenAIEnhancedGrader(
        model=settings.enhancement_model,
        timeout_seconds=settings.enhancement_timeout_seconds,
    )
