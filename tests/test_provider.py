from __future__ import annotations

import httpx
import pytest

from salesgrader.settings import settings
from salesgrader.transcripts.normalize import Speaker, Turn
from salesgrader.transcripts.provider import (
    HttpTranscriptProvider,
    TranscriptProviderError,
    get_transcript_provider,
    reset_transcript_provider,
)


def _provider(handler) -> HttpTranscriptProvider:
    return HttpTranscriptProvider(
        base_url="https://voice.example.com/api/",
        api_key="secret",
        retry_backoffs_seconds=(0.0, 0.0),
        transport=httpx.MockTransport(handler),
    )


def test_fetch_retries_transient_failures_then_normalizes() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, text="warming up")
        return httpx.Response(200, json={"transcript": [{"speaker": "user", "text": "Hi!", "timestamp": 3}]})

    transcript = _provider(handler).fetch("conv-9")

    assert transcript == (Turn(Speaker.REP, "Hi!", 3.0),)
    assert len(calls) == 2
    assert calls[0].url.path == "/api/conversations/conv-9/transcript"
    assert calls[0].headers["Authorization"] == "Bearer secret"


def test_fetch_does_not_retry_missing_conversations() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404, text="not found")

    with pytest.raises(TranscriptProviderError) as excinfo:
        _provider(handler).fetch("missing")

    assert excinfo.value.status_code == 404
    assert len(calls) == 1


def test_fetch_gives_up_after_repeated_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TranscriptProviderError) as excinfo:
        _provider(handler).fetch("conv-1")

    assert excinfo.value.status_code is None


def test_provider_is_only_built_when_configured(monkeypatch) -> None:
    assert get_transcript_provider() is None

    monkeypatch.setattr(settings, "transcript_provider_url", "https://voice.example.com")

    assert isinstance(get_transcript_provider(), HttpTranscriptProvider)


def test_fetch_rejects_a_body_that_is_not_json() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(TranscriptProviderError) as excinfo:
        _provider(handler).fetch("conv-3")

    assert excinfo.value.status_code == 200
    assert excinfo.value.body == "<html>oops</html>"
    assert len(calls) == 1


def test_provider_is_shared_until_reset(monkeypatch) -> None:
    monkeypatch.setattr(settings, "transcript_provider_url", "https://voice.example.com")

    first = get_transcript_provider()
    assert get_transcript_provider() is first

    reset_transcript_provider()

    assert first._client.is_closed
    assert get_transcript_provider() is not first
