"""Conversation transcript providers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from salesgrader.settings import settings
from salesgrader.transcripts.normalize import Turn, normalize_transcript

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass
class TranscriptProviderError(Exception):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message


class TranscriptProvider(Protocol):
    def fetch(self, conversation_id: str) -> tuple[Turn, ...]:
        """Return the normalized transcript for a conversation."""


class HttpTranscriptProvider:
    """Fetches `{base_url}/conversations/{id}/transcript` with retry and backoff."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 15.0,
        retry_backoffs_seconds: tuple[float, ...] = (1.0, 2.0),
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._retry_backoffs_seconds = retry_backoffs_seconds

    def fetch(self, conversation_id: str) -> tuple[Turn, ...]:
        attempts = len(self._retry_backoffs_seconds) + 1
        for attempt in range(attempts):
            try:
                response = self._client.get(f"/conversations/{conversation_id}/transcript")
            except httpx.TransportError as exc:
                error = TranscriptProviderError(status_code=None, body=str(exc), message=f"Transcript request failed: {exc}")
                retryable = True
            else:
                if response.status_code == 200:
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        raise TranscriptProviderError(
                            status_code=200,
                            body=response.text,
                            message="Transcript provider returned a body that is not JSON",
                        ) from exc
                    return normalize_transcript(payload)
                error = TranscriptProviderError(
                    status_code=response.status_code,
                    body=response.text,
                    message=f"Transcript provider returned {response.status_code}",
                )
                retryable = response.status_code in _RETRYABLE_STATUS

            if retryable and attempt < attempts - 1:
                logger.warning(
                    "transcript fetch retry",
                    extra={
                        "conversation_id": conversation_id,
                        "stage": "fetch_transcript",
                        "attempt": attempt + 1,
                        "status_code": error.status_code,
                    },
                )
                time.sleep(self._retry_backoffs_seconds[attempt])
                continue
            raise error

        raise TranscriptProviderError(status_code=None, body="", message="Transcript request failed")

    def close(self) -> None:
        self._client.close()


_provider: HttpTranscriptProvider | None = None


def get_transcript_provider() -> TranscriptProvider | None:
    global _provider
    if not settings.transcript_provider_url:
        return None
    if _provider is None:
        _provider = HttpTranscriptProvider(
            base_url=settings.transcript_provider_url,
            api_key=settings.transcript_provider_api_key,
            timeout_seconds=settings.transcript_provider_timeout_seconds,
        )
    return _provider


def reset_transcript_provider() -> None:
    global _provider
    if _provider is not None:
        _provider.close()
    _provider = None
