"""Async HTTP client for the ElevenLabs speech-to-text API.

WHY: The first step of the pipeline turns an uploaded lecture recording
into a diarized word stream. The service call is a single multipart
upload, wrapped here so routes and the CLI never build requests.

HOW: httpx.AsyncClient as an async context manager. transcribe() posts
the audio with the scribe model, audio-event tagging and diarization
enabled, and returns the service JSON unchanged (it is exactly the
transcript format the pipeline accepts).

RULES:
- Always use the async context manager (async with ElevenLabsClient() as client:)
- Auth header is xi-api-key; the key defaults to load_elevenlabs_api_key()
- tag_audio_events and diarize are always on; num_speakers defaults to 1
- Non-2xx responses raise ElevenLabsAPIError
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from clearnotes.config import (
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL,
    ELEVENLABS_TIMEOUT_S,
    load_elevenlabs_api_key,
)

logger = logging.getLogger(__name__)


class ElevenLabsAPIError(Exception):
    """Raised when the speech-to-text API returns an error response."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"ElevenLabs API error {status_code}: {message}")


class ElevenLabsClient:
    """Async client for ElevenLabs speech-to-text.

    RULES:
    - Use as: async with ElevenLabsClient() as client: ...
    - api_key defaults to load_elevenlabs_api_key() from .env
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_elevenlabs_api_key()
        self._base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self._model = model or ELEVENLABS_MODEL
        self._timeout_s = timeout_s or ELEVENLABS_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ElevenLabsClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"xi-api-key": self._api_key},
            timeout=httpx.Timeout(self._timeout_s, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "ElevenLabsClient must be used as an async context manager: "
                "async with ElevenLabsClient() as client: ..."
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        language_code: str = DEFAULT_TRANSCRIPTION_LANGUAGE,
        num_speakers: int = 1,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        """Transcribe an audio file and return the service JSON.

        Args:
            audio: Raw audio bytes.
            filename: Original file name (sent with the upload).
            language_code: ISO 639-3 language of the recording.
            num_speakers: Expected number of speakers for diarization.
            content_type: MIME type of the upload, if known.

        Returns:
            The transcript dict: language_code, language_probability,
            text and words.

        Raises:
            ElevenLabsAPIError: On a non-2xx response.
        """
        client = self._ensure_client()
        data = {
            "model_id": self._model,
            "language_code": language_code,
            "tag_audio_events": "true",
            "diarize": "true",
            "num_speakers": str(num_speakers),
        }
        upload = (filename, audio, content_type) if content_type else (filename, audio)

        logger.info("Transcribing %s (%d bytes, language=%s)", filename, len(audio), language_code)
        resp = await client.post("/speech-to-text", data=data, files={"file": upload})

        if resp.status_code not in (200, 201):
            raise ElevenLabsAPIError(resp.status_code, resp.text)

        return resp.json()
