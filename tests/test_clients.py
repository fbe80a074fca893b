"""Tests for the Gemini and ElevenLabs HTTP clients.

HOW: httpx.MockTransport captures each request so the tests can check
the URL, auth header and body shape, and return canned responses.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from clearnotes.api.elevenlabs import ElevenLabsAPIError, ElevenLabsClient
from clearnotes.api.gemini import GENERATION_CONFIG, GeminiAPIError, GeminiClient, GeminiResponseError
from clearnotes.api.models import GenerateContentResponse

SCHEMA = {"type": "object", "properties": {"processed_text": {"type": "string"}}}


def _candidate_body(text: str) -> dict:
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"},
        ],
    }


def _gemini(handler, **kwargs) -> GeminiClient:
    return GeminiClient(
        api_key="g-key",
        base_url="https://gemini.test/v1beta",
        model="test-model",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def _generate(client: GeminiClient, prompt: str = "[Speaker 0]: hello") -> str:
    async with client:
        return await client.generate(prompt, system_instruction="Rewrite.", response_schema=SCHEMA)


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class TestGeminiClient:

    def test_request_shape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_candidate_body('{"processed_text": "Hello."}'))

        text = asyncio.run(_generate(_gemini(handler)))
        assert text == '{"processed_text": "Hello."}'

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://gemini.test/v1beta/models/test-model:generateContent"
        assert request.headers["x-goog-api-key"] == "g-key"

        body = json.loads(request.content)
        assert body["contents"] == [{"role": "user", "parts": [{"text": "[Speaker 0]: hello"}]}]
        assert body["systemInstruction"] == {"parts": [{"text": "Rewrite."}]}
        assert body["generationConfig"] == dict(GENERATION_CONFIG, responseSchema=SCHEMA)

    def test_generation_config_values(self):
        assert GENERATION_CONFIG["temperature"] == 0.15
        assert GENERATION_CONFIG["topP"] == 0.95
        assert GENERATION_CONFIG["topK"] == 20
        assert GENERATION_CONFIG["maxOutputTokens"] == 8192
        assert GENERATION_CONFIG["responseMimeType"] == "application/json"

    def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="RESOURCE_EXHAUSTED")

        with pytest.raises(GeminiAPIError) as exc_info:
            asyncio.run(_generate(_gemini(handler)))
        assert exc_info.value.status_code == 429
        assert "RESOURCE_EXHAUSTED" in str(exc_info.value)

    def test_blocked_prompt_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(GeminiResponseError, match="SAFETY"):
            asyncio.run(_generate(_gemini(handler)))

    def test_generate_outside_context_manager(self):
        client = _gemini(lambda request: httpx.Response(200))
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(client.generate("x", system_instruction="", response_schema={}))


class TestGenerateContentResponse:

    def test_text_joins_parts_of_first_candidate(self):
        parsed = GenerateContentResponse.from_dict({
            "candidates": [
                {"content": {"parts": [{"text": "a"}, {"text": "b"}]}, "finishReason": "STOP"},
                {"content": {"parts": [{"text": "ignored"}]}},
            ],
        })
        assert parsed.text == "ab"
        assert parsed.candidates[0].finish_reason == "STOP"

    def test_no_candidates(self):
        parsed = GenerateContentResponse.from_dict({})
        assert parsed.candidates == []
        assert parsed.text is None


# ---------------------------------------------------------------------------
# ElevenLabs
# ---------------------------------------------------------------------------


def _elevenlabs(handler) -> ElevenLabsClient:
    return ElevenLabsClient(
        api_key="el-key",
        base_url="https://elevenlabs.test/v1",
        model="scribe_v1",
        transport=httpx.MockTransport(handler),
    )


class TestElevenLabsClient:

    def test_multipart_upload(self):
        seen = []
        transcript = {"language_code": "ita", "text": "ciao", "words": []}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=transcript)

        async def _run():
            async with _elevenlabs(handler) as client:
                return await client.transcribe(b"RIFF....", "lecture.wav", "ita", content_type="audio/wav")

        assert asyncio.run(_run()) == transcript

        request = seen[0]
        assert str(request.url) == "https://elevenlabs.test/v1/speech-to-text"
        assert request.headers["xi-api-key"] == "el-key"
        assert request.headers["content-type"].startswith("multipart/form-data")

        body = request.content
        for name, value in (
            ("model_id", b"scribe_v1"),
            ("language_code", b"ita"),
            ("tag_audio_events", b"true"),
            ("diarize", b"true"),
            ("num_speakers", b"1"),
        ):
            assert 'name="{}"'.format(name).encode() + b"\r\n\r\n" + value in body
        assert b'filename="lecture.wav"' in body
        assert b"Content-Type: audio/wav" in body
        assert b"RIFF...." in body

    def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, text="unsupported format")

        async def _run():
            async with _elevenlabs(handler) as client:
                await client.transcribe(b"x", "a.txt")

        with pytest.raises(ElevenLabsAPIError) as exc_info:
            asyncio.run(_run())
        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "unsupported format"
