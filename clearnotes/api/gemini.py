"""Async HTTP client for the Gemini generateContent API.

WHY: Paragraph enhancement needs one call per paragraph to a language
model with a system instruction and a JSON response schema. This module
hides the request shape and authentication so the enhancer only sees
generate(prompt) -> str.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GeminiClient is an
async context manager: enter it to open an authenticated connection
pool, exit to close it. Each generate() call is stateless (no chat
history).

RULES:
- Always use the async context manager (async with GeminiClient() as client:)
- Auth header is x-goog-api-key; the key defaults to load_gemini_api_key()
- Generation config is fixed: temperature 0.15, topP 0.95, topK 20,
  maxOutputTokens 8192, JSON response MIME type
- Non-2xx responses raise GeminiAPIError
- A response without candidate text raises GeminiResponseError
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from clearnotes.api.models import GenerateContentResponse
from clearnotes.config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    GEMINI_TIMEOUT_S,
    load_gemini_api_key,
)

logger = logging.getLogger(__name__)

GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.15,
    "topP": 0.95,
    "topK": 20,
    "maxOutputTokens": 8192,
    "responseMimeType": "application/json",
}


class GeminiAPIError(Exception):
    """Raised when the Gemini API returns an error response.

    RULES:
    - Always include status_code and message
    - message is the response body text
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Gemini API error {status_code}: {message}")


class GeminiResponseError(Exception):
    """Raised when a 2xx response carries no usable candidate text."""


class GeminiClient:
    """Async client for Gemini's generateContent endpoint.

    RULES:
    - Use as: async with GeminiClient() as client: ...
    - api_key defaults to load_gemini_api_key() from .env
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
        self._api_key = api_key or load_gemini_api_key()
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._model = model or GEMINI_MODEL
        self._timeout_s = timeout_s or GEMINI_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> GeminiClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key},
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
                "GeminiClient must be used as an async context manager: "
                "async with GeminiClient() as client: ..."
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str,
        response_schema: dict[str, Any],
    ) -> str:
        """Send one prompt and return the first candidate's text.

        Args:
            prompt: User content (the paragraph to rewrite).
            system_instruction: Fixed instruction sent with every call.
            response_schema: Service-side JSON schema for the reply.

        Returns:
            The raw text of the first candidate (expected to be JSON).

        Raises:
            GeminiAPIError: On a non-2xx response.
            GeminiResponseError: When no candidate text is returned.
        """
        client = self._ensure_client()
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": dict(GENERATION_CONFIG, responseSchema=response_schema),
        }

        resp = await client.post(f"/models/{self._model}:generateContent", json=body)
        if resp.status_code != 200:
            raise GeminiAPIError(resp.status_code, resp.text)

        parsed = GenerateContentResponse.from_dict(resp.json())
        text = parsed.text
        if text is None:
            reason = parsed.block_reason or "no candidates"
            raise GeminiResponseError(f"Gemini returned no text ({reason})")

        logger.debug("Gemini response: %d chars", len(text))
        return text
