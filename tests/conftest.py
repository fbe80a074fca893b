"""Shared test fixtures for the clearnotes test suite.

WHY: Several test modules need the same two-speaker transcript and the
same fake collaborators (text-generation client, PDF compiler, sleep).
Centralizing them keeps every test on identical sample data.

HOW: Module-level builders plus pytest fixtures. The fakes are plain
classes that record their calls; nothing here touches the network or
spawns processes.

RULES:
- SAMPLE_TRANSCRIPT has two speakers, spacing tokens and one audio event
- StubGenerationClient answers from a queue of canned replies; an
  Exception instance in the queue is raised instead of returned
- FakeSleep records delays and never waits
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from clearnotes.pipeline.compiler import CompilationResult


def _tokens(speaker_id: Optional[str], text: str, start: float = 0.0) -> List[Dict[str, Any]]:
    """Split text into word/spacing tokens for one speaker."""
    tokens: List[Dict[str, Any]] = []
    t = start
    for i, word in enumerate(text.split(" ")):
        if i:
            tokens.append({"text": " ", "type": "spacing", "speaker_id": speaker_id, "start": t, "end": t})
        tokens.append({"text": word, "type": "word", "speaker_id": speaker_id, "start": t, "end": t + 0.3})
        t += 0.4
    return tokens


SAMPLE_TRANSCRIPT: Dict[str, Any] = {
    "language_code": "eng",
    "language_probability": 0.98,
    "text": "Good morning everyone. Today we talk about entropy. Is it clear? Yes, very clear.",
    "words": (
        _tokens("speaker_0", "Good morning everyone.", 0.0)
        + [{"text": " ", "type": "spacing", "speaker_id": "speaker_0", "start": 1.2, "end": 1.2}]
        + _tokens("speaker_0", "Today we talk about entropy.", 1.3)
        + [{"text": "(laughter)", "type": "audio_event", "speaker_id": "speaker_0", "start": 3.5, "end": 4.0}]
        + _tokens("speaker_1", "Is it clear?", 4.1)
        + [{"text": " ", "type": "spacing", "speaker_id": "speaker_1", "start": 5.3, "end": 5.3}]
        + _tokens("speaker_1", "Yes, very clear.", 5.4)
    ),
}


class StubGenerationClient:
    """Text-generation client that replays canned replies.

    A reply may be a str (returned as-is), a dict (JSON-encoded) or an
    Exception (raised). When the queue runs dry, the default reply is a
    JSON echo of the prompt in upper case.
    """

    def __init__(self, replies: Optional[List[Any]] = None) -> None:
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, *, system_instruction, response_schema):  # noqa: ANN001
        self.calls.append({
            "prompt": prompt,
            "system_instruction": system_instruction,
            "response_schema": response_schema,
        })
        if self.replies:
            reply = self.replies.pop(0)
        else:
            reply = {"processed_text": prompt.upper()}
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply


class FakeSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeCompiler:
    """PDF compiler that returns fixed bytes or a fixed error."""

    def __init__(self, pdf_bytes: Optional[bytes] = b"%PDF-1.5 fake", error: Optional[str] = None) -> None:
        self.pdf_bytes = pdf_bytes
        self.error = error
        self.sources: List[str] = []

    async def compile(self, latex_source: str) -> CompilationResult:
        self.sources.append(latex_source)
        if self.error is not None:
            return CompilationResult(error=self.error)
        return CompilationResult(pdf_bytes=self.pdf_bytes)


@pytest.fixture
def sample_transcript() -> Dict[str, Any]:
    """The two-speaker transcript dict (a fresh deep copy)."""
    return json.loads(json.dumps(SAMPLE_TRANSCRIPT))


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def stub_client() -> StubGenerationClient:
    return StubGenerationClient()
