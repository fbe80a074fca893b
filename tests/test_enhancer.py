"""Tests for the paragraph enhancement loop and response parsing.

HOW: A stub text-generation client replays canned replies; a fake sleep
records retry delays; a generous TokenBucket keeps the limiter out of
the way unless a test is about it.
"""

from __future__ import annotations

import asyncio
import json

import pytest
from conftest import FakeSleep, StubGenerationClient

from clearnotes.core.ir import Paragraph
from clearnotes.enhancement.enhancer import FAILED_PARAGRAPH_FOOTNOTE, ParagraphEnhancer
from clearnotes.enhancement.prompts import (
    SYSTEM_INSTRUCTION,
    EnhancementResponseError,
    build_response_schema,
    parse_enhancement_response,
)
from clearnotes.enhancement.rate_limiter import TokenBucket

PARAGRAPHS = [
    Paragraph(speaker_id="speaker_0", raw_text="[Speaker 0]: ehm so the entropy, ok?", index=0),
    Paragraph(speaker_id="speaker_1", raw_text="[Speaker 1]: um is it clear", index=1),
]


class RecordingLimiter:
    def __init__(self) -> None:
        self.acquired = 0

    async def acquire(self) -> None:
        self.acquired += 1


def _enhancer(client, sleep=None, limiter=None):
    return ParagraphEnhancer(
        client,
        limiter=limiter or TokenBucket(capacity=1000, refill_rate=1000),
        sleep=sleep or FakeSleep(),
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


class TestParseEnhancementResponse:

    def test_plain_json(self):
        data = parse_enhancement_response('{"processed_text": "Hello."}')
        assert data == {"processed_text": "Hello."}

    def test_json_embedded_in_prose(self):
        text = 'Sure! Here it is:\n{"processed_text": "Hi.", "caveats": "unclear word"}\nDone.'
        data = parse_enhancement_response(text)
        assert data["caveats"] == "unclear word"

    def test_no_json_raises(self):
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response("I cannot help with that.")

    def test_broken_json_raises(self):
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response('{"processed_text": "unterminated}')

    def test_wrong_type_raises(self):
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response('{"processed_text": 42}')

    def test_null_caveats_allowed(self):
        data = parse_enhancement_response('{"processed_text": "x", "caveats": null}')
        assert data["caveats"] is None


class TestResponseSchema:

    def test_language_name_in_description(self):
        schema = build_response_schema("ita")
        assert "Italian" in schema["properties"]["processed_text"]["description"]
        assert schema["required"] == ["processed_text"]

    def test_unknown_language_falls_back_to_english(self):
        schema = build_response_schema("xxx")
        assert "English" in schema["properties"]["processed_text"]["description"]


# ---------------------------------------------------------------------------
# enhance()
# ---------------------------------------------------------------------------


class TestEnhance:

    def test_success_rewrites_and_keeps_marker(self):
        client = StubGenerationClient([
            {"processed_text": "So, the entropy."},
            {"processed_text": "Is it clear?"},
        ])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS))
        assert result.paragraphs == [
            "[Speaker 0]: So, the entropy.",
            "[Speaker 1]: Is it clear?",
        ]
        assert result.footnotes == {}
        assert result.text == "[Speaker 0]: So, the entropy. [Speaker 1]: Is it clear?"
        assert all(r.success for r in result.results)

    def test_calls_carry_instruction_and_schema(self):
        client = StubGenerationClient()
        asyncio.run(_enhancer(client).enhance(PARAGRAPHS, language="ita"))
        assert [c["prompt"] for c in client.calls] == [p.raw_text for p in PARAGRAPHS]
        assert client.calls[0]["system_instruction"] == SYSTEM_INSTRUCTION
        assert client.calls[0]["response_schema"] == build_response_schema("ita")

    def test_two_failures_then_success_has_no_footnote(self):
        sleep = FakeSleep()
        client = StubGenerationClient([
            RuntimeError("quota"),
            "not json at all",
            {"processed_text": "Recovered."},
        ])
        result = asyncio.run(_enhancer(client, sleep=sleep).enhance(PARAGRAPHS[:1]))
        assert len(client.calls) == 3
        assert result.paragraphs == ["[Speaker 0]: Recovered."]
        assert result.footnotes == {}
        assert sleep.delays == [60, 60]

    def test_exhausted_retries_fall_back_with_footnote(self):
        client = StubGenerationClient([RuntimeError("down")] * 4)
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS))
        assert len(client.calls) == 5  # 4 for the first paragraph, 1 for the second
        assert result.paragraphs[0] == PARAGRAPHS[0].raw_text
        assert result.results[0].success is False
        assert result.footnotes == {0: [FAILED_PARAGRAPH_FOOTNOTE]}

    def test_caveat_becomes_footnote(self):
        client = StubGenerationClient([
            {"processed_text": "Fine."},
            {"processed_text": "Is it clear?", "caveats": "  'um' could be a name  "},
        ])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS))
        assert result.footnotes == {1: ["'um' could be a name"]}

    @pytest.mark.parametrize("caveat", ["", "   ", "None", None])
    def test_empty_or_none_caveats_are_ignored(self, caveat):
        client = StubGenerationClient([{"processed_text": "Fine.", "caveats": caveat}])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS[:1]))
        assert result.footnotes == {}

    def test_empty_processed_text_uses_original(self):
        client = StubGenerationClient([{"processed_text": ""}])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS[:1]))
        assert result.paragraphs == [PARAGRAPHS[0].raw_text]

    def test_newlines_in_rewrite_are_flattened(self):
        client = StubGenerationClient([{"processed_text": "First line.\n\nSecond line."}])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS[:1]))
        assert result.paragraphs == ["[Speaker 0]: First line. Second line."]

    def test_echoed_marker_is_not_duplicated(self):
        client = StubGenerationClient([{"processed_text": "[Speaker 0]: Echoed."}])
        result = asyncio.run(_enhancer(client).enhance(PARAGRAPHS[:1]))
        assert result.paragraphs == ["[Speaker 0]: Echoed."]

    def test_progress_reported_after_each_paragraph(self):
        paragraphs = [
            Paragraph(speaker_id=None, raw_text="Part {}.".format(i), index=i)
            for i in range(3)
        ]
        seen = []
        asyncio.run(_enhancer(StubGenerationClient()).enhance(paragraphs, seen.append))
        assert seen == [33, 67, 100]

    def test_limiter_acquired_once_per_paragraph(self):
        limiter = RecordingLimiter()
        client = StubGenerationClient([RuntimeError("x"), {"processed_text": "ok"}])
        asyncio.run(_enhancer(client, limiter=limiter).enhance(PARAGRAPHS))
        assert limiter.acquired == 2

    def test_results_keep_input_order_when_speakers_interleave(self):
        paragraphs = [
            Paragraph(speaker_id="speaker_0", raw_text="[Speaker 0]: a", index=0),
            Paragraph(speaker_id="speaker_1", raw_text="[Speaker 1]: b", index=1),
            Paragraph(speaker_id="speaker_0", raw_text="[Speaker 0]: c", index=2),
        ]
        client = StubGenerationClient()
        result = asyncio.run(_enhancer(client).enhance(paragraphs))
        # Processed grouped by speaker
        assert [c["prompt"] for c in client.calls] == [
            "[Speaker 0]: a", "[Speaker 0]: c", "[Speaker 1]: b",
        ]
        # Stored in original order
        assert result.paragraphs == ["[Speaker 0]: A", "[Speaker 1]: B", "[Speaker 0]: C"]

    def test_empty_input(self):
        seen = []
        result = asyncio.run(_enhancer(StubGenerationClient()).enhance([], seen.append))
        assert result.results == []
        assert result.text == ""
        assert seen == []


class TestPassthrough:

    def test_no_client_returns_original_text(self):
        seen = []
        enhancer = ParagraphEnhancer(None)
        result = asyncio.run(enhancer.enhance(PARAGRAPHS, seen.append))
        assert enhancer.enabled is False
        assert result.paragraphs == [p.raw_text for p in PARAGRAPHS]
        assert result.footnotes == {}
        assert seen == [100]

    def test_unexpected_error_degrades_to_passthrough(self):
        class BrokenLimiter:
            async def acquire(self):
                raise RuntimeError("limiter exploded")

        result = asyncio.run(
            _enhancer(StubGenerationClient(), limiter=BrokenLimiter()).enhance(PARAGRAPHS)
        )
        assert result.paragraphs == [p.raw_text for p in PARAGRAPHS]
        assert result.footnotes == {}


def test_default_reply_is_json():
    # Guard for the stub used throughout this module
    reply = asyncio.run(StubGenerationClient().generate(
        "abc", system_instruction="", response_schema={},
    ))
    assert json.loads(reply) == {"processed_text": "ABC"}
