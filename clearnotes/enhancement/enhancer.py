"""Rate-limited, retrying paragraph enhancement with progress reporting.

WHY: Each paragraph is sent to a language model that rewrites the
spoken excerpt into readable prose. The service is rate limited and
occasionally returns errors or malformed JSON, yet one bad paragraph
must never sink the whole document.

HOW: Paragraphs are processed grouped by speaker marker (first-seen
order), one stateless call each. Every call first takes a token from the
run's TokenBucket, then goes through retry_async. Successful responses
are parsed and validated; exhausted retries fall back to the original
text with a footnote. Progress is reported after every paragraph.

RULES:
- Up to MAX_RETRIES retries with a fixed RETRY_DELAY_S delay
- Failure footnote: "Failed to process paragraph after multiple retries."
- A caveat that is blank or the literal "None" is not a footnote
- Results are stored by paragraph index, so output order never changes
- on_progress receives round(processed / total * 100) after each paragraph
- No client configured → passthrough: original text, no footnotes
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Dict, List, Optional, Protocol

from clearnotes.config import (
    DEFAULT_DOCUMENT_LANGUAGE,
    MAX_RETRIES,
    RATE_LIMIT_PER_MINUTE,
    RETRY_DELAY_S,
)
from clearnotes.core.ir import EnhancedTranscript, EnhancementResult, Paragraph
from clearnotes.core.segmenter import split_speaker_marker
from clearnotes.enhancement.prompts import (
    SYSTEM_INSTRUCTION,
    build_response_schema,
    parse_enhancement_response,
)
from clearnotes.enhancement.rate_limiter import TokenBucket
from clearnotes.enhancement.retry import retry_async

logger = logging.getLogger(__name__)

FAILED_PARAGRAPH_FOOTNOTE = "Failed to process paragraph after multiple retries."

ProgressCallback = Callable[[int], None]

_LINE_BREAK_RE = re.compile(r"\s*\n\s*")


class TextGenerationClient(Protocol):
    """What the enhancer needs from a text-generation service."""

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str,
        response_schema: Dict[str, Any],
    ) -> str:
        ...


def _normalize_caveat(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    caveat = value.strip()
    if not caveat or caveat == "None":
        return None
    return caveat


def _keep_speaker_marker(paragraph: Paragraph, processed: str) -> str:
    """Make sure the rewritten text carries the paragraph's speaker marker.

    The renderer groups by "[Speaker N]:" markers and splits on newlines,
    so the marker is re-applied if the model dropped or altered it and
    line breaks inside the rewrite are flattened.
    """
    processed = _LINE_BREAK_RE.sub(" ", processed).strip()
    label, _ = split_speaker_marker(paragraph.raw_text)
    if label is None:
        return processed
    _, body = split_speaker_marker(processed)
    return "[Speaker {}]: {}".format(label, body)


class ParagraphEnhancer:
    """Enhance paragraphs through a text-generation client.

    Args:
        client: Text-generation client, or None for passthrough.
        limiter: Token bucket for this run; a fresh one is created if omitted.
        max_retries: Retries after the first attempt.
        retry_delay_s: Fixed delay between attempts.
        sleep: Awaitable sleep used for retry backoff (tests inject a fake).
    """

    def __init__(
        self,
        client: Optional[TextGenerationClient],
        *,
        limiter: Optional[TokenBucket] = None,
        max_retries: int = MAX_RETRIES,
        retry_delay_s: float = RETRY_DELAY_S,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._limiter = limiter or TokenBucket.per_minute(RATE_LIMIT_PER_MINUTE)
        self._max_retries = max_retries
        self._retry_delay_s = retry_delay_s
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def enhance(
        self,
        paragraphs: Sequence[Paragraph],
        on_progress: Optional[ProgressCallback] = None,
        language: str = DEFAULT_DOCUMENT_LANGUAGE,
    ) -> EnhancedTranscript:
        """Enhance every paragraph and collect footnotes.

        Returns:
            EnhancedTranscript whose results align with ``paragraphs`` and
            whose footnotes are keyed by Paragraph.index.
        """
        report = on_progress or (lambda _pct: None)

        if self._client is None:
            logger.error("No text-generation client configured; returning original paragraphs")
            if paragraphs:
                report(100)
            return _passthrough(paragraphs)

        schema = build_response_schema(language)
        positions = {p.index: pos for pos, p in enumerate(paragraphs)}
        results: List[Optional[EnhancementResult]] = [None] * len(paragraphs)
        footnotes: Dict[int, List[str]] = {}
        total = len(paragraphs)
        processed = 0

        try:
            for paragraph in _grouped_by_speaker(paragraphs):
                await self._limiter.acquire()
                result = await self._enhance_one(paragraph, schema, total)

                results[positions[paragraph.index]] = result
                if result.caveat:
                    footnotes[paragraph.index] = [result.caveat]

                processed += 1
                report(round(processed / total * 100))
        except Exception:
            logger.exception("Paragraph enhancement aborted; returning original paragraphs")
            return _passthrough(paragraphs)

        return EnhancedTranscript(
            results=[r for r in results if r is not None],
            footnotes=footnotes,
        )

    async def _enhance_one(
        self,
        paragraph: Paragraph,
        schema: Dict[str, Any],
        total: int,
    ) -> EnhancementResult:
        client = self._client
        assert client is not None
        number = paragraph.index + 1

        async def _attempt() -> Dict[str, Any]:
            text = await client.generate(
                paragraph.raw_text,
                system_instruction=SYSTEM_INSTRUCTION,
                response_schema=schema,
            )
            return parse_enhancement_response(text)

        def _log_retry(attempt: int, error: BaseException) -> None:
            logger.error(
                "Error processing paragraph %d/%d, retrying (%d/%d) after %ss: %s",
                number, total, attempt, self._max_retries, self._retry_delay_s, error,
            )

        outcome = await retry_async(
            _attempt,
            retries=self._max_retries,
            delay_s=self._retry_delay_s,
            sleep=self._sleep,
            on_retry=_log_retry,
        )

        if not outcome.success:
            logger.error(
                "All retries failed for paragraph %d: %s. Using original text.",
                number, outcome.error,
            )
            return EnhancementResult(
                success=False,
                enhanced_text=paragraph.raw_text,
                caveat=FAILED_PARAGRAPH_FOOTNOTE,
            )

        data = outcome.value or {}
        processed_text = data.get("processed_text") or paragraph.raw_text
        caveat = _normalize_caveat(data.get("caveats"))
        if caveat:
            logger.warning("Paragraph %d has caveats: %r", number, caveat)

        return EnhancementResult(
            success=True,
            enhanced_text=_keep_speaker_marker(paragraph, processed_text),
            caveat=caveat,
        )


def _grouped_by_speaker(paragraphs: Sequence[Paragraph]) -> List[Paragraph]:
    """Order paragraphs by speaker marker, first-seen speaker first.

    Segmentation already emits paragraphs speaker by speaker, so this is
    the identity for segmenter output; it matters for hand-built input.
    """
    groups: Dict[Optional[str], List[Paragraph]] = {}
    for paragraph in paragraphs:
        label, _ = split_speaker_marker(paragraph.raw_text)
        groups.setdefault(label, []).append(paragraph)
    return [p for group in groups.values() for p in group]


def _passthrough(paragraphs: Sequence[Paragraph]) -> EnhancedTranscript:
    return EnhancedTranscript(
        results=[
            EnhancementResult(success=False, enhanced_text=p.raw_text)
            for p in paragraphs
        ],
        footnotes={},
    )
