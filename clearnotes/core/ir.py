"""Intermediate representation dataclasses for transcripts and paragraphs.

WHY: The speech-to-text service returns a flat word stream; the
enhancement step works on paragraphs; the LaTeX renderer needs the
enhanced text plus footnotes keyed by paragraph position. The IR gives
each stage a well-typed contract so they can be tested in isolation.

HOW: Five dataclasses form the pipeline's data flow:
  TranscriptToken   : one word, spacing, or audio event from the service
  Transcript        : the service payload: language plus tokens
  Paragraph         : a speaker-attributed block of sentences
  EnhancementResult : the per-paragraph outcome of enhancement
  EnhancedTranscript: all results plus the footnote map

RULES:
- TranscriptToken is immutable (produced entirely by the service)
- Paragraph.index is contiguous, zero-based and is the footnote key
- EnhancedTranscript.results has one entry per Paragraph, same order
- FootnoteMap keys are a subset of valid paragraph indices
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

UNKNOWN_SPEAKER = "unknown_speaker"
"""Bucket key for tokens without a speaker_id."""

FootnoteMap = Dict[int, List[str]]
"""Paragraph index → caveat strings (at most one entry per index today)."""


@dataclass(frozen=True)
class TranscriptToken:
    """A single item from the speech-to-text word stream.

    RULES:
    - text: raw token text, spacing tokens carry the whitespace itself
    - kind: "word", "spacing" or "audio_event" (service field "type")
    - speaker_id: service label such as "speaker_0", or None
    - start / end: seconds, None when the service omits timing
    """

    text: str
    kind: str = "word"
    speaker_id: str | None = None
    start: float | None = None
    end: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptToken:
        """Parse a token from a raw service dict.

        RULES:
        - text defaults to "" when absent
        - type defaults to "word"
        - empty speaker_id strings are normalized to None
        """
        return cls(
            text=data.get("text") or "",
            kind=data.get("type") or "word",
            speaker_id=data.get("speaker_id") or None,
            start=data.get("start"),
            end=data.get("end"),
        )


@dataclass
class Transcript:
    """A complete speech-to-text result.

    WHY: The HTTP routes and the CLI accept transcript JSON files produced
    by the transcription step. This dataclass is the typed view of that
    file.

    RULES:
    - language_code: ISO 639-3 code reported by the service (may be "")
    - words: tokens in service order; a payload with no "words" key
      yields an empty list
    """

    language_code: str
    words: list[TranscriptToken] = field(default_factory=list)
    language_probability: float | None = None
    text: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transcript:
        if not isinstance(data, dict):
            raise ValueError("Transcript payload must be a JSON object")
        words = data.get("words") or []
        return cls(
            language_code=data.get("language_code") or "",
            words=[TranscriptToken.from_dict(w) for w in words],
            language_probability=data.get("language_probability"),
            text=data.get("text"),
        )


@dataclass(frozen=True)
class Paragraph:
    """A run of sentences attributed to one speaker.

    RULES:
    - speaker_id: the service label, or None when no speaker tagging
    - raw_text: pre-enhancement text including the "[Speaker N]: " prefix
    - index: position in the overall paragraph sequence
    """

    speaker_id: str | None
    raw_text: str
    index: int


@dataclass
class EnhancementResult:
    """Outcome of enhancing one paragraph.

    RULES:
    - enhanced_text falls back to the paragraph's raw_text on failure
    - caveat is None when the model reported nothing worth a footnote
    """

    success: bool
    enhanced_text: str
    caveat: str | None = None


@dataclass
class EnhancedTranscript:
    """All enhancement results plus the footnote map.

    WHY: The renderer needs per-paragraph boundaries to place footnotes,
    while callers that only want prose need one string. Keeping the
    results list lets both views be derived without re-running anything.
    """

    results: list[EnhancementResult] = field(default_factory=list)
    footnotes: FootnoteMap = field(default_factory=dict)

    @property
    def paragraphs(self) -> list[str]:
        """Enhanced paragraph texts in paragraph-index order."""
        return [r.enhanced_text for r in self.results]

    @property
    def text(self) -> str:
        """Enhanced paragraphs joined with single spaces."""
        return " ".join(self.paragraphs)
