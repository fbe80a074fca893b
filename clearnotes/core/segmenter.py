"""Word-stream segmentation into speaker-tagged paragraphs.

WHY: The speech-to-text service returns one flat token list mixing
words, spacing and audio events ("(laughter)") from every speaker. The
enhancement model works best on paragraph-sized excerpts from a single
speaker, so the stream is regrouped by speaker and reflowed into
fixed-size batches of sentences.

HOW: Tokens are bucketed by speaker_id in first-seen order, audio
events are dropped, each bucket's text is concatenated, transliterated
to ASCII with unidecode, split into sentences, and batched into
paragraphs. Indices run across all speakers in bucket order.

RULES:
- audio_event tokens never reach a paragraph
- Tokens keep their original order within a speaker bucket; the
  interleaving between speakers is not reconstructed
- Paragraph text is prefixed "[Speaker <id>]: " unless the speaker is
  unknown; a "speaker_" prefix on the id is dropped for display
- Sentences without a letter or digit are dropped, so a bucket that
  normalizes to nothing (only punctuation) contributes no paragraphs
- Paragraph indices are contiguous and zero-based
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from unidecode import unidecode

from clearnotes.config import SENTENCES_PER_PARAGRAPH
from clearnotes.core.ir import UNKNOWN_SPEAKER, Paragraph, Transcript, TranscriptToken
from clearnotes.core.sentences import protect_text, restore_text, split_protected

# Leading "[Speaker N]:" marker in any letter case; group 1 is the label, group 2 the body.
SPEAKER_MARKER_RE = re.compile(r"^\[Speaker ([^\]]+)\]:(.*)$", re.IGNORECASE | re.DOTALL)

# A sentence must carry at least one letter or digit; bare punctuation is noise.
_HAS_CONTENT_RE = re.compile(r"[A-Za-z0-9]")


def speaker_label(speaker_id: str) -> str:
    """Display label for a service speaker id ("speaker_1" → "1")."""
    return speaker_id[len("speaker_"):] if speaker_id.startswith("speaker_") else speaker_id


def speaker_prefix(speaker_id: Optional[str]) -> str:
    """Return the "[Speaker N]: " prefix, or "" for an unknown speaker."""
    if not speaker_id or speaker_id == UNKNOWN_SPEAKER:
        return ""
    return "[Speaker {}]: ".format(speaker_label(speaker_id))


def split_speaker_marker(text: str) -> tuple[Optional[str], str]:
    """Split a paragraph into (speaker label, body).

    Returns (None, text) when there is no leading marker. The body is
    stripped of surrounding whitespace.
    """
    match = SPEAKER_MARKER_RE.match(text)
    if match is None:
        return None, text
    return match.group(1), match.group(2).strip()


def _bucket_by_speaker(tokens: Iterable[TranscriptToken]) -> Dict[str, List[TranscriptToken]]:
    """Group non-audio-event tokens by speaker, first-seen order."""
    buckets: Dict[str, List[TranscriptToken]] = {}
    for token in tokens:
        if token.kind == "audio_event":
            continue
        key = token.speaker_id or UNKNOWN_SPEAKER
        buckets.setdefault(key, []).append(token)
    return buckets


def _bucket_sentences(tokens: List[TranscriptToken]) -> List[str]:
    """Concatenate, transliterate and sentence-split one speaker's tokens."""
    text = unidecode("".join(t.text for t in tokens))
    sentences = [restore_text(s) for s in split_protected(protect_text(text))]
    return [s for s in sentences if _HAS_CONTENT_RE.search(s)]


def segment_tokens(
    tokens: Iterable[TranscriptToken],
    sentences_per_paragraph: int = SENTENCES_PER_PARAGRAPH,
) -> List[Paragraph]:
    """Convert a token stream into ordered, speaker-tagged paragraphs.

    Args:
        tokens: Tokens in service order.
        sentences_per_paragraph: Batch size; 10 in the enhancement pipeline.

    Returns:
        Paragraphs with contiguous indices, grouped by speaker in the
        order speakers first appear.
    """
    if sentences_per_paragraph < 1:
        raise ValueError("sentences_per_paragraph must be at least 1")

    paragraphs: List[Paragraph] = []
    for speaker_id, speaker_tokens in _bucket_by_speaker(tokens).items():
        sentences = _bucket_sentences(speaker_tokens)
        prefix = speaker_prefix(speaker_id)
        tagged_id = None if speaker_id == UNKNOWN_SPEAKER else speaker_id

        for start in range(0, len(sentences), sentences_per_paragraph):
            body = " ".join(sentences[start:start + sentences_per_paragraph])
            if not body.strip():
                continue
            paragraphs.append(Paragraph(
                speaker_id=tagged_id,
                raw_text=prefix + body,
                index=len(paragraphs),
            ))

    return paragraphs


def segment_transcript(
    transcript: Transcript,
    sentences_per_paragraph: int = SENTENCES_PER_PARAGRAPH,
) -> List[Paragraph]:
    """Segment a parsed Transcript; see segment_tokens."""
    return segment_tokens(transcript.words, sentences_per_paragraph)
