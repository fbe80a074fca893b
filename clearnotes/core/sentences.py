"""Heuristic sentence splitting with abbreviation, decimal and ellipsis guards.

WHY: Raw transcripts are one long run of text per speaker. Paragraphs
are built from whole sentences, so we need sentence boundaries. A naive
split on "." breaks "Dr. Smith", "3.14" and "wait...", so those are
shielded first.

HOW: protect_text() swaps the protected periods for private-use
sentinel characters, _BOUNDARY_RE splits on terminators followed by
whitespace and an upper-case letter, and restore_text() puts the
periods back.

RULES:
- Boundary: ".", "!" or "?" + whitespace + upper-case letter, or a
  terminator at the very end of the text
- Ellipses (3+ dots) collapse to "..." and never end a sentence
- ABBREVIATIONS followed by "." never end a sentence
- Decimals (\\d+.\\d+) never split on their internal period
- Empty and whitespace-only fragments are dropped
"""

from __future__ import annotations

import re

ABBREVIATIONS = (
    "Mr", "Mrs", "Ms", "Dr", "Prof", "Inc", "Ltd", "Co",
    "St", "Ave", "Blvd", "Rd", "Hwy", "Fig", "Eq",
)

# Private-use code points never appear in transliterated ASCII text.
_ELLIPSIS = "\ue000"
_ABBR_PERIOD = "\ue001"
_DECIMAL_POINT = "\ue002"

_ELLIPSIS_RE = re.compile(r"\.{3,}")
_ABBR_RE = re.compile(r"\b({})\.".format("|".join(ABBREVIATIONS)))
_DECIMAL_RE = re.compile(r"\b\d+\.\d+")
_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")


def protect_text(text: str) -> str:
    """Replace periods that must not end a sentence with sentinels."""
    text = _ELLIPSIS_RE.sub(_ELLIPSIS, text)
    text = _ABBR_RE.sub(lambda m: m.group(1) + _ABBR_PERIOD, text)
    return _DECIMAL_RE.sub(lambda m: m.group(0).replace(".", _DECIMAL_POINT, 1), text)


def restore_text(text: str) -> str:
    """Turn sentinels back into literal "..." and "."."""
    return (
        text.replace(_ELLIPSIS, "...")
        .replace(_ABBR_PERIOD, ".")
        .replace(_DECIMAL_POINT, ".")
    )


def split_protected(text: str) -> list[str]:
    """Split already-protected text into sentences, sentinels intact."""
    return [s.strip() for s in _BOUNDARY_RE.split(text) if s.strip()]


def split_sentences(text: str) -> list[str]:
    """Split text into sentences.

    Examples:
        >>> split_sentences("Dr. Smith arrived. He left.")
        ['Dr. Smith arrived.', 'He left.']
        >>> split_sentences("Pi is 3.14. Done.")
        ['Pi is 3.14.', 'Done.']
    """
    return [restore_text(s) for s in split_protected(protect_text(text))]
