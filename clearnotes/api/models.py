"""Gemini generateContent response dataclasses.

WHY: The text-generation service wraps the model output in a nested
candidates → content → parts structure. Typed dataclasses make that
shape explicit and keep the dict digging in one place.

HOW: from_dict factories parse the raw JSON. GenerateContentResponse.text
returns the concatenated text parts of the first candidate.

RULES:
- Missing lists parse as empty lists, never None
- text is None when there is no candidate or no text part
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Candidate:
    """One generated candidate.

    RULES:
    - parts: the "text" fields of content.parts, in order
    - finish_reason: e.g. "STOP", "MAX_TOKENS", "SAFETY"; None if absent
    """

    parts: list[str] = field(default_factory=list)
    finish_reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Candidate:
        content = data.get("content") or {}
        parts = [p["text"] for p in content.get("parts") or [] if isinstance(p.get("text"), str)]
        return cls(parts=parts, finish_reason=data.get("finishReason"))

    @property
    def text(self) -> str:
        return "".join(self.parts)


@dataclass
class GenerateContentResponse:
    """Parsed body of a generateContent response."""

    candidates: list[Candidate] = field(default_factory=list)
    block_reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerateContentResponse:
        feedback = data.get("promptFeedback") or {}
        return cls(
            candidates=[Candidate.from_dict(c) for c in data.get("candidates") or []],
            block_reason=feedback.get("blockReason"),
        )

    @property
    def text(self) -> str | None:
        """Text of the first candidate, or None when there is none."""
        if not self.candidates or not self.candidates[0].parts:
            return None
        return self.candidates[0].text
