"""System instruction, response schemas and response parsing for enhancement.

WHY: The enhancement model must return a JSON object with the rewritten
paragraph and optional caveats. The instruction, the schema sent to the
service, and the local validation of what comes back belong together so
they cannot drift apart.

HOW: SYSTEM_INSTRUCTION is the fixed lecture-rewriting brief.
build_response_schema() produces the service-side schema (Gemini's
OpenAPI subset) with the target language named in the field
description. parse_enhancement_response() decodes the model output,
falling back to the first {...} span, and validates it with jsonschema.

RULES:
- processed_text is required by the service schema
- Local validation checks types only; a missing processed_text is
  handled by the enhancer (it falls back to the original text)
- Any decode or validation problem raises EnhancementResponseError
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

import jsonschema

from clearnotes.config import language_display_name

SYSTEM_INSTRUCTION = """I am going to provide you with the excerpt of a transcription of a university lesson.
The original text will probably contain speech disfluencies, repetitions, fragmented sentences, conversational markers (e.g., "ok?", "ehm", "cioè", "um", "uh", "umh"), and unclear transitions.
Given this text, you should output a single, clear, professional and readable paragraph that doesn't lose any information and reasoning lines from the original text. It should read like the professor is speaking.
Basically, you're going to be an assistant at deciphering such transcription by processing the excerpt.
Please strictly preserve all technical language and phraseology. It's fundamental for the quality of the output.
If you encounter any parts that are difficult to interpret, provide the best possible output text and include any caveats in the 'caveats' field.
Words or sentences in other languages that are present in the excerpt should also be processed, but not translated. This is in order to preserve the original meaning and intent of the professor.
Interpret formulas and mathematical expressions in LaTeX format based on speech in the original language of the excerpt. Be proactive and use your knowledge of the language to infer its correct interpretation.
Write the equations using the inline LaTeX format, wrapped in $ only. Use the actual mathematical form instead of spanning things out in a long form.
Chemical formulas should be written in LaTeX format, wrapped in $ only. For example, "H2O" should be written as $\\text{H}_2\\text{O}$.
"""

_CAVEATS_DESCRIPTION = (
    "A not-too-long paragraph explaining the caveats encountered while processing "
    "the input text excerpt. If there were specific parts that were difficult to "
    "interpret, quote them and explain why. If the paragraph was successfully "
    "processed without issues, don't include this field. USE THIS FIELD ONLY IF "
    "STRICTLY NECESSARY."
)

# Local check of the decoded response.
RESPONSE_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "processed_text": {"type": "string"},
        "caveats": {"type": ["string", "null"]},
    },
}

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class EnhancementResponseError(ValueError):
    """Raised when a model response is not a usable JSON object."""


def build_response_schema(language: str | None) -> Dict[str, Any]:
    """Return the service response schema for a target language code."""
    language_name = language_display_name(language)
    return {
        "type": "OBJECT",
        "properties": {
            "processed_text": {
                "type": "STRING",
                "description": (
                    "The processed version of the paragraph. The text MUST be in "
                    "its original language: {}.".format(language_name)
                ),
            },
            "caveats": {
                "type": "STRING",
                "description": _CAVEATS_DESCRIPTION,
            },
        },
        "required": ["processed_text"],
    }


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        raise EnhancementResponseError("Response is not valid JSON and no JSON object could be extracted")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise EnhancementResponseError(
            "Failed to parse JSON from extracted match: {}".format(exc)
        ) from exc


def parse_enhancement_response(text: str) -> Dict[str, Any]:
    """Decode and validate a model response.

    HOW: Direct json.loads first; on failure, the first-to-last brace
    span is parsed instead. The decoded value is validated against
    RESPONSE_JSON_SCHEMA.

    Raises:
        EnhancementResponseError: If nothing parseable is found or the
            decoded value has the wrong shape.
    """
    data = _decode(text)
    try:
        jsonschema.validate(data, RESPONSE_JSON_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise EnhancementResponseError(
            "Response does not match the expected schema: {}".format(exc.message)
        ) from exc
    return data
