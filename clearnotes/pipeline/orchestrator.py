"""Transcript-to-document pipeline as one lazy event stream.

WHY: The HTTP route has two delivery modes (server-sent events and one
buffered response) and the CLI has a third (files on disk). Writing the
pipeline once as an async generator of events, with thin adapters per
delivery mode, keeps the stages and their error policy in one place.

HOW: run_pipeline() segments the transcript, runs the enhancer as a
task whose progress callback feeds an asyncio.Queue, yields one
ProgressEvent per report, then builds the LaTeX document, compiles it,
and yields a CompleteEvent. collect_result() drains the stream into a
PipelineResult; iter_sse_frames() turns each event into a
"data: <json>\\n\\n" frame.

RULES:
- Exactly one terminal event: CompleteEvent or ErrorEvent
- A failed PDF compile still completes the run (pdf_available=False)
- Unexpected errors are logged and become ErrorEvent("Failed to process transcription")
- Closing the generator early cancels the enhancement task
- Filenames are "<stem>_<YYYYMMDDTHHMMSS>.tex/.pdf", UTC
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Dict, Optional, Tuple, Union

from unidecode import unidecode

from clearnotes.config import DEFAULT_DOCUMENT_LANGUAGE, SENTENCES_PER_PARAGRAPH
from clearnotes.core.ir import Transcript
from clearnotes.core.segmenter import segment_transcript
from clearnotes.enhancement.enhancer import ParagraphEnhancer
from clearnotes.formatters.latex import build_latex_document
from clearnotes.pipeline.compiler import TectonicCompiler

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to process transcription"
DEFAULT_STEM = "transcription"

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")
_DONE = object()


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class ProgressEvent:
    """Enhancement progress, 0-100."""

    progress: int

    def to_payload(self) -> Dict[str, Any]:
        return {"progress": self.progress}


@dataclass
class CompleteEvent:
    """Terminal success event carrying the LaTeX source and optional PDF.

    RULES:
    - pdf_bytes and pdf_filename are both set or both None
    - pdf_error explains a missing PDF; it is never sent to clients
    """

    latex_source: str
    latex_filename: str
    pdf_bytes: Optional[bytes] = None
    pdf_filename: Optional[str] = None
    pdf_error: Optional[str] = None

    @property
    def pdf_available(self) -> bool:
        return self.pdf_bytes is not None

    def to_payload(self) -> Dict[str, Any]:
        """Client payload: camelCase keys, file contents base64-encoded."""
        payload: Dict[str, Any] = {"complete": True, "pdfAvailable": self.pdf_available}
        if self.pdf_bytes is not None:
            payload["pdfFilename"] = self.pdf_filename
            payload["pdfContent"] = _b64(self.pdf_bytes)
        payload["latexFilename"] = self.latex_filename
        payload["latexContent"] = _b64(self.latex_source.encode("utf-8"))
        return payload


@dataclass
class ErrorEvent:
    """Terminal failure event."""

    message: str

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


PipelineEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]


@dataclass
class PipelineResult:
    """Buffered outcome of a successful run."""

    latex_source: str
    latex_filename: str
    pdf_bytes: Optional[bytes] = None
    pdf_filename: Optional[str] = None
    pdf_error: Optional[str] = None

    @property
    def pdf_available(self) -> bool:
        return self.pdf_bytes is not None

    @property
    def latex_base64(self) -> str:
        return _b64(self.latex_source.encode("utf-8"))


class PipelineError(Exception):
    """Raised by collect_result when the run ended with an ErrorEvent."""


# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------


def output_filenames(filename: Optional[str], now: Optional[datetime] = None) -> Tuple[str, str]:
    """Return (tex_filename, pdf_filename) for an uploaded file name.

    The extension is dropped, the stem is transliterated to ASCII and
    unsafe characters become "_"; the timestamp is UTC.
    """
    stem = PurePath(filename or "").stem
    stem = _UNSAFE_FILENAME_RE.sub("_", unidecode(stem)).strip("._") or DEFAULT_STEM
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    base = "{}_{}".format(stem, moment.strftime("%Y%m%dT%H%M%S"))
    return base + ".tex", base + ".pdf"


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def run_pipeline(
    transcript_data: Any,
    language: str = DEFAULT_DOCUMENT_LANGUAGE,
    *,
    filename: Optional[str],
    enhancer: ParagraphEnhancer,
    compiler: TectonicCompiler,
    now: Optional[datetime] = None,
    sentences_per_paragraph: int = SENTENCES_PER_PARAGRAPH,
) -> AsyncIterator[PipelineEvent]:
    """Run segment → enhance → render → compile, yielding events.

    Args:
        transcript_data: Decoded transcript JSON (dict with "words").
        language: ISO 639-3 code of the document language.
        filename: Uploaded file name, used for the output names.
        enhancer: ParagraphEnhancer for this run.
        compiler: PDF compiler.
        now: Timestamp for the output names (defaults to current UTC).
        sentences_per_paragraph: Segmentation batch size.

    Yields:
        ProgressEvent zero or more times, then CompleteEvent or ErrorEvent.
    """
    try:
        transcript = Transcript.from_dict(transcript_data)
        paragraphs = segment_transcript(transcript, sentences_per_paragraph)
        logger.info(
            "Segmented %d tokens into %d paragraphs",
            len(transcript.words), len(paragraphs),
        )

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.ensure_future(enhancer.enhance(paragraphs, queue.put_nowait, language))
        task.add_done_callback(lambda _task: queue.put_nowait(_DONE))
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield ProgressEvent(progress=item)
            enhanced = task.result()
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        # One paragraph per line so the renderer can key footnotes by index.
        latex_source = build_latex_document("\n".join(enhanced.paragraphs), enhanced.footnotes)
        tex_filename, pdf_filename = output_filenames(filename, now)

        compiled = await compiler.compile(latex_source)
        if compiled.ok:
            logger.info("Run complete: %s and %s", tex_filename, pdf_filename)
            yield CompleteEvent(
                latex_source=latex_source,
                latex_filename=tex_filename,
                pdf_bytes=compiled.pdf_bytes,
                pdf_filename=pdf_filename,
            )
        else:
            logger.warning("Run complete without PDF: %s", compiled.error)
            yield CompleteEvent(
                latex_source=latex_source,
                latex_filename=tex_filename,
                pdf_error=compiled.error,
            )
    except Exception:
        logger.exception("Error processing transcription")
        yield ErrorEvent(message=GENERIC_FAILURE_MESSAGE)


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


async def collect_result(
    events: AsyncIterator[PipelineEvent],
    on_progress: Optional[Callable[[int], None]] = None,
) -> PipelineResult:
    """Drain an event stream into a PipelineResult.

    Raises:
        PipelineError: If the stream ends with an ErrorEvent or without
            a terminal event.
    """
    try:
        async for event in events:
            if isinstance(event, ProgressEvent):
                if on_progress is not None:
                    on_progress(event.progress)
            elif isinstance(event, ErrorEvent):
                raise PipelineError(event.message)
            elif isinstance(event, CompleteEvent):
                return PipelineResult(
                    latex_source=event.latex_source,
                    latex_filename=event.latex_filename,
                    pdf_bytes=event.pdf_bytes,
                    pdf_filename=event.pdf_filename,
                    pdf_error=event.pdf_error,
                )
    finally:
        await _aclose(events)
    raise PipelineError(GENERIC_FAILURE_MESSAGE)


def format_sse(payload: Dict[str, Any]) -> str:
    return "data: {}\n\n".format(json.dumps(payload))


async def iter_sse_frames(events: AsyncIterator[PipelineEvent]) -> AsyncIterator[str]:
    """Render each event as one server-sent-events frame."""
    try:
        async for event in events:
            yield format_sse(event.to_payload())
    finally:
        await _aclose(events)


async def _aclose(events: AsyncIterator[Any]) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is not None:
        await aclose()
