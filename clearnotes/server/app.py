"""FastAPI application: transcription, processing and progress routes.

WHY: The browser client uploads a lecture recording, gets the transcript
back, then uploads that transcript to be turned into notes while it
watches a progress bar. An HTTP API with automatic OpenAPI docs serves
that flow and is easy to script with curl.

HOW: Four endpoints. POST /transcribe proxies the audio to the
speech-to-text service. POST /process-transcription runs the pipeline
either as server-sent events or as one buffered response (PDF, or JSON
with the LaTeX source when compilation failed). GET /progress/{run_id}
reads the RunStore. GET /health is a liveness check.

RULES:
- Every processing request owns a run in the RunStore; its id is
  returned in the X-Run-Id header in both delivery modes
- Error responses use the ErrorResponse schema (HTTPException detail)
- A missing text-generation key degrades to unenhanced notes; a missing
  speech-to-text key is a 500
- The run store is a singleton with periodic TTL cleanup
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse

from clearnotes import __version__
from clearnotes.api.elevenlabs import ElevenLabsAPIError, ElevenLabsClient
from clearnotes.api.gemini import GeminiClient
from clearnotes.config import (
    DEFAULT_DOCUMENT_LANGUAGE,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    configure_logging,
    load_elevenlabs_api_key,
    load_gemini_api_key,
)
from clearnotes.enhancement.enhancer import ParagraphEnhancer
from clearnotes.pipeline.compiler import TectonicCompiler
from clearnotes.pipeline.orchestrator import (
    GENERIC_FAILURE_MESSAGE,
    CompleteEvent,
    ErrorEvent,
    PipelineError,
    PipelineEvent,
    ProgressEvent,
    collect_result,
    format_sse,
    iter_sse_frames,
    run_pipeline,
)
from clearnotes.server.models import (
    ErrorResponse,
    HealthResponse,
    LatexOnlyResponse,
    ProgressResponse,
)
from clearnotes.server.runs import RunConflictError, RunStore

logger = logging.getLogger(__name__)

PDF_FAILED_MESSAGE = "PDF compilation failed, but LaTeX is available for download"
TRANSCRIBE_FAILED_MESSAGE = "Failed to transcribe audio. Please check your API key and try again."
DISCONNECTED_MESSAGE = "Client disconnected"

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

run_store = RunStore()


async def _periodic_cleanup() -> None:
    """Run expired-run cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        run_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="ClearNotes API",
    description=(
        "Turn lecture recordings into readable notes: transcribe audio with "
        "speaker diarization, rewrite each paragraph with a language model, "
        "and download the result as LaTeX and PDF."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Collaborators (patched in tests)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _enhancer_session() -> AsyncIterator[ParagraphEnhancer]:
    """Yield a ParagraphEnhancer with an open text-generation client.

    Without a configured key the enhancer runs in passthrough mode.
    """
    try:
        api_key = load_gemini_api_key()
    except ValueError as exc:
        logger.error("%s Paragraphs will not be enhanced.", exc)
        yield ParagraphEnhancer(None)
        return

    async with GeminiClient(api_key=api_key) as client:
        yield ParagraphEnhancer(client)


def _create_compiler() -> TectonicCompiler:
    return TectonicCompiler()


def _create_transcriber(api_key: str) -> ElevenLabsClient:
    return ElevenLabsClient(api_key=api_key)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _track_progress(
    run_id: str,
    events: AsyncIterator[PipelineEvent],
) -> AsyncIterator[PipelineEvent]:
    """Mirror pipeline events into the run store, then pass them on."""
    try:
        async for event in events:
            if isinstance(event, ProgressEvent):
                run_store.update_progress(run_id, event.progress)
            elif isinstance(event, CompleteEvent):
                run_store.update_progress(run_id, 100)
                run_store.finish_run(run_id)
            elif isinstance(event, ErrorEvent):
                run_store.finish_run(run_id, error=event.message)
            yield event
    finally:
        await events.aclose()


def _finish_if_active(run_id: str, error: str) -> None:
    run = run_store.get_run(run_id)
    if run is not None and run.active:
        run_store.finish_run(run_id, error=error)


async def _stream_run(
    run_id: str,
    transcript_data: Dict[str, Any],
    language: str,
    filename: str,
) -> AsyncIterator[str]:
    """Server-sent-events body for one run."""
    try:
        async with _enhancer_session() as enhancer:
            events = run_pipeline(
                transcript_data,
                language,
                filename=filename,
                enhancer=enhancer,
                compiler=_create_compiler(),
            )
            async for frame in iter_sse_frames(_track_progress(run_id, events)):
                yield frame
    except Exception:
        logger.exception("Error in streaming process for run %s", run_id)
        _finish_if_active(run_id, GENERIC_FAILURE_MESSAGE)
        yield format_sse({"error": GENERIC_FAILURE_MESSAGE})
    finally:
        _finish_if_active(run_id, DISCONNECTED_MESSAGE)


async def _read_transcript(upload: UploadFile) -> Dict[str, Any]:
    raw = await upload.read()
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Transcription file is not valid JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Transcription file must contain a JSON object")
    return data


# ---------------------------------------------------------------------------
# Endpoints: Transcription
# ---------------------------------------------------------------------------


@app.post(
    "/transcribe",
    tags=["transcription"],
    summary="Transcribe an audio file",
    description=(
        "Upload an audio file. Returns the speech-to-text JSON (language, text "
        "and a diarized word stream) that POST /process-transcription accepts."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "No audio file provided"},
        500: {"model": ErrorResponse, "description": "Speech-to-text key not configured"},
        502: {"model": ErrorResponse, "description": "Speech-to-text service error"},
    },
)
async def transcribe(
    audio: Annotated[
        Optional[UploadFile],
        File(description="Audio file to transcribe"),
    ] = None,
    language_code: Annotated[
        str,
        Form(description="ISO 639-3 language code of the recording (e.g. 'ita', 'eng')."),
    ] = DEFAULT_TRANSCRIPTION_LANGUAGE,
) -> Dict[str, Any]:
    try:
        api_key = load_elevenlabs_api_key()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")

    content = await audio.read()
    filename = Path(audio.filename or "audio").name

    try:
        async with _create_transcriber(api_key) as client:
            return await client.transcribe(
                content,
                filename,
                language_code or DEFAULT_TRANSCRIPTION_LANGUAGE,
                content_type=audio.content_type,
            )
    except (ElevenLabsAPIError, httpx.HTTPError) as exc:
        logger.error("Error in transcription API: %s", exc)
        raise HTTPException(status_code=502, detail=TRANSCRIBE_FAILED_MESSAGE) from exc


# ---------------------------------------------------------------------------
# Endpoints: Processing
# ---------------------------------------------------------------------------


@app.post(
    "/process-transcription",
    tags=["processing"],
    summary="Turn a transcript into LaTeX and PDF notes",
    description=(
        "Upload a transcript JSON file. With stream=true the response is a "
        "text/event-stream of {progress} frames followed by one {complete} or "
        "{error} frame. Otherwise the response is the PDF (LaTeX source in the "
        "X-LaTeX-Content header, base64) or, when compilation failed, JSON with "
        "the LaTeX source. The run id is returned in X-Run-Id."
    ),
    responses={
        200: {
            "content": {"application/pdf": {}, "text/event-stream": {}},
            "model": LatexOnlyResponse,
            "description": "PDF, event stream, or LaTeX-only JSON",
        },
        400: {"model": ErrorResponse, "description": "Missing or invalid transcript file"},
        409: {"model": ErrorResponse, "description": "Run id already active"},
        500: {"model": ErrorResponse, "description": "Processing failed"},
    },
)
async def process_transcription(
    transcription: Annotated[
        Optional[UploadFile],
        File(description="Transcript JSON produced by POST /transcribe"),
    ] = None,
    language: Annotated[
        str,
        Form(description="ISO 639-3 code of the notes' language (e.g. 'eng', 'ita')."),
    ] = DEFAULT_DOCUMENT_LANGUAGE,
    stream: Annotated[
        bool,
        Form(description="Stream progress as server-sent events."),
    ] = False,
    run_id: Annotated[
        Optional[str],
        Form(description="Client-chosen run id for GET /progress/{run_id}."),
    ] = None,
) -> Response:
    if transcription is None:
        raise HTTPException(status_code=400, detail="No transcription file provided")

    transcript_data = await _read_transcript(transcription)
    filename = Path(transcription.filename or "transcription.json").name
    language = language or DEFAULT_DOCUMENT_LANGUAGE

    try:
        run = run_store.start_run(run_id or None)
    except RunConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    run_headers = {"X-Run-Id": run.id}

    if stream:
        return StreamingResponse(
            _stream_run(run.id, transcript_data, language, filename),
            media_type="text/event-stream",
            headers=dict(
                run_headers,
                **{"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
            ),
        )

    try:
        async with _enhancer_session() as enhancer:
            events = run_pipeline(
                transcript_data,
                language,
                filename=filename,
                enhancer=enhancer,
                compiler=_create_compiler(),
            )
            result = await collect_result(_track_progress(run.id, events))
    except PipelineError as exc:
        raise HTTPException(status_code=500, detail=str(exc), headers=run_headers)
    except Exception:
        logger.exception("Error processing transcription for run %s", run.id)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE, headers=run_headers)
    finally:
        _finish_if_active(run.id, GENERIC_FAILURE_MESSAGE)

    if result.pdf_bytes is not None:
        return Response(
            content=result.pdf_bytes,
            media_type="application/pdf",
            headers=dict(run_headers, **{
                "Content-Disposition": 'attachment; filename="{}"'.format(result.pdf_filename),
                "X-LaTeX-Filename": result.latex_filename,
                "X-LaTeX-Content": result.latex_base64,
            }),
        )

    body = LatexOnlyResponse(
        latex_filename=result.latex_filename,
        latex_content=result.latex_base64,
        error=PDF_FAILED_MESSAGE,
    )
    return JSONResponse(content=body.model_dump(by_alias=True), headers=run_headers)


# ---------------------------------------------------------------------------
# Endpoints: Progress
# ---------------------------------------------------------------------------


@app.get(
    "/progress/{run_id}",
    response_model=ProgressResponse,
    tags=["processing"],
    summary="Get the progress of a processing run",
    description="Poll while POST /process-transcription is running.",
    responses={
        404: {"model": ErrorResponse, "description": "Run not found"},
    },
)
async def get_progress(run_id: str) -> ProgressResponse:
    run = run_store.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found: {}".format(run_id))
    return ProgressResponse(progress=run.progress, is_processing_active=run.active)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api():
    """Entry point for the clearnotes-api console script."""
    import uvicorn

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
