"""Command-line interface for ClearNotes.

WHY: Users want notes from a recording without running the web server.
The CLI wires the same pipeline the HTTP API uses behind one command
that reads a local file and writes the outputs next to it.

HOW: argparse takes an input file. A .json input is treated as a
transcript; anything else is treated as audio, transcribed first, and
the transcript JSON saved beside it. The transcript then runs through
run_pipeline() via asyncio.run(), progress is printed to stderr, and the
.tex (and .pdf when compilation succeeds) are written to the output
directory.

RULES:
- Positional argument: transcript .json or audio file path
- --transcribe-only stops after writing the transcript JSON
- --no-pdf skips the tectonic step
- Status output goes to stderr (not stdout); written paths go to stdout
- Exit code 1 on any failure, 130 on Ctrl-C
- Python 3.9 compatible: no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from clearnotes.api.elevenlabs import ElevenLabsClient
from clearnotes.api.gemini import GeminiClient
from clearnotes.config import (
    DEFAULT_DOCUMENT_LANGUAGE,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    configure_logging,
    load_gemini_api_key,
)
from clearnotes.enhancement.enhancer import ParagraphEnhancer
from clearnotes.pipeline.compiler import CompilationResult, TectonicCompiler
from clearnotes.pipeline.orchestrator import PipelineResult, collect_result, run_pipeline

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


class _SkipCompiler:
    """Compiler stand-in for --no-pdf."""

    async def compile(self, latex_source: str) -> CompilationResult:
        return CompilationResult(error="PDF compilation skipped (--no-pdf)")


async def _transcribe(audio_path: Path, language_code: str, output_dir: Path) -> Path:
    """Transcribe an audio file and save the transcript JSON; return its path."""
    _status("Transcribing {} ...".format(audio_path.name))
    async with ElevenLabsClient() as client:
        transcript = await client.transcribe(
            audio_path.read_bytes(),
            audio_path.name,
            language_code,
        )

    out_path = output_dir / "{}.json".format(audio_path.stem)
    out_path.write_text(json.dumps(transcript, ensure_ascii=False, indent=2), encoding="utf-8")
    _status("  Transcript saved: {}".format(out_path))
    return out_path


async def _process(
    transcript_path: Path,
    language: str,
    compile_pdf: bool,
) -> PipelineResult:
    transcript_data: Dict[str, Any] = json.loads(transcript_path.read_text(encoding="utf-8"))
    compiler = TectonicCompiler() if compile_pdf else _SkipCompiler()

    def _on_progress(progress: int) -> None:
        _status("  Enhancing paragraphs: {}%".format(progress))

    try:
        api_key: Optional[str] = load_gemini_api_key()
    except ValueError as exc:
        _status("Warning: {} Paragraphs will not be enhanced.".format(exc))
        api_key = None

    _status("Processing {} ...".format(transcript_path.name))
    if api_key is None:
        events = run_pipeline(
            transcript_data, language,
            filename=transcript_path.name,
            enhancer=ParagraphEnhancer(None),
            compiler=compiler,
        )
        return await collect_result(events, on_progress=_on_progress)

    async with GeminiClient(api_key=api_key) as client:
        events = run_pipeline(
            transcript_data, language,
            filename=transcript_path.name,
            enhancer=ParagraphEnhancer(client),
            compiler=compiler,
        )
        return await collect_result(events, on_progress=_on_progress)


def _write_outputs(result: PipelineResult, output_dir: Path) -> List[Path]:
    written = []
    tex_path = output_dir / result.latex_filename
    tex_path.write_text(result.latex_source, encoding="utf-8")
    written.append(tex_path)

    if result.pdf_bytes is not None and result.pdf_filename:
        pdf_path = output_dir / result.pdf_filename
        pdf_path.write_bytes(result.pdf_bytes)
        written.append(pdf_path)
    elif result.pdf_error:
        _status("PDF not generated: {}".format(result.pdf_error))
    return written


async def _run(args: argparse.Namespace) -> List[Path]:
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        raise FileNotFoundError("Input file not found: {}".format(input_path))

    output_dir = Path(args.output_dir).resolve() if args.output_dir else input_path.parent
    if not output_dir.is_dir():
        raise NotADirectoryError("Output directory does not exist: {}".format(output_dir))

    if input_path.suffix.lower() == ".json":
        transcript_path = input_path
    else:
        transcript_path = await _transcribe(input_path, args.audio_language, output_dir)
        if args.transcribe_only:
            return [transcript_path]

    result = await _process(transcript_path, args.language, compile_pdf=not args.no_pdf)
    return _write_outputs(result, output_dir)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() for tests)."""
    parser = argparse.ArgumentParser(
        prog="clearnotes",
        description="Turn a lecture recording or transcript JSON into readable "
                    "LaTeX/PDF notes.",
    )
    parser.add_argument(
        "input_file",
        help="Transcript JSON file, or an audio file to transcribe first.",
    )
    parser.add_argument(
        "--language",
        default=DEFAULT_DOCUMENT_LANGUAGE,
        help="ISO 639-3 code of the notes' language (default: %(default)s).",
    )
    parser.add_argument(
        "--audio-language",
        default=DEFAULT_TRANSCRIPTION_LANGUAGE,
        help="ISO 639-3 code of the recording, for transcription (default: %(default)s).",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: same as input file).",
    )
    parser.add_argument(
        "--transcribe-only",
        action="store_true",
        help="Stop after saving the transcript JSON.",
    )
    parser.add_argument(
        "--no-pdf",
        action="store_true",
        help="Write the LaTeX source only; do not run tectonic.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL from the environment, else info).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the clearnotes console script and python -m clearnotes."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        written = asyncio.run(_run(args))
    except KeyboardInterrupt:
        _status("\nInterrupted.")
        sys.exit(130)
    except Exception as e:
        logger.debug("CLI failure", exc_info=True)
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    for path in written:
        print(path)


if __name__ == "__main__":
    main()
