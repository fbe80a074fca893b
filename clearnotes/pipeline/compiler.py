"""PDF compilation through the external tectonic executable.

WHY: LaTeX source is only half the deliverable; students want a PDF.
tectonic is a self-contained TeX engine that fetches packages on demand,
so it compiles the generated preamble without a full TeX installation.

HOW: The source is written to a scoped temporary directory as
document.tex and tectonic runs as an asyncio subprocess with --outdir
pointing at the same directory. The PDF bytes are read back before the
directory is removed.

RULES:
- Success iff the exit code is 0 and document.pdf exists
- Every failure (missing executable, non-zero exit, timeout, missing
  output) becomes CompilationResult.error, never an exception
- The subprocess is killed on timeout and on cancellation
- The temporary directory is removed on every exit path
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clearnotes.config import TECTONIC_PATH, TECTONIC_TIMEOUT_S

logger = logging.getLogger(__name__)

_SOURCE_NAME = "document.tex"
_PDF_NAME = "document.pdf"
_MAX_LOG_CHARS = 2000


class CompilationError(Exception):
    """Raised internally when tectonic cannot produce a PDF."""


@dataclass
class CompilationResult:
    """Outcome of one compile.

    RULES:
    - pdf_bytes is set on success, error is set on failure, never both
    """

    pdf_bytes: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.pdf_bytes is not None


class TectonicCompiler:
    """Compile LaTeX source to PDF with tectonic.

    Args:
        executable: Path or name of the tectonic binary.
        timeout_s: Wall-clock limit for one compile.
    """

    def __init__(
        self,
        executable: str = TECTONIC_PATH,
        timeout_s: float = TECTONIC_TIMEOUT_S,
    ) -> None:
        self.executable = executable
        self.timeout_s = timeout_s

    async def compile(self, latex_source: str) -> CompilationResult:
        """Compile ``latex_source`` and return the PDF bytes or an error."""
        with tempfile.TemporaryDirectory(prefix="clearnotes_") as tmp:
            workdir = Path(tmp)
            source = workdir / _SOURCE_NAME
            source.write_text(latex_source, encoding="utf-8")

            try:
                pdf_bytes = await self._run(workdir, source)
            except CompilationError as exc:
                logger.error("PDF compilation failed: %s", exc)
                return CompilationResult(error=str(exc))

        logger.info("PDF compiled (%d bytes)", len(pdf_bytes))
        return CompilationResult(pdf_bytes=pdf_bytes)

    async def _run(self, workdir: Path, source: Path) -> bytes:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable, "--outdir", str(workdir), str(source),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workdir),
            )
        except FileNotFoundError as exc:
            raise CompilationError(
                "tectonic executable not found: {}".format(self.executable)
            ) from exc
        except PermissionError as exc:
            raise CompilationError(
                "tectonic executable is not runnable: {}".format(self.executable)
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            await _kill(process)
            raise CompilationError(
                "tectonic timed out after {}s".format(self.timeout_s)
            ) from exc
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if stdout:
            logger.debug("tectonic stdout: %s", stdout.decode("utf-8", "replace")[-_MAX_LOG_CHARS:])

        if process.returncode != 0:
            output = (stderr or stdout or b"").decode("utf-8", "replace").strip()
            raise CompilationError(
                "tectonic exited with code {}: {}".format(process.returncode, output[-_MAX_LOG_CHARS:])
            )

        pdf = workdir / _PDF_NAME
        if not pdf.exists():
            raise CompilationError("tectonic reported success but produced no PDF")
        return pdf.read_bytes()


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
