"""Tests for the tectonic compiler adapter.

HOW: Small POSIX shell scripts stand in for tectonic. Each script gets
the same arguments tectonic would (--outdir <dir> <dir>/document.tex)
and records what it saw under tmp_path.
"""

from __future__ import annotations

import asyncio
import stat
import sys
from pathlib import Path

import pytest

from clearnotes.pipeline.compiler import TectonicCompiler

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")


def _script(tmp_path: Path, name: str, body: str) -> str:
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def _recording_script(tmp_path: Path, name: str, tail: str) -> str:
    record = tmp_path / "outdir.txt"
    seen = tmp_path / "seen.tex"
    return _script(
        tmp_path,
        name,
        'echo "$2" > "{}"\ncp "$3" "{}"\n{}'.format(record, seen, tail),
    )


class TestTectonicCompiler:

    def test_success_returns_pdf_bytes(self, tmp_path):
        exe = _recording_script(tmp_path, "ok.sh", "printf 'PDF-BYTES' > \"$2/document.pdf\"")
        result = asyncio.run(TectonicCompiler(exe, timeout_s=10).compile("\\documentclass{article}"))
        assert result.ok
        assert result.pdf_bytes == b"PDF-BYTES"
        assert result.error is None
        assert (tmp_path / "seen.tex").read_text(encoding="utf-8") == "\\documentclass{article}"

    def test_temp_dir_removed_after_success(self, tmp_path):
        exe = _recording_script(tmp_path, "ok.sh", "printf 'x' > \"$2/document.pdf\"")
        asyncio.run(TectonicCompiler(exe, timeout_s=10).compile("src"))
        outdir = Path((tmp_path / "outdir.txt").read_text(encoding="utf-8").strip())
        assert not outdir.exists()

    def test_nonzero_exit_is_an_error_result(self, tmp_path):
        exe = _recording_script(tmp_path, "fail.sh", "echo 'error: Undefined control sequence' >&2\nexit 1")
        result = asyncio.run(TectonicCompiler(exe, timeout_s=10).compile("src"))
        assert not result.ok
        assert "exited with code 1" in result.error
        assert "Undefined control sequence" in result.error
        outdir = Path((tmp_path / "outdir.txt").read_text(encoding="utf-8").strip())
        assert not outdir.exists()

    def test_success_without_pdf_is_an_error(self, tmp_path):
        exe = _recording_script(tmp_path, "nopdf.sh", "exit 0")
        result = asyncio.run(TectonicCompiler(exe, timeout_s=10).compile("src"))
        assert not result.ok
        assert "no PDF" in result.error

    def test_missing_executable(self, tmp_path):
        result = asyncio.run(TectonicCompiler(str(tmp_path / "missing"), timeout_s=10).compile("src"))
        assert not result.ok
        assert "not found" in result.error

    def test_timeout_kills_process(self, tmp_path):
        exe = _recording_script(tmp_path, "slow.sh", "exec sleep 30")
        result = asyncio.run(TectonicCompiler(exe, timeout_s=0.5).compile("src"))
        assert not result.ok
        assert "timed out" in result.error
        outdir = Path((tmp_path / "outdir.txt").read_text(encoding="utf-8").strip())
        assert not outdir.exists()
