"""LaTeX document assembly with speaker grouping and footnotes.

WHY: The enhanced paragraphs need to become a printable document. LaTeX
gives proper typesetting of the inline math the enhancement model emits,
and footnotes are the natural place for the model's caveats.

HOW: The enhanced text is split on newlines, one chunk per paragraph
index. A chunk that starts with "[Speaker N]:" opens or continues that
speaker's group; consecutive chunks of one speaker are emitted under a
single \\subsection*{Speaker N}. Each chunk is escaped, its caveat (if
any) is appended as \\footnote{...}, and the body is wrapped in the
fixed preamble.

RULES:
- Chunk position in the text is the footnote key (paragraph index)
- Empty chunks are skipped but still consume an index
- A chunk without a marker joins the open group, else stands alone
- Paragraph bodies use minimal escaping ("%" only) so $...$ math survives
- Caveats always use full escaping
- Output is plain str; compilation happens elsewhere
"""

from __future__ import annotations

import re
from typing import List, Optional

from clearnotes.core.ir import FootnoteMap
from clearnotes.core.segmenter import split_speaker_marker

ESCAPE_MODES = ("minimal", "full")

_FULL_ESCAPES = {
    "\\": r"\textbackslash{}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
    "{": r"\{",
    "}": r"\}",
    "#": r"\#",
    "$": r"\$",
    "&": r"\&",
    "_": r"\_",
    "%": r"\%",
}
_FULL_ESCAPE_RE = re.compile(r"[\\~^{}#$&_%]")

PREAMBLE = r"""\documentclass[11pt, a4paper]{article}
\usepackage[utf8]{inputenc}
\usepackage[T1]{fontenc}
\usepackage{lmodern}
\usepackage{microtype}
\usepackage[margin=0.75in]{geometry}
\usepackage{parskip}
\usepackage{setspace}
\usepackage{amsmath}
\usepackage{amsfonts}
\usepackage{xcolor}
\usepackage[autostyle, english = american]{csquotes}
\MakeOuterQuote{"}
\setlength{\parindent}{1em}

\title{Transcription}
\author{ClearNotes}
\date{\today}

\begin{document}
\maketitle
\begin{spacing}{1.15}
"""

POSTAMBLE = r"""
\end{spacing}
\end{document}
"""


def escape_latex(text: str, mode: str = "minimal") -> str:
    """Escape LaTeX special characters.

    Args:
        text: Raw text.
        mode: "minimal" escapes "%" only; "full" escapes every reserved
            character (\\ { } # $ & _ ^ ~ %) in a single pass.

    Raises:
        ValueError: On an unknown mode.
    """
    if mode == "minimal":
        return text.replace("%", r"\%")
    if mode == "full":
        return _FULL_ESCAPE_RE.sub(lambda m: _FULL_ESCAPES[m.group(0)], text)
    raise ValueError("Unknown escape mode: {!r} (expected one of {})".format(mode, ESCAPE_MODES))


def _with_footnote(body: str, footnotes: FootnoteMap, index: int) -> str:
    caveats = footnotes.get(index)
    if not caveats or not caveats[0]:
        return body
    return "{}\\footnote{{{}}}".format(body, escape_latex(caveats[0], mode="full"))


def _flush(blocks: List[str], speaker: Optional[str], group: List[str]) -> None:
    if group and speaker is not None:
        blocks.append("\\subsection*{{Speaker {}}}\n{}".format(speaker, "\n\n".join(group)))


def build_latex_body(
    text: str,
    footnotes: Optional[FootnoteMap] = None,
    escape_mode: str = "minimal",
) -> str:
    """Render the grouped, footnoted content without the preamble."""
    footnotes = footnotes or {}
    blocks: List[str] = []
    current_speaker: Optional[str] = None
    group: List[str] = []

    for index, chunk in enumerate(text.split("\n")):
        if not chunk.strip():
            continue

        speaker, body = split_speaker_marker(chunk)
        if speaker is None:
            body = chunk.strip()
        content = _with_footnote(escape_latex(body, mode=escape_mode), footnotes, index)

        if speaker is None:
            if group:
                group.append(content)
            else:
                blocks.append(content)
            continue

        if speaker != current_speaker:
            _flush(blocks, current_speaker, group)
            group = []
            current_speaker = speaker
        group.append(content)

    _flush(blocks, current_speaker, group)
    return "\n\n".join(blocks)


def build_latex_document(
    text: str,
    footnotes: Optional[FootnoteMap] = None,
    escape_mode: str = "minimal",
) -> str:
    """Build a complete LaTeX document from newline-separated paragraphs.

    Args:
        text: Enhanced paragraphs, one per line, in paragraph-index order.
        footnotes: Paragraph index → caveats; only the first is rendered.
        escape_mode: Escaping applied to paragraph bodies.

    Returns:
        The full document source, preamble included.
    """
    return PREAMBLE + build_latex_body(text, footnotes, escape_mode) + POSTAMBLE
