"""Document formatters.

RULES:
- Formatters take enhanced text plus footnotes and return a string
- No I/O and no compilation here
"""

from clearnotes.formatters.latex import build_latex_document, escape_latex

__all__ = ["build_latex_document", "escape_latex"]
