"""ClearNotes: lecture audio to readable, footnoted LaTeX/PDF notes.

WHY: Speech-to-text services return a flat word stream full of speech
disfluencies. Students want clean prose they can read and print. This
package reflows the word stream into paragraphs, has a language model
rewrite each paragraph, and typesets the result as LaTeX and PDF.

HOW: Four-stage pipeline: segment (core), enhance (enhancement),
render (formatters), compile (pipeline). The HTTP API and the CLI are
thin shells around pipeline.orchestrator.run_pipeline.

RULES:
- Paragraph indices are the join key between enhancement and rendering
- Per-paragraph failures are annotated as footnotes, never raised
- A failed PDF compile still yields the LaTeX source
- Every run owns its own rate limiter and progress state
"""

__version__ = "0.1.0"
