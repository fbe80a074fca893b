"""Paragraph enhancement through a rate-limited text-generation service.

WHY: Rewriting disfluent lecture speech into prose is the step that
turns a transcript into notes. It is also the only step that talks to a
quota-limited external model, so throttling, retries and response
validation live together here.

HOW: rate_limiter.py throttles calls, retry.py bounds attempts,
prompts.py owns the instruction and response schema, enhancer.py runs
the per-paragraph loop.

RULES:
- The enhancer never raises for a single paragraph's failure
- No HTTP details here; the client is injected
"""

from clearnotes.enhancement.enhancer import FAILED_PARAGRAPH_FOOTNOTE, ParagraphEnhancer
from clearnotes.enhancement.rate_limiter import TokenBucket
from clearnotes.enhancement.retry import RetryOutcome, retry_async

__all__ = [
    "FAILED_PARAGRAPH_FOOTNOTE",
    "ParagraphEnhancer",
    "RetryOutcome",
    "TokenBucket",
    "retry_async",
]
