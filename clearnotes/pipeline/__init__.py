"""Pipeline orchestration and PDF compilation.

RULES:
- run_pipeline is the only entry point the HTTP app and CLI use
- The compiler owns its temporary files; nothing else touches disk
"""

from clearnotes.pipeline.compiler import CompilationResult, TectonicCompiler
from clearnotes.pipeline.orchestrator import (
    CompleteEvent,
    ErrorEvent,
    PipelineError,
    PipelineResult,
    ProgressEvent,
    collect_result,
    iter_sse_frames,
    run_pipeline,
)

__all__ = [
    "CompilationResult",
    "CompleteEvent",
    "ErrorEvent",
    "PipelineError",
    "PipelineResult",
    "ProgressEvent",
    "TectonicCompiler",
    "collect_result",
    "iter_sse_frames",
    "run_pipeline",
]
