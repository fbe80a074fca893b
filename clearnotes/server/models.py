"""Pydantic response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for response serialization
and the automatic OpenAPI documentation. The browser client reads
camelCase keys, so the models carry aliases.

HOW: One model per response body. Fields are snake_case in Python and
serialized under their camelCase alias (FastAPI serializes by alias).

RULES:
- All models use Field(description=...) for OpenAPI documentation
- populate_by_name=True so code can construct models with snake_case names
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProgressResponse(BaseModel):
    """Progress of one pipeline run.

    RULES:
    - progress is 0-100
    - isProcessingActive is False once the run finished (success or error)
    """

    model_config = ConfigDict(populate_by_name=True)

    progress: int = Field(description="Enhancement progress, 0-100.")
    is_processing_active: bool = Field(
        alias="isProcessingActive",
        description="Whether the run is still processing.",
    )


class LatexOnlyResponse(BaseModel):
    """Buffered result when the PDF could not be compiled.

    WHY: A failed compile should not cost the user their enhanced notes;
    the LaTeX source is returned so it can be compiled elsewhere.
    """

    model_config = ConfigDict(populate_by_name=True)

    latex_filename: str = Field(alias="latexFilename", description="Suggested .tex filename.")
    latex_content: str = Field(alias="latexContent", description="LaTeX source, base64-encoded.")
    error: str = Field(description="Why no PDF is attached.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
