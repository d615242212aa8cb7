"""Pydantic request/response schemas for the ExamBank API.

Ingestion endpoints return the pipeline's own
:class:`~exambank.models.ingestion.IngestionResponse` payload (camelCase
keys), so only the request bodies and the auxiliary responses live here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class IngestRequest(BaseModel):
    """Signed-URL ingestion request.

    Accepts ``downloadUrl``/``publicUrl`` as well as their snake_case names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    download_url: str = Field(..., min_length=1, description="Signed URL the upload can be fetched from.")
    filename: str = Field(..., min_length=1, description="Original upload name; its extension picks the handling.")
    public_url: str | None = Field(default=None, description="Public URL stored on new documents.")


class SyncResponse(BaseModel):
    """Result of an on-demand consistency sync."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    db_sync: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    counts: dict[str, int] | None = None


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
