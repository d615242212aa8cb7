"""Document models: the registered source document and the raw files fed to the pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentCategory(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """What kind of source a document is.

    The category decides which mode the question extractor prompt asks for:
    exams have their existing questions extracted verbatim, study material
    (handouts, summaries) gets new questions synthesized from its content.
    """

    EXAM = "exam"
    STUDY_MATERIAL = "study_material"


class SourceFile(BaseModel):
    """One document's raw bytes as handed to the text extractor.

    Produced by the archive expander: a single upload yields one
    ``SourceFile``; an archive yields one per embedded document entry.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Filename, or the internal path for archive entries.")
    data: bytes = Field(description="Raw file content.")
    source_archive: str | None = Field(
        default=None,
        description="Filename of the archive this entry came from, if any.",
    )

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, e.g. ``".pdf"``."""
        _, dot, ext = self.name.rpartition(".")
        return f".{ext.lower()}" if dot else ""


class Document(BaseModel):
    """A registered source document.

    ``title`` is the dedup key: the store enforces uniqueness on it and the
    registrar reuses an existing row instead of creating a second one.
    Only ``processed`` may change after creation.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = Field(description="Unique title; the internal path for archive entries.")
    category: DocumentCategory = DocumentCategory.EXAM
    source_organization: str = Field(default="Outras", description="Exam board inferred from the filename.")
    year: int = Field(description="Exam year inferred from the filename.")
    source_url: str | None = Field(default=None, description="Public URL of the uploaded file.")
    processed: bool = False
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form provenance: source_archive and internal_path.",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
