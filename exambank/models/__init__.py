"""ExamBank domain models -- re-exports all public model classes.

    - document.py   -- registered documents and the raw files fed to the pipeline
    - question.py   -- LLM candidates, validation outcomes, persisted questions
    - rag.py        -- embedded chunks and similarity-search hits
    - ingestion.py  -- per-file outcomes, batch accumulator, sync report, response
"""

from __future__ import annotations

from exambank.models.document import Document, DocumentCategory, SourceFile
from exambank.models.ingestion import (
    AutoFixReport,
    FileOutcome,
    IngestionResponse,
    IngestionResults,
    SyncReport,
)
from exambank.models.question import (
    QuestionCandidate,
    QuestionRecord,
    RejectionReason,
    ValidationOutcome,
    ValidationStatus,
)
from exambank.models.rag import EmbeddingChunk, IndexReport, RetrievedChunk

__all__ = [
    "AutoFixReport",
    "Document",
    "DocumentCategory",
    "EmbeddingChunk",
    "FileOutcome",
    "IndexReport",
    "IngestionResponse",
    "IngestionResults",
    "QuestionCandidate",
    "QuestionRecord",
    "RejectionReason",
    "RetrievedChunk",
    "SourceFile",
    "SyncReport",
    "ValidationOutcome",
    "ValidationStatus",
]
