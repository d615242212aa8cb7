"""Ingestion result models.

Per-file work produces a :class:`FileOutcome`; the orchestrator folds the
outcomes into an :class:`IngestionResults` with :meth:`IngestionResults.merge`,
which returns a new accumulator each time instead of mutating one.

The externally visible models serialize with camelCase keys
(``processedFiles``, ``ragChunks``, ``dbSync`` ...) through
:meth:`IngestionResponse.to_payload`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Per-file and per-stage reports
# ---------------------------------------------------------------------------

class FileOutcome(BaseModel):
    """Everything one file contributed to a batch.

    ``processed`` is only true when the file went through the whole
    per-file path without raising; ``error`` holds the itemized message
    (``"name: reason"``) otherwise.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    processed: bool = False
    duplicate: bool = False
    rag_chunks: int = 0
    embedding_failures: int = 0
    questions_generated: int = 0
    questions_rejected: int = 0
    questions_skipped: int = 0
    rejection_reasons: dict[str, int] = Field(default_factory=dict)
    questions_auto_fixed: int = 0
    questions_auto_fix_unresolved: int = 0
    error: str | None = None


class AutoFixReport(BaseModel):
    """Summary of the audit-and-repair loop for one document.

    ``flagged`` counts distinct records flagged and submitted for repair in
    any pass, whether or not the model actually changed them.  ``updated``
    counts in-place writes.  ``unresolved`` counts records still flagged by
    the audit after the last pass.
    """

    model_config = ConfigDict(frozen=True)

    flagged: int = 0
    updated: int = 0
    unresolved: int = 0
    passes: int = 0
    failed_batches: int = 0


class SyncReport(_CamelModel):
    """Aggregate counts and the self-healing actions taken by a consistency sync.

    ``healthy`` is false only when an anomaly remains after the repairs.
    """

    documents: int = 0
    questions: int = 0
    embeddings: int = 0
    fixes: list[str] = Field(default_factory=list)
    healthy: bool = True


# ---------------------------------------------------------------------------
# Batch accumulator and top-level response
# ---------------------------------------------------------------------------

class IngestionResults(_CamelModel):
    """Aggregate results for one ingestion batch."""

    processed_files: int = 0
    questions_generated: int = 0
    rag_chunks: int = 0
    errors: list[str] = Field(default_factory=list)
    questions_rejected: int = 0
    rejection_reasons: dict[str, int] = Field(default_factory=dict)
    questions_skipped: int = 0
    questions_auto_fixed: int = 0
    questions_auto_fix_unresolved: int = 0
    duplicate_documents: int = 0
    embedding_failures: int = 0
    db_sync: SyncReport | None = None

    def merge(self, outcome: FileOutcome) -> IngestionResults:
        """Return a new accumulator with *outcome* folded in."""
        reasons = dict(self.rejection_reasons)
        for reason, count in outcome.rejection_reasons.items():
            reasons[reason] = reasons.get(reason, 0) + count

        errors = list(self.errors)
        if outcome.error:
            errors.append(outcome.error)

        return self.model_copy(
            update={
                "processed_files": self.processed_files + int(outcome.processed),
                "questions_generated": self.questions_generated + outcome.questions_generated,
                "rag_chunks": self.rag_chunks + outcome.rag_chunks,
                "errors": errors,
                "questions_rejected": self.questions_rejected + outcome.questions_rejected,
                "rejection_reasons": reasons,
                "questions_skipped": self.questions_skipped + outcome.questions_skipped,
                "questions_auto_fixed": self.questions_auto_fixed + outcome.questions_auto_fixed,
                "questions_auto_fix_unresolved": (
                    self.questions_auto_fix_unresolved + outcome.questions_auto_fix_unresolved
                ),
                "duplicate_documents": self.duplicate_documents + int(outcome.duplicate),
                "embedding_failures": self.embedding_failures + outcome.embedding_failures,
            }
        )

    def with_sync(self, report: SyncReport | None) -> IngestionResults:
        return self.model_copy(update={"db_sync": report})


class IngestionResponse(_CamelModel):
    """Top-level return value: ``results`` on success, ``error`` on a fatal batch abort."""

    success: bool
    results: IngestionResults | None = None
    error: str | None = None

    @classmethod
    def ok(cls, results: IngestionResults) -> IngestionResponse:
        return cls(success=True, results=results)

    @classmethod
    def failed(cls, error: str) -> IngestionResponse:
        return cls(success=False, error=error)

    def to_payload(self) -> dict:
        """Serialize with camelCase keys, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
