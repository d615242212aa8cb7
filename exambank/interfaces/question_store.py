"""Abstract base class for the persistent store.

Three logical tables sit behind this contract:

* **documents** -- unique on ``title``; created with upsert-or-fetch so two
  concurrent batches uploading the same title converge on one row.
* **questions** -- each owned by one document.
* **embedding chunks** -- each owned by one document, searchable by cosine
  similarity.

The anomaly queries at the bottom exist for the consistency sync, which
reconciles the tables after a batch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from exambank.models.document import Document
from exambank.models.question import QuestionRecord
from exambank.models.rag import EmbeddingChunk, RetrievedChunk


# Concrete implementation: SQLiteQuestionStore (exambank/providers/store/)
class IQuestionStore(ABC):
    """Contract for document, question and chunk persistence.

    All operations are async.  Implementations wrap backend failures in
    :class:`~exambank.utils.errors.StoreError`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist."""

    # ---- Documents ----

    @abstractmethod
    async def get_document_by_title(self, title: str) -> Document | None:
        """Return the document with exactly this title, or ``None``."""

    @abstractmethod
    async def get_or_create_document(self, document: Document) -> tuple[Document, bool]:
        """Insert *document* unless its title exists.

        Returns
        -------
        tuple[Document, bool]
            The stored row and ``True`` if it was created by this call,
            ``False`` if an existing row with the same title was returned.
        """

    # ---- Questions ----

    @abstractmethod
    async def find_existing_stems(self, stems: list[str]) -> set[str]:
        """Return the subset of *stems* already stored, compared exactly."""

    @abstractmethod
    async def save_questions(self, records: list[QuestionRecord]) -> int:
        """Persist new question records; returns the number written."""

    @abstractmethod
    async def get_questions_for_document(self, document_id: str) -> list[QuestionRecord]:
        """Return every question owned by *document_id*, oldest first."""

    @abstractmethod
    async def update_question(self, record: QuestionRecord) -> None:
        """Overwrite a question's content fields in place, keyed by ``record.id``."""

    # ---- Embedding chunks ----

    @abstractmethod
    async def save_chunk(self, chunk: EmbeddingChunk) -> None:
        """Persist one embedded chunk."""

    @abstractmethod
    async def get_chunks_for_document(self, document_id: str, limit: int | None = None) -> list[EmbeddingChunk]:
        """Return a document's chunks in chunk order, optionally limited."""

    @abstractmethod
    async def search_chunks(
        self,
        vector: list[float],
        top_k: int = 5,
        min_similarity: float = 0.3,
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks ranked by cosine similarity to *vector*.

        Chunks scoring at or below *min_similarity* are dropped.
        """

    # ---- Aggregates and consistency ----

    @abstractmethod
    async def get_counts(self) -> dict[str, int]:
        """Return row counts keyed ``documents``, ``questions``, ``embeddings``."""

    @abstractmethod
    async def mark_documents_with_content_processed(self) -> int:
        """Flag unprocessed documents that own questions or chunks; returns rows changed."""

    @abstractmethod
    async def repair_missing_option_e(self) -> int:
        """Reset ``correct_option`` 'E' to 'A' where ``option_e`` is empty; returns rows changed."""

    @abstractmethod
    async def delete_orphaned_chunks(self) -> int:
        """Delete chunks whose document no longer exists; returns rows deleted."""

    @abstractmethod
    async def count_orphaned_questions(self) -> int:
        """Count questions whose document no longer exists."""

    @abstractmethod
    async def relink_orphaned_questions(self, document_id: str) -> int:
        """Point orphaned questions at *document_id*; returns rows changed."""

    @abstractmethod
    async def count_anomalies(self) -> dict[str, int]:
        """Count what a consistency sync would repair.

        Keys: ``unprocessed_documents``, ``answer_e_without_option``,
        ``orphaned_chunks`` and ``orphaned_questions``.
        """
