"""Exam-document ingestion pipeline.

Components, leaf first:

- **TextExtractor** -- text from one PDF/TXT/MD document; unreadable
  documents raise a per-file error.
- **ArchiveExpander** -- turns a ``.zip`` upload into its documents.
- **TextChunker** -- paragraph chunks with trailing overlap.
- **EmbeddingIndexer** -- embeds and stores chunks.
- **DocumentRegistrar** -- title dedup, organization/year/category inference.
- **QuestionExtractor** -- LLM extraction or synthesis of questions.
- **QualityValidator** -- accept/reject/skip rules for candidates.
- **AutoFixer** -- post-save audit and bounded repair loop.
- **ConsistencySync** -- post-batch reconciliation.
- **IngestionService** -- the orchestrator.
"""

from exambank.services.ingestion.archive_expander import ArchiveExpander
from exambank.services.ingestion.auto_fixer import AutoFixer
from exambank.services.ingestion.chunker import TextChunker
from exambank.services.ingestion.consistency_sync import ConsistencySync
from exambank.services.ingestion.document_registrar import DocumentRegistrar
from exambank.services.ingestion.embedding_indexer import EmbeddingIndexer
from exambank.services.ingestion.ingestion_service import IngestionService
from exambank.services.ingestion.quality_validator import QualityValidator
from exambank.services.ingestion.question_extractor import QuestionExtractor
from exambank.services.ingestion.text_extractor import TextExtractor

__all__ = [
    "ArchiveExpander",
    "AutoFixer",
    "ConsistencySync",
    "DocumentRegistrar",
    "EmbeddingIndexer",
    "IngestionService",
    "QualityValidator",
    "QuestionExtractor",
    "TextChunker",
    "TextExtractor",
]
