"""Embedding indexer: turns a document's chunks into stored vectors.

Chunks are embedded one at a time, each call awaited before the next, so
external API concurrency stays at one.  A failed embedding call is logged
and skipped; the rest of the document is still indexed.
"""

from __future__ import annotations

import structlog

from exambank.interfaces.embedding_provider import IEmbeddingProvider
from exambank.interfaces.question_store import IQuestionStore
from exambank.models.document import Document
from exambank.models.rag import EmbeddingChunk, IndexReport
from exambank.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingIndexer:
    """Embeds chunks and persists them with provenance metadata."""

    def __init__(self, embedding_provider: IEmbeddingProvider, store: IQuestionStore) -> None:
        self._embedder = embedding_provider
        self._store = store

    async def index(self, document: Document, chunks: list[str], source_filename: str) -> IndexReport:
        """Embed and store every chunk of *document*.

        Store failures propagate (the file fails); embedding failures do not.
        """
        total = len(chunks)
        embedded = 0
        failed = 0

        for position, content in enumerate(chunks):
            try:
                vector = await self._embedder.embed_single(content)
            except EmbeddingError as exc:
                failed += 1
                logger.warning(
                    "chunk_embedding_failed",
                    document_id=document.id,
                    file=source_filename,
                    chunk_index=position,
                    error=str(exc),
                )
                continue

            await self._store.save_chunk(
                EmbeddingChunk(
                    document_id=document.id,
                    content=content,
                    vector=vector,
                    metadata={
                        "source_filename": source_filename,
                        "organization": document.source_organization,
                        "year": document.year,
                        "chunk_index": position,
                        "total_chunks": total,
                    },
                )
            )
            embedded += 1

        logger.info(
            "document_indexed",
            document_id=document.id,
            file=source_filename,
            chunks=total,
            embedded=embedded,
            failed=failed,
        )
        return IndexReport(chunks=total, embedded=embedded, failed=failed)
