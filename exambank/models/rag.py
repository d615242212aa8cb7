"""Retrieval corpus models: embedded chunks and search hits."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingChunk(BaseModel):
    """One chunk of a document's text with its embedding vector.

    ``metadata`` carries the provenance written by the embedding indexer:
    ``source_filename``, ``organization``, ``year``, ``chunk_index`` and
    ``total_chunks``.  Chunks are written once and never updated.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    content: str
    vector: list[float] = Field(description="Embedding vector; length equals the provider dimension.")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class RetrievedChunk(BaseModel):
    """A chunk returned by a similarity search, with its cosine similarity."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: float = Field(ge=-1.0, le=1.0)


class IndexReport(BaseModel):
    """Counts from embedding one document's chunks."""

    model_config = ConfigDict(frozen=True)

    chunks: int = 0
    embedded: int = 0
    failed: int = 0
