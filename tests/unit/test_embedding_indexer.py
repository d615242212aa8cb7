"""Unit tests for the EmbeddingIndexer."""

from __future__ import annotations

from exambank.models.document import Document
from exambank.services.ingestion.embedding_indexer import EmbeddingIndexer
from tests.conftest import FakeEmbeddingProvider


async def _document(store) -> Document:  # noqa: ANN001
    document, _ = await store.get_or_create_document(
        Document(title="enare_2023.pdf", year=2023, source_organization="ENARE")
    )
    return document


class TestEmbeddingIndexer:
    async def test_stores_every_chunk_with_provenance(self, store, fake_embedder) -> None:  # noqa: ANN001
        document = await _document(store)
        chunks = ["Primeiro trecho.", "Segundo trecho.", "Terceiro trecho."]

        report = await EmbeddingIndexer(fake_embedder, store).index(document, chunks, "enare_2023.pdf")

        assert (report.chunks, report.embedded, report.failed) == (3, 3, 0)
        assert fake_embedder.calls == chunks

        stored = await store.get_chunks_for_document(document.id)
        assert [c.content for c in stored] == chunks
        assert len(stored[0].vector) == fake_embedder.get_dimension()
        assert stored[1].metadata == {
            "source_filename": "enare_2023.pdf",
            "organization": "ENARE",
            "year": 2023,
            "chunk_index": 1,
            "total_chunks": 3,
        }

    async def test_failed_chunk_is_counted_and_skipped(self, store) -> None:  # noqa: ANN001
        document = await _document(store)
        embedder = FakeEmbeddingProvider(fail_on={1})

        report = await EmbeddingIndexer(embedder, store).index(document, ["um", "dois", "três"], "f.pdf")

        assert (report.chunks, report.embedded, report.failed) == (3, 2, 1)
        stored = await store.get_chunks_for_document(document.id)
        assert [c.content for c in stored] == ["um", "três"]
        assert [c.metadata["chunk_index"] for c in stored] == [0, 2]

    async def test_no_chunks(self, store, fake_embedder) -> None:  # noqa: ANN001
        document = await _document(store)
        report = await EmbeddingIndexer(fake_embedder, store).index(document, [], "f.pdf")
        assert report.chunks == 0
        assert fake_embedder.calls == []
