"""SQLite-backed question store.

Persists documents, questions and embedded chunks to a local SQLite
database (``data/exambank.db`` by default) through ``aiosqlite``.  Each
operation opens its own connection with foreign keys enabled.

Vectors are stored as JSON arrays and ranked in-process with numpy cosine
similarity, which is adequate for a single-node corpus of a few thousand
chunks.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
import structlog
from pydantic import ValidationError

from exambank.interfaces.question_store import IQuestionStore
from exambank.models.document import Document, DocumentCategory
from exambank.models.question import QuestionRecord
from exambank.models.rag import EmbeddingChunk, RetrievedChunk
from exambank.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/exambank.db")

# SQLite's default host-parameter limit is 999 on older builds.
_IN_CLAUSE_BATCH = 500

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id                   TEXT    PRIMARY KEY,
    title                TEXT    NOT NULL UNIQUE,
    category             TEXT    NOT NULL DEFAULT 'exam',
    source_organization  TEXT    NOT NULL DEFAULT 'Outras',
    year                 INTEGER NOT NULL,
    source_url           TEXT,
    processed            INTEGER NOT NULL DEFAULT 0,
    metadata             TEXT    NOT NULL DEFAULT '{}',
    created_at           TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS questions (
    id              TEXT PRIMARY KEY,
    document_id     TEXT NOT NULL REFERENCES documents(id),
    stem            TEXT NOT NULL,
    option_a        TEXT,
    option_b        TEXT,
    option_c        TEXT,
    option_d        TEXT,
    option_e        TEXT,
    correct_option  TEXT NOT NULL CHECK (correct_option IN ('A', 'B', 'C', 'D', 'E')),
    explanation     TEXT,
    subject_area    TEXT,
    created_at      TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS embedding_chunks (
    id           TEXT    PRIMARY KEY,
    document_id  TEXT    NOT NULL REFERENCES documents(id),
    chunk_index  INTEGER NOT NULL DEFAULT 0,
    content      TEXT    NOT NULL,
    vector       TEXT    NOT NULL,
    metadata     TEXT    NOT NULL DEFAULT '{}',
    created_at   TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_questions_document ON questions(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_questions_stem ON questions(stem);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON embedding_chunks(document_id, chunk_index);",
]

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents
    (id, title, category, source_organization, year, source_url, processed, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(title) DO NOTHING;
"""

_INSERT_QUESTION_SQL = """\
INSERT INTO questions
    (id, document_id, stem, option_a, option_b, option_c, option_d, option_e,
     correct_option, explanation, subject_area, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_QUESTION_SQL = """\
UPDATE questions
SET stem = ?, option_a = ?, option_b = ?, option_c = ?, option_d = ?, option_e = ?,
    correct_option = ?, explanation = ?, subject_area = ?
WHERE id = ?;
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO embedding_chunks (id, document_id, chunk_index, content, vector, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_MARK_CONTENT_PROCESSED_SQL = """\
UPDATE documents SET processed = 1
WHERE processed = 0
  AND (EXISTS (SELECT 1 FROM questions q WHERE q.document_id = documents.id)
       OR EXISTS (SELECT 1 FROM embedding_chunks c WHERE c.document_id = documents.id));
"""

_REPAIR_OPTION_E_SQL = """\
UPDATE questions SET correct_option = 'A'
WHERE correct_option = 'E' AND (option_e IS NULL OR TRIM(option_e) = '');
"""

_DELETE_ORPHAN_CHUNKS_SQL = """\
DELETE FROM embedding_chunks
WHERE document_id NOT IN (SELECT id FROM documents);
"""

_COUNT_ORPHAN_QUESTIONS_SQL = """\
SELECT COUNT(*) FROM questions
WHERE document_id NOT IN (SELECT id FROM documents);
"""

_RELINK_ORPHAN_QUESTIONS_SQL = """\
UPDATE questions SET document_id = ?
WHERE document_id NOT IN (SELECT id FROM documents);
"""

_COUNT_ANOMALIES_SQL = """\
SELECT
  (SELECT COUNT(*) FROM documents d
   WHERE d.processed = 0
     AND (EXISTS (SELECT 1 FROM questions q WHERE q.document_id = d.id)
          OR EXISTS (SELECT 1 FROM embedding_chunks c WHERE c.document_id = d.id))) AS unprocessed_documents,
  (SELECT COUNT(*) FROM questions
   WHERE correct_option = 'E' AND (option_e IS NULL OR TRIM(option_e) = '')) AS answer_e_without_option,
  (SELECT COUNT(*) FROM embedding_chunks
   WHERE document_id NOT IN (SELECT id FROM documents)) AS orphaned_chunks,
  (SELECT COUNT(*) FROM questions
   WHERE document_id NOT IN (SELECT id FROM documents)) AS orphaned_questions;
"""


class SQLiteQuestionStore(IQuestionStore):
    """SQLite persistence for documents, questions and embedding chunks."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with row access by name and foreign keys on.

        Any ``aiosqlite.Error`` raised inside the block surfaces as
        :class:`StoreError`.
        """
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON;")
                yield db
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"SQLite error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("question_store_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite"

    # ---- Documents ----

    async def get_document_by_title(self, title: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE title = ?", (title,))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def get_or_create_document(self, document: Document) -> tuple[Document, bool]:
        """Insert *document* unless its title exists; always return the stored row.

        ``ON CONFLICT(title) DO NOTHING`` followed by a read makes concurrent
        callers converge on the same row.
        """
        async with self._connect() as db:
            await db.execute(
                _INSERT_DOCUMENT_SQL,
                (
                    document.id,
                    document.title,
                    document.category.value,
                    document.source_organization,
                    document.year,
                    document.source_url,
                    int(document.processed),
                    json.dumps(document.metadata),
                    document.created_at.isoformat(),
                ),
            )
            await db.commit()
            cursor = await db.execute("SELECT * FROM documents WHERE title = ?", (document.title,))
            row = await cursor.fetchone()

        if row is None:
            raise StoreError(
                message=f"Document '{document.title}' missing after upsert",
                provider_name=self.get_provider_name(),
            )
        stored = _row_to_document(row)
        return stored, stored.id == document.id

    # ---- Questions ----

    async def find_existing_stems(self, stems: list[str]) -> set[str]:
        unique = list(dict.fromkeys(s for s in stems if s))
        found: set[str] = set()
        if not unique:
            return found
        async with self._connect() as db:
            for start in range(0, len(unique), _IN_CLAUSE_BATCH):
                batch = unique[start : start + _IN_CLAUSE_BATCH]
                placeholders = ", ".join("?" for _ in batch)
                cursor = await db.execute(
                    f"SELECT DISTINCT stem FROM questions WHERE stem IN ({placeholders})",  # noqa: S608
                    batch,
                )
                found.update(row["stem"] for row in await cursor.fetchall())
        return found

    async def save_questions(self, records: list[QuestionRecord]) -> int:
        if not records:
            return 0
        async with self._connect() as db:
            await db.executemany(_INSERT_QUESTION_SQL, [_question_params(r) for r in records])
            await db.commit()
        logger.debug("questions_saved", count=len(records), document_id=records[0].document_id)
        return len(records)

    async def get_questions_for_document(self, document_id: str) -> list[QuestionRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM questions WHERE document_id = ? ORDER BY created_at, rowid",
                (document_id,),
            )
            rows = await cursor.fetchall()

        records: list[QuestionRecord] = []
        for row in rows:
            try:
                records.append(_row_to_question(row))
            except ValidationError as exc:
                # Rows violating the record invariants are left for the
                # consistency sync to repair.
                logger.warning("question_row_invalid", question_id=row["id"], error=str(exc))
        return records

    async def update_question(self, record: QuestionRecord) -> None:
        async with self._connect() as db:
            await db.execute(
                _UPDATE_QUESTION_SQL,
                (
                    record.stem,
                    record.option_a,
                    record.option_b,
                    record.option_c,
                    record.option_d,
                    record.option_e,
                    record.correct_option,
                    record.explanation,
                    record.subject_area,
                    record.id,
                ),
            )
            await db.commit()

    # ---- Embedding chunks ----

    async def save_chunk(self, chunk: EmbeddingChunk) -> None:
        async with self._connect() as db:
            await db.execute(
                _INSERT_CHUNK_SQL,
                (
                    chunk.id,
                    chunk.document_id,
                    int(chunk.metadata.get("chunk_index", 0)),
                    chunk.content,
                    json.dumps(chunk.vector),
                    json.dumps(chunk.metadata),
                    chunk.created_at.isoformat(),
                ),
            )
            await db.commit()

    async def get_chunks_for_document(self, document_id: str, limit: int | None = None) -> list[EmbeddingChunk]:
        sql = "SELECT * FROM embedding_chunks WHERE document_id = ? ORDER BY chunk_index, rowid"
        params: tuple[Any, ...] = (document_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (document_id, limit)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_chunk(row) for row in rows]

    async def search_chunks(
        self,
        vector: list[float],
        top_k: int = 5,
        min_similarity: float = 0.3,
    ) -> list[RetrievedChunk]:
        """Rank every stored chunk by cosine similarity to *vector*.

        Chunks whose vector length differs from the query (written under a
        different embedding model) are ignored.
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, document_id, content, vector, metadata FROM embedding_chunks"
            )
            rows = await cursor.fetchall()

        query = np.asarray(vector, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if not rows or query_norm == 0:
            return []

        candidates = [(row, json.loads(row["vector"])) for row in rows]
        candidates = [(row, vec) for row, vec in candidates if len(vec) == query.shape[0]]
        if not candidates:
            return []

        matrix = np.asarray([vec for _, vec in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0] = np.inf
        scores = (matrix @ query) / (norms * query_norm)

        order = np.argsort(-scores)
        results: list[RetrievedChunk] = []
        for idx in order:
            score = float(scores[idx])
            if score <= min_similarity or len(results) >= top_k:
                break
            row = candidates[idx][0]
            results.append(
                RetrievedChunk(
                    chunk_id=row["id"],
                    document_id=row["document_id"],
                    content=row["content"],
                    metadata=json.loads(row["metadata"]),
                    similarity=max(-1.0, min(1.0, score)),
                )
            )
        return results

    # ---- Aggregates and consistency ----

    async def get_counts(self) -> dict[str, int]:
        async with self._connect() as db:
            counts = {}
            for key, table in (
                ("documents", "documents"),
                ("questions", "questions"),
                ("embeddings", "embedding_chunks"),
            ):
                cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
                row = await cursor.fetchone()
                counts[key] = row[0]
        return counts

    async def mark_documents_with_content_processed(self) -> int:
        return await self._execute_write(_MARK_CONTENT_PROCESSED_SQL)

    async def repair_missing_option_e(self) -> int:
        return await self._execute_write(_REPAIR_OPTION_E_SQL)

    async def delete_orphaned_chunks(self) -> int:
        return await self._execute_write(_DELETE_ORPHAN_CHUNKS_SQL)

    async def count_orphaned_questions(self) -> int:
        async with self._connect() as db:
            cursor = await db.execute(_COUNT_ORPHAN_QUESTIONS_SQL)
            row = await cursor.fetchone()
        return row[0]

    async def relink_orphaned_questions(self, document_id: str) -> int:
        return await self._execute_write(_RELINK_ORPHAN_QUESTIONS_SQL, (document_id,))

    async def count_anomalies(self) -> dict[str, int]:
        async with self._connect() as db:
            cursor = await db.execute(_COUNT_ANOMALIES_SQL)
            row = await cursor.fetchone()
        return dict(row)

    async def _execute_write(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.rowcount


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------

def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        category=DocumentCategory(row["category"]),
        source_organization=row["source_organization"],
        year=row["year"],
        source_url=row["source_url"],
        processed=bool(row["processed"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )


def _row_to_question(row: aiosqlite.Row) -> QuestionRecord:
    return QuestionRecord(
        id=row["id"],
        document_id=row["document_id"],
        stem=row["stem"],
        option_a=row["option_a"],
        option_b=row["option_b"],
        option_c=row["option_c"],
        option_d=row["option_d"],
        option_e=row["option_e"],
        correct_option=row["correct_option"],
        explanation=row["explanation"] or "",
        subject_area=row["subject_area"] or "",
        created_at=row["created_at"],
    )


def _row_to_chunk(row: aiosqlite.Row) -> EmbeddingChunk:
    return EmbeddingChunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        vector=json.loads(row["vector"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )


def _question_params(record: QuestionRecord) -> tuple[Any, ...]:
    return (
        record.id,
        record.document_id,
        record.stem,
        record.option_a,
        record.option_b,
        record.option_c,
        record.option_d,
        record.option_e,
        record.correct_option,
        record.explanation,
        record.subject_area,
        record.created_at.isoformat(),
    )
