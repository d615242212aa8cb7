"""Shared pytest fixtures for the ExamBank test suite."""

from __future__ import annotations

import hashlib
import io
import json
import zipfile
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest
import structlog

from exambank.config.loader import PipelineConfig
from exambank.interfaces.embedding_provider import IEmbeddingProvider
from exambank.interfaces.llm_provider import ILLMProvider
from exambank.providers.store.sqlite_question_store import SQLiteQuestionStore
from exambank.utils.errors import EmbeddingError

# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------

SAMPLE_STEM = (
    "A 58-year-old man with type 2 diabetes presents with polyuria, abdominal "
    "pain and Kussmaul breathing. Which is the first step in management?"
)


def make_pdf(*pages: str) -> bytes:
    """Build an in-memory PDF with one text page per argument."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


def make_zip(entries: dict[str, bytes]) -> bytes:
    """Build an in-memory .zip archive from ``{internal_path: content}``."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buf.getvalue()


def candidate_payload(stem: str = SAMPLE_STEM, correct: str = "B", **overrides: Any) -> dict[str, Any]:
    """One question item in the shape the extraction prompt asks for."""
    payload: dict[str, Any] = {
        "stem": stem,
        "option_a": "Start oral metformin and discharge.",
        "option_b": "Intravenous isotonic saline infusion.",
        "option_c": "Subcutaneous long-acting insulin only.",
        "option_d": "Sodium bicarbonate bolus.",
        "option_e": None,
        "correct_option": correct,
        "explanation": "Volume resuscitation comes first in diabetic ketoacidosis.",
        "subject_area": "Endocrinologia",
    }
    payload.update(overrides)
    return payload


def llm_questions(*items: dict[str, Any]) -> str:
    """Serialize candidate items as the model's JSON reply."""
    return json.dumps({"questions": list(items)})


# ---------------------------------------------------------------------------
# Provider fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic 8-dimensional embeddings derived from a hash of the text.

    Calls whose zero-based position is in *fail_on* raise ``EmbeddingError``.
    """

    def __init__(self, dimension: int = 8, fail_on: set[int] | None = None) -> None:
        self._dimension = dimension
        self._fail_on = fail_on or set()
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        position = len(self.calls)
        self.calls.append(text)
        if position in self._fail_on:
            raise EmbeddingError(message="embedding quota exceeded", provider_name="fake")
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b / 255.0) + 0.01 for b in digest[: self._dimension]]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Test isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _uncached_loggers() -> None:
    """Keep module-level loggers from caching a stream that a later test replaces."""
    structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider; set ``complete.return_value`` or ``side_effect`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.complete = AsyncMock(return_value='{"questions": []}')
    return mock


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "exambank-test.db"


@pytest.fixture
async def store(db_path: Path) -> SQLiteQuestionStore:
    """An initialized SQLite store in a temporary directory."""
    question_store = SQLiteQuestionStore(db_path=db_path)
    await question_store.initialize()
    return question_store


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def build_service(store, mock_llm_provider, fake_embedder, pipeline_config):  # noqa: ANN001, ANN201
    """Factory for a fully wired IngestionService over the temp store and fakes."""
    from exambank.main import build_ingestion_service

    def _build(**overrides: Any):  # noqa: ANN202
        kwargs: dict[str, Any] = {
            "pipeline_config": pipeline_config,
            "store": store,
            "llm_provider": mock_llm_provider,
            "embedding_provider": fake_embedder,
        }
        kwargs.update(overrides)
        return build_ingestion_service(**kwargs)

    return _build
