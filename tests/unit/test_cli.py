"""Unit tests for the ExamBank command line (exambank.cli.ingest)."""

from __future__ import annotations

import json
import logging
from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from exambank.cli.ingest import (
    _build_parser,
    _handle_ingest,
    _handle_search,
    _handle_stats,
    _handle_sync,
    main,
)
from exambank.models.ingestion import IngestionResponse, IngestionResults, SyncReport
from exambank.models.rag import RetrievedChunk
from exambank.utils.errors import StoreError


def _stdout_json(capsys: pytest.CaptureFixture[str]):  # noqa: ANN202
    return json.loads(capsys.readouterr().out)


# ======================================================================
# Argument parsing
# ======================================================================


class TestParser:
    def test_ingest_file(self) -> None:
        args = _build_parser().parse_args(["ingest", "--file", "provas.zip", "--public-url", "https://cdn/p.zip"])
        assert args.command == "ingest"
        assert args.file == "provas.zip"
        assert args.url is None
        assert args.public_url == "https://cdn/p.zip"

    def test_ingest_requires_exactly_one_source(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["ingest"])
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["ingest", "--file", "a.pdf", "--url", "https://x/a.pdf"])

    def test_search_defaults(self) -> None:
        args = _build_parser().parse_args(["search", "cetoacidose"])
        assert args.query == "cetoacidose"
        assert args.top_k == 5
        assert args.min_similarity == pytest.approx(0.3)

    def test_no_command_exits_with_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1


# ======================================================================
# Handlers
# ======================================================================


class TestHandleIngest:
    async def test_local_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "enare_2023.txt"
        path.write_bytes(b"conteudo")
        service = MagicMock()
        service.ingest = AsyncMock(return_value=IngestionResponse.ok(IngestionResults(processed_files=1)))

        args = Namespace(file=str(path), url=None, filename=None, public_url=None)
        assert await _handle_ingest(args, service) == 0

        service.ingest.assert_awaited_once_with(b"conteudo", "enare_2023.txt", public_url=None)
        assert _stdout_json(capsys)["results"]["processedFiles"] == 1

    async def test_url_filename_from_basename(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = MagicMock()
        service.ingest_from_url = AsyncMock(return_value=IngestionResponse.failed("Download failed"))

        args = Namespace(
            file=None,
            url="https://bucket.example/uploads/provas_2024.zip?X-Signature=abc",
            filename=None,
            public_url=None,
        )
        assert await _handle_ingest(args, service) == 1

        assert service.ingest_from_url.await_args.args[1] == "provas_2024.zip"
        assert _stdout_json(capsys) == {"success": False, "error": "Download failed"}


class TestOtherHandlers:
    async def test_sync(self, capsys: pytest.CaptureFixture[str]) -> None:
        consistency_sync = MagicMock()
        consistency_sync.run = AsyncMock(return_value=SyncReport(documents=2, questions=5, embeddings=9))

        assert await _handle_sync(consistency_sync) == 0
        payload = _stdout_json(capsys)
        assert payload["success"] is True
        assert payload["dbSync"]["embeddings"] == 9

    async def test_failed_sync(self, capsys: pytest.CaptureFixture[str]) -> None:
        consistency_sync = MagicMock()
        consistency_sync.run = AsyncMock(side_effect=StoreError(message="database is locked", provider_name="sqlite"))

        assert await _handle_sync(consistency_sync) == 1
        assert _stdout_json(capsys) == {
            "success": False,
            "error": "Consistency sync failed: [sqlite] database is locked",
        }

    async def test_stats(self, capsys: pytest.CaptureFixture[str]) -> None:
        store = MagicMock()
        store.get_counts = AsyncMock(return_value={"documents": 1, "questions": 4, "embeddings": 6})
        tracker = MagicMock()
        tracker.get_summary = AsyncMock(
            return_value={"calls": 3, "tokens_input": 900, "tokens_output": 120, "cost_usd": 0.0063}
        )

        assert await _handle_stats(store, tracker) == 0
        assert _stdout_json(capsys) == {
            "documents": 1,
            "questions": 4,
            "embeddings": 6,
            "usage": {"calls": 3, "tokensInput": 900, "tokensOutput": 120, "costUsd": 0.0063},
        }

    async def test_search(self, capsys: pytest.CaptureFixture[str]) -> None:
        embedder = MagicMock()
        embedder.embed_single = AsyncMock(return_value=[1.0, 0.0])
        store = MagicMock()
        store.search_chunks = AsyncMock(
            return_value=[
                RetrievedChunk(
                    chunk_id="c1",
                    document_id="d1",
                    content="Hidratação venosa vigorosa.",
                    metadata={"source_filename": "enare_2023.pdf"},
                    similarity=0.912345,
                )
            ]
        )
        args = Namespace(query="cetoacidose", top_k=3, min_similarity=0.5)

        assert await _handle_search(args, store, embedder) == 0

        store.search_chunks.assert_awaited_once_with([1.0, 0.0], top_k=3, min_similarity=0.5)
        (hit,) = _stdout_json(capsys)
        assert hit["similarity"] == 0.9123
        assert hit["sourceFilename"] == "enare_2023.pdf"


# ======================================================================
# End to end through main()
# ======================================================================


def _discard_logs(verbose: bool) -> None:
    """Stand-in for the stderr logging setup; capsys streams close after each test."""
    structlog.configure(
        processors=[structlog.processors.add_log_level],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


class TestMain:
    @pytest.fixture(autouse=True)
    def _quiet(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("exambank.cli.ingest._configure_cli_logging", _discard_logs)

    def test_stats_on_empty_database(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))

        with pytest.raises(SystemExit) as exc_info:
            main(["stats"])

        assert exc_info.value.code == 0
        payload = _stdout_json(capsys)
        assert payload["documents"] == 0
        assert payload["usage"]["calls"] == 0

    def test_configuration_error_goes_to_stderr(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
        monkeypatch.setenv("OPENAI_API_KEY", "")

        with pytest.raises(SystemExit) as exc_info:
            main(["search", "cetoacidose"])

        assert exc_info.value.code == 1
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_sync_needs_no_api_keys(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
        monkeypatch.setenv("OPENAI_API_KEY", "")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "")

        with pytest.raises(SystemExit) as exc_info:
            main(["sync"])

        assert exc_info.value.code == 0
        assert _stdout_json(capsys) == {
            "success": True,
            "dbSync": {"documents": 0, "questions": 0, "embeddings": 0, "fixes": [], "healthy": True},
        }

    def test_ingest_without_api_keys_reports_configuration_error(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
        monkeypatch.setenv("OPENAI_API_KEY", "")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "")
        upload = tmp_path / "enare_2023.txt"
        upload.write_text("Questão 1. Texto de prova.", encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            main(["ingest", "--file", str(upload)])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error: [openai_embedding] No embedding provider configured")
        assert "Traceback" not in err
