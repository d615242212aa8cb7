"""Unit tests for structlog setup and run-scoped log context."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from exambank.utils.logging import (
    configure_logging,
    file_context,
    get_logger,
    ingestion_context,
    new_batch_id,
)


@pytest.fixture(autouse=True)
def _restore_logging():  # noqa: ANN202
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


def _json_lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


# ======================================================================
# Context binding
# ======================================================================


class TestRunContext:
    def test_ingestion_and_file_bindings_nest_and_unwind(self) -> None:
        with ingestion_context("provas.zip", batch_id="b-1") as batch_id:
            assert batch_id == "b-1"
            assert structlog.contextvars.get_contextvars() == {"batch_id": "b-1", "upload": "provas.zip"}

            with file_context("2023/enare_2023.pdf"):
                assert structlog.contextvars.get_contextvars()["file"] == "2023/enare_2023.pdf"

            assert "file" not in structlog.contextvars.get_contextvars()

        assert structlog.contextvars.get_contextvars() == {}

    def test_bindings_are_removed_when_the_run_raises(self) -> None:
        with pytest.raises(RuntimeError), ingestion_context("provas.zip"):
            raise RuntimeError("boom")

        assert structlog.contextvars.get_contextvars() == {}

    def test_generated_batch_ids(self) -> None:
        first, second = new_batch_id(), new_batch_id()
        assert len(first) == 12
        int(first, 16)
        assert first != second


# ======================================================================
# configure_logging
# ======================================================================


class TestConfigureLogging:
    def test_json_events_carry_run_context(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream, cache_loggers=False)

        with ingestion_context("provas.zip", batch_id="b-2"), file_context("usp_2021.pdf"):
            get_logger("exambank.tests").info("file_processed", chunks=3)

        event = _json_lines(stream)[-1]
        assert event["event"] == "file_processed"
        assert event["level"] == "info"
        assert event["chunks"] == 3
        assert event["batch_id"] == "b-2"
        assert event["upload"] == "provas.zip"
        assert event["file"] == "usp_2021.pdf"
        assert event["logger_name"] == "exambank.tests"

    def test_level_filter(self) -> None:
        stream = io.StringIO()
        configure_logging("WARNING", json_output=True, stream=stream, cache_loggers=False)

        logger = get_logger("exambank.tests")
        logger.info("chunking_complete")
        logger.warning("file_failed", error="too short")

        assert [e["event"] for e in _json_lines(stream)] == ["file_failed"]

    def test_stdlib_records_share_the_stream(self) -> None:
        stream = io.StringIO()
        configure_logging("DEBUG", json_output=True, stream=stream, cache_loggers=False)

        logging.getLogger("uvicorn.error").warning("Application startup complete.")

        assert _json_lines(stream)[-1]["event"] == "Application startup complete."

    def test_third_party_loggers_are_quieted(self) -> None:
        configure_logging("DEBUG", stream=io.StringIO(), cache_loggers=False)

        for name in ("httpx", "openai", "anthropic"):
            assert logging.getLogger(name).getEffectiveLevel() == logging.WARNING
