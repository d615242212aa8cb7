"""Unit tests for the SQLite usage-accounting sink."""

from __future__ import annotations

from pathlib import Path

import pytest

from exambank.providers.usage.sqlite_usage_tracker import SQLiteUsageTracker, compute_cost


class TestComputeCost:
    def test_known_model(self) -> None:
        assert compute_cost("gpt-4o", 1000, 1000) == pytest.approx(0.005 + 0.015)

    def test_embedding_model_has_no_output_price(self) -> None:
        assert compute_cost("text-embedding-3-small", 50_000, 0) == pytest.approx(0.001)

    def test_unknown_model_is_free(self) -> None:
        assert compute_cost("some-local-model", 10_000, 10_000) == 0.0


class TestSQLiteUsageTracker:
    @pytest.fixture()
    async def tracker(self, tmp_path: Path) -> SQLiteUsageTracker:
        usage = SQLiteUsageTracker(db_path=tmp_path / "nested" / "usage.db")
        await usage.initialize()
        return usage

    async def test_empty_summary(self, tracker: SQLiteUsageTracker) -> None:
        assert await tracker.get_summary() == {
            "calls": 0,
            "tokens_input": 0,
            "tokens_output": 0,
            "cost_usd": 0,
        }

    async def test_summary_totals(self, tracker: SQLiteUsageTracker) -> None:
        await tracker.log_usage("openai", "gpt-4o", tokens_input=2000, tokens_output=1000, context="completion")
        await tracker.log_usage("openai_embedding", "text-embedding-3-small", tokens_input=500, context="embedding")

        summary = await tracker.get_summary()

        assert summary["calls"] == 2
        assert summary["tokens_input"] == 2500
        assert summary["tokens_output"] == 1000
        assert summary["cost_usd"] == pytest.approx(0.01 + 0.015 + 0.00001)

    async def test_log_failure_is_swallowed(self, tmp_path: Path) -> None:
        # No initialize(): the table does not exist.
        tracker = SQLiteUsageTracker(db_path=tmp_path / "missing.db")
        await tracker.log_usage("openai", "gpt-4o", tokens_input=10)

    def test_provider_name(self, tmp_path: Path) -> None:
        assert SQLiteUsageTracker(db_path=tmp_path / "u.db").get_provider_name() == "sqlite_usage"
