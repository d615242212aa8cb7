"""SQLite-backed usage-accounting sink.

Records one row per completion/embedding call in ``api_usage_logs`` with a
cost computed from a per-model price table (USD per 1K tokens).  Unknown
models are logged at zero cost.  Failures are logged and swallowed so a
broken accounting table never fails an ingestion.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from exambank.interfaces.usage_tracker import IUsageTracker

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/exambank.db")

# (input, output) USD per 1K tokens.
MODEL_PRICES: dict[str, tuple[float, float]] = {
    "claude-3-haiku-20240307": (0.00025, 0.00125),
    "claude-3-sonnet-20240229": (0.003, 0.015),
    "claude-3-opus-20240229": (0.015, 0.075),
    "claude-sonnet-4-20250514": (0.003, 0.015),
    "gpt-3.5-turbo": (0.0005, 0.0015),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-4o": (0.005, 0.015),
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4.1": (0.002, 0.008),
    "gpt-4.1-mini": (0.0004, 0.0016),
    "text-embedding-3-small": (0.00002, 0.0),
}

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS api_usage_logs (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    provider       TEXT    NOT NULL,
    model          TEXT    NOT NULL,
    tokens_input   INTEGER NOT NULL DEFAULT 0,
    tokens_output  INTEGER NOT NULL DEFAULT 0,
    cost_usd       REAL    NOT NULL DEFAULT 0,
    context        TEXT,
    created_at     TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_api_usage_created_at ON api_usage_logs(created_at);"

_INSERT_SQL = """\
INSERT INTO api_usage_logs (provider, model, tokens_input, tokens_output, cost_usd, context)
VALUES (?, ?, ?, ?, ?, ?);
"""


def compute_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """Return the USD cost of a call; unknown models cost nothing."""
    price_in, price_out = MODEL_PRICES.get(model, (0.0, 0.0))
    return tokens_input / 1000 * price_in + tokens_output / 1000 * price_out


class SQLiteUsageTracker(IUsageTracker):
    """Usage accounting persisted to the ``api_usage_logs`` table."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_INDEX_SQL)
            await db.commit()
        logger.info("usage_db_initialized", path=str(self._db_path))

    async def log_usage(
        self,
        provider: str,
        model: str,
        tokens_input: int,
        tokens_output: int = 0,
        context: str = "",
    ) -> None:
        cost = compute_cost(model, tokens_input, tokens_output)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (provider, model, tokens_input, tokens_output, cost, context),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            logger.error("usage_log_failed", provider=provider, model=model, error=str(exc))
            return
        logger.debug("usage_logged", provider=provider, model=model, cost_usd=round(cost, 6), context=context)

    async def get_summary(self) -> dict[str, Any]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT COUNT(*), COALESCE(SUM(tokens_input), 0), "
                "COALESCE(SUM(tokens_output), 0), COALESCE(SUM(cost_usd), 0) "
                "FROM api_usage_logs"
            )
            row = await cursor.fetchone()
        return {
            "calls": row[0],
            "tokens_input": row[1],
            "tokens_output": row[2],
            "cost_usd": round(row[3], 6),
        }

    def get_provider_name(self) -> str:
        return "sqlite_usage"
