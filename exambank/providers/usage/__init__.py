"""Usage-accounting adapters."""

from exambank.providers.usage.sqlite_usage_tracker import SQLiteUsageTracker

__all__ = ["SQLiteUsageTracker"]
