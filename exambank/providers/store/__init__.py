"""Persistent store adapters."""

from exambank.providers.store.sqlite_question_store import SQLiteQuestionStore

__all__ = ["SQLiteQuestionStore"]
