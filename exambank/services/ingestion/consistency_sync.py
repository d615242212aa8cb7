"""Post-batch reconciliation of the store.

Runs once after every file of a batch has been handled, whether the files
succeeded or not.  Each check heals what it finds and adds a
human-readable line to the report:

* documents that own questions or chunks but are not flagged processed
  are flagged;
* questions answering ``E`` without an option E are reset to ``A``;
* chunks whose document no longer exists are deleted;
* questions whose document no longer exists are re-attached to a
  "Recovered questions" document (created on demand, upsert-or-fetch).

A second run right after the first finds nothing and changes nothing.
``healthy`` is true when no anomaly is left once the repairs have run,
so a run that heals everything it finds still reports healthy.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from exambank.interfaces.question_store import IQuestionStore
from exambank.models.document import Document, DocumentCategory
from exambank.models.ingestion import SyncReport

logger = structlog.get_logger(logger_name=__name__)

RECOVERY_DOCUMENT_TITLE = "Recovered questions"


class ConsistencySync:
    """Reconciles aggregate counts and heals orphaned references."""

    def __init__(self, store: IQuestionStore, current_year: Callable[[], int] | None = None) -> None:
        self._store = store
        self._current_year = current_year or (lambda: datetime.now().year)

    async def run(self) -> SyncReport:
        fixes: list[str] = []

        marked = await self._store.mark_documents_with_content_processed()
        if marked:
            fixes.append(f"Marked {marked} document(s) with content as processed")

        repaired = await self._store.repair_missing_option_e()
        if repaired:
            fixes.append(f"Reset correct_option E to A on {repaired} question(s) without option E")

        deleted = await self._store.delete_orphaned_chunks()
        if deleted:
            fixes.append(f"Deleted {deleted} orphaned embedding chunk(s)")

        orphans = await self._store.count_orphaned_questions()
        if orphans:
            recovery, _ = await self._store.get_or_create_document(
                Document(
                    title=RECOVERY_DOCUMENT_TITLE,
                    category=DocumentCategory.EXAM,
                    year=self._current_year(),
                    processed=True,
                    metadata={"recovered": True},
                )
            )
            relinked = await self._store.relink_orphaned_questions(recovery.id)
            fixes.append(f"Relinked {relinked} orphaned question(s) to '{RECOVERY_DOCUMENT_TITLE}'")

        remaining = {name: count for name, count in (await self._store.count_anomalies()).items() if count}
        if remaining:
            logger.warning("consistency_sync_unresolved", **remaining)

        counts = await self._store.get_counts()
        report = SyncReport(
            documents=counts.get("documents", 0),
            questions=counts.get("questions", 0),
            embeddings=counts.get("embeddings", 0),
            fixes=fixes,
            healthy=not remaining,
        )
        logger.info("consistency_sync_complete", **report.model_dump(exclude={"fixes"}), fixes=len(fixes))
        return report
