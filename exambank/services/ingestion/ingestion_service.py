"""Orchestrator for the exam-document ingestion pipeline.

Flow for one upload::

    bytes -> ArchiveExpander -> [per file] TextExtractor
          -> TextChunker -> DocumentRegistrar -> EmbeddingIndexer
          -> QuestionExtractor -> QualityValidator -> store -> AutoFixer
    -> ConsistencySync -> notification

Files are processed one after another.  Failure tiers:

1. **Whole batch** -- unsupported format, unreadable archive or failed
   download (:class:`~exambank.utils.errors.BatchAbortedError`): nothing is
   processed and the response is ``success: false``.
2. **Per file** -- any other :class:`~exambank.utils.errors.ExamBankError`
   raised while handling one file is itemized in ``errors`` as
   ``"<file>: <message>"`` and the next file proceeds.
3. **Per candidate** -- validator rejections and skips are counters only.

The auto-fix loop, the consistency sync and the notification each run
behind their own error boundary; their failures are logged and never fail
the batch.  Per-file outcomes are folded into an immutable
:class:`~exambank.models.ingestion.IngestionResults`.

A title that is already registered is reused and its file is counted as
processed, but it is not embedded or mined for questions again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from exambank.models.ingestion import (
    AutoFixReport,
    FileOutcome,
    IngestionResponse,
    IngestionResults,
    SyncReport,
)
from exambank.models.question import QuestionCandidate, QuestionRecord, ValidationStatus
from exambank.utils.errors import BatchAbortedError, ConfigurationError, ExamBankError
from exambank.utils.logging import file_context, ingestion_context

if TYPE_CHECKING:
    from exambank.interfaces.notification_provider import INotificationProvider
    from exambank.interfaces.object_store_provider import IObjectStoreProvider
    from exambank.interfaces.question_store import IQuestionStore
    from exambank.models.document import Document, SourceFile
    from exambank.services.ingestion.archive_expander import ArchiveExpander
    from exambank.services.ingestion.auto_fixer import AutoFixer
    from exambank.services.ingestion.chunker import TextChunker
    from exambank.services.ingestion.consistency_sync import ConsistencySync
    from exambank.services.ingestion.document_registrar import DocumentRegistrar
    from exambank.services.ingestion.embedding_indexer import EmbeddingIndexer
    from exambank.services.ingestion.quality_validator import QualityValidator
    from exambank.services.ingestion.question_extractor import QuestionExtractor
    from exambank.services.ingestion.text_extractor import TextExtractor

logger = structlog.get_logger(logger_name=__name__)

INGESTION_COMPLETED_EVENT = "ingestion_completed"


class IngestionService:
    """Runs one upload through the whole pipeline.

    All collaborators are injected; see ``exambank.main.build_ingestion_service``
    for the production wiring.
    """

    def __init__(
        self,
        store: IQuestionStore,
        expander: ArchiveExpander,
        text_extractor: TextExtractor,
        chunker: TextChunker,
        registrar: DocumentRegistrar,
        indexer: EmbeddingIndexer,
        question_extractor: QuestionExtractor,
        validator: QualityValidator,
        auto_fixer: AutoFixer,
        consistency_sync: ConsistencySync,
        object_store: IObjectStoreProvider | None = None,
        notifier: INotificationProvider | None = None,
    ) -> None:
        self._store = store
        self._expander = expander
        self._text_extractor = text_extractor
        self._chunker = chunker
        self._registrar = registrar
        self._indexer = indexer
        self._question_extractor = question_extractor
        self._validator = validator
        self._auto_fixer = auto_fixer
        self._consistency_sync = consistency_sync
        self._object_store = object_store
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_from_url(
        self,
        download_url: str,
        filename: str,
        public_url: str | None = None,
    ) -> IngestionResponse:
        """Download the upload from a signed URL, then :meth:`ingest` it."""
        if self._object_store is None:
            raise ConfigurationError(message="No object store configured for URL ingestion")
        try:
            data = await self._object_store.download(download_url)
        except BatchAbortedError as exc:
            logger.error("ingestion_aborted", file=filename, error=str(exc))
            return IngestionResponse.failed(str(exc))
        return await self.ingest(data, filename, public_url=public_url)

    async def ingest(self, data: bytes, filename: str, public_url: str | None = None) -> IngestionResponse:
        """Process one uploaded blob (a document or an archive of documents).

        Every event logged during the run carries ``batch_id`` and ``upload``.
        """
        with ingestion_context(filename):
            return await self._ingest(data, filename, public_url)

    async def _ingest(self, data: bytes, filename: str, public_url: str | None) -> IngestionResponse:
        logger.info("ingestion_started", bytes=len(data))
        try:
            sources = self._expander.expand(data, filename)
        except BatchAbortedError as exc:
            logger.error("ingestion_aborted", error=str(exc))
            return IngestionResponse.failed(str(exc))

        results = IngestionResults()
        for source in sources:
            outcome = await self._process_file(source, public_url)
            results = results.merge(outcome)

        results = results.with_sync(await self.sync())
        await self._notify(results)

        logger.info(
            "ingestion_complete",
            processed_files=results.processed_files,
            questions_generated=results.questions_generated,
            questions_rejected=results.questions_rejected,
            rag_chunks=results.rag_chunks,
            errors=len(results.errors),
        )
        return IngestionResponse.ok(results)

    async def sync(self) -> SyncReport | None:
        """Run the consistency sync; ``None`` if it failed."""
        try:
            return await self._consistency_sync.run()
        except ExamBankError as exc:
            logger.error("consistency_sync_failed", error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Per-file processing
    # ------------------------------------------------------------------

    async def _process_file(self, source: SourceFile, public_url: str | None) -> FileOutcome:
        with file_context(source.name):
            return await self._process_bound_file(source, public_url)

    async def _process_bound_file(self, source: SourceFile, public_url: str | None) -> FileOutcome:
        rag_chunks = 0
        embedding_failures = 0
        try:
            text = self._text_extractor.extract(source)
            chunks = self._chunker.chunk(text)

            document, created = await self._registrar.register(source, public_url)
            if not created:
                logger.info("file_skipped_duplicate", document_id=document.id)
                return FileOutcome(filename=source.name, processed=True, duplicate=True)

            rag_chunks = len(chunks)
            index_report = await self._indexer.index(document, chunks, source.name)
            embedding_failures = index_report.failed

            candidates = await self._question_extractor.extract(text, source.name, document.category)
            outcome = await self._save_candidates(document, candidates)
            fix_report = await self._auto_fix(document.id) if outcome.questions_generated else AutoFixReport()
        except ExamBankError as exc:
            logger.warning("file_failed", error=str(exc), error_type=type(exc).__name__)
            return FileOutcome(
                filename=source.name,
                rag_chunks=rag_chunks,
                embedding_failures=embedding_failures,
                error=f"{source.name}: {exc}",
            )

        logger.info(
            "file_processed",
            document_id=document.id,
            chunks=rag_chunks,
            saved=outcome.questions_generated,
            rejected=outcome.questions_rejected,
            skipped=outcome.questions_skipped,
        )
        return outcome.model_copy(
            update={
                "processed": True,
                "rag_chunks": rag_chunks,
                "embedding_failures": embedding_failures,
                "questions_auto_fixed": fix_report.flagged,
                "questions_auto_fix_unresolved": fix_report.unresolved,
            }
        )

    async def _save_candidates(self, document: Document, candidates: list[QuestionCandidate]) -> FileOutcome:
        """Validate *candidates* and persist the accepted ones."""
        known_stems = await self._store.find_existing_stems([c.stem for c in candidates])
        records: list[QuestionRecord] = []
        rejected = 0
        skipped = 0
        reasons: dict[str, int] = {}

        for candidate in candidates:
            result = self._validator.validate(candidate, known_stems)
            if result.status is ValidationStatus.REJECT:
                rejected += 1
                reasons[result.reason.value] = reasons.get(result.reason.value, 0) + 1
                logger.debug("candidate_rejected", document_id=document.id, reason=result.reason.value)
                continue
            if result.status is ValidationStatus.SKIP:
                skipped += 1
                continue

            known_stems = known_stems | {candidate.stem}
            records.append(
                QuestionRecord(
                    document_id=document.id,
                    stem=candidate.stem,
                    option_a=candidate.option_a,
                    option_b=candidate.option_b,
                    option_c=candidate.option_c,
                    option_d=candidate.option_d,
                    option_e=candidate.option_e,
                    correct_option=result.correct_option,
                    explanation=candidate.explanation,
                    subject_area=candidate.subject_area,
                )
            )

        saved = await self._store.save_questions(records)
        return FileOutcome(
            filename=document.title,
            questions_generated=saved,
            questions_rejected=rejected,
            questions_skipped=skipped,
            rejection_reasons=reasons,
        )

    async def _auto_fix(self, document_id: str) -> AutoFixReport:
        try:
            return await self._auto_fixer.run(document_id)
        except ExamBankError as exc:
            logger.error("auto_fix_failed", document_id=document_id, error=str(exc))
            return AutoFixReport()

    async def _notify(self, results: IngestionResults) -> None:
        if self._notifier is None or results.processed_files < 1:
            return
        try:
            await self._notifier.notify(
                INGESTION_COMPLETED_EVENT,
                {
                    "processedFiles": results.processed_files,
                    "questionsGenerated": results.questions_generated,
                },
            )
        except ExamBankError as exc:
            logger.warning("notification_failed", error=str(exc))
