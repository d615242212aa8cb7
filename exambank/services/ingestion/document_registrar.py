"""Document registrar: title dedup plus filename-based attribute inference.

The title (the internal path for archive entries) is the dedup key.  An
existing document is reused as-is; otherwise a new one is inserted with
the exam board, year and category guessed from the filename.  Creation is
upsert-or-fetch against the store's unique title constraint, so two
batches racing on the same title end up sharing one row.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import datetime

import structlog

from exambank.interfaces.question_store import IQuestionStore
from exambank.models.document import Document, DocumentCategory, SourceFile

logger = structlog.get_logger(logger_name=__name__)

_YEAR_RE = re.compile(r"(?<!\d)(20\d{2})(?!\d)")
_SEPARATORS_RE = re.compile(r"[\s_\-]+")

STUDY_MATERIAL_KEYWORDS = ("apostila", "resumo", "material", "notes", "summary", "handout")


def _normalize_for_match(text: str) -> str:
    return _SEPARATORS_RE.sub(" ", text.lower()).strip()


class DocumentRegistrar:
    """Creates or reuses the :class:`Document` row for a source file.

    Parameters
    ----------
    store:
        Persistent store holding the documents table.
    organizations:
        Filename keyword to organization label.  A keyword matches anywhere
        in the filename (``enare2023.pdf`` is ENARE), ignoring case and
        treating ``_``/``-``/spaces alike; the longest matching keyword wins.
    default_organization:
        Label used when no keyword matches.
    current_year:
        Fallback year when the filename carries none.
    """

    def __init__(
        self,
        store: IQuestionStore,
        organizations: Mapping[str, str],
        default_organization: str = "Outras",
        current_year: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._default_organization = default_organization
        self._current_year = current_year or (lambda: datetime.now().year)
        # Longest first so the most specific keyword is tried first.
        self._keywords: list[tuple[str, str]] = [
            (key, label)
            for key, label in sorted(
                ((_normalize_for_match(k), v) for k, v in organizations.items()),
                key=lambda kv: len(kv[0]),
                reverse=True,
            )
            if key
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def register(self, source: SourceFile, public_url: str | None = None) -> tuple[Document, bool]:
        """Return the document for *source* and whether this call created it."""
        existing = await self._store.get_document_by_title(source.name)
        if existing is not None:
            logger.info("document_reused", title=source.name, document_id=existing.id)
            return existing, False

        candidate = Document(
            title=source.name,
            category=self.infer_category(source.name),
            source_organization=self.infer_organization(source.name),
            year=self.infer_year(source.name),
            source_url=public_url,
            processed=True,
            metadata={
                "source_archive": source.source_archive or source.name,
                "internal_path": source.name,
            },
        )
        document, created = await self._store.get_or_create_document(candidate)
        if created:
            logger.info(
                "document_registered",
                title=document.title,
                document_id=document.id,
                organization=document.source_organization,
                year=document.year,
                category=document.category.value,
            )
        else:
            logger.info("document_reused", title=source.name, document_id=document.id, race=True)
        return document, created

    def infer_organization(self, filename: str) -> str:
        normalized = _normalize_for_match(filename)
        for keyword, label in self._keywords:
            if keyword in normalized:
                return label
        return self._default_organization

    def infer_year(self, filename: str) -> int:
        match = _YEAR_RE.search(filename)
        return int(match.group(1)) if match else self._current_year()

    @staticmethod
    def infer_category(filename: str) -> DocumentCategory:
        lowered = filename.lower()
        if any(keyword in lowered for keyword in STUDY_MATERIAL_KEYWORDS):
            return DocumentCategory.STUDY_MATERIAL
        return DocumentCategory.EXAM
