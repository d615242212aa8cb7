"""Text extraction for single documents.

PDFs are read page by page with PyMuPDF (fitz) from an in-memory stream;
plain-text and Markdown files are decoded as UTF-8.  Output keeps
paragraph breaks so the chunker can split on them.

A document whose collapsed text is shorter than
:data:`MIN_READABLE_CHARS` is treated as unreadable (typically an
image-only scan without an OCR layer) and raises
:class:`~exambank.utils.errors.TextExtractionError`.  That error is
per-file: the orchestrator records it and moves on to the next file.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from exambank.models.document import SourceFile
from exambank.utils.errors import TextExtractionError
from exambank.utils.text_normalizer import collapse_whitespace, normalize_document_text

logger = structlog.get_logger(logger_name=__name__)

MIN_READABLE_CHARS = 50

PDF_EXTENSIONS = frozenset({".pdf"})
TEXT_EXTENSIONS = frozenset({".txt", ".md"})
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS | TEXT_EXTENSIONS


class TextExtractor:
    """Pulls normalized text out of one document's bytes."""

    def extract(self, source: SourceFile) -> str:
        """Return the document's normalized text.

        Raises
        ------
        TextExtractionError
            If the bytes cannot be parsed or yield fewer than
            ``MIN_READABLE_CHARS`` characters of text.
        """
        ext = source.extension
        if ext in PDF_EXTENSIONS:
            raw = self._extract_pdf(source)
        elif ext in TEXT_EXTENSIONS:
            raw = source.data.decode("utf-8", errors="replace")
        else:
            raise TextExtractionError(message=f"Unsupported document type '{ext or source.name}'")

        text = normalize_document_text(raw)
        readable_chars = len(collapse_whitespace(text))
        if readable_chars < MIN_READABLE_CHARS:
            logger.warning("document_unreadable", file=source.name, chars=readable_chars)
            raise TextExtractionError(
                message=(
                    f"Unreadable document: only {readable_chars} characters of text "
                    "(image-only scan?)"
                )
            )

        logger.debug("text_extracted", file=source.name, chars=len(text))
        return text

    @staticmethod
    def _extract_pdf(source: SourceFile) -> str:
        try:
            doc = fitz.open(stream=source.data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            logger.warning("pdf_open_failed", file=source.name, error=str(exc))
            raise TextExtractionError(
                message=f"Unreadable document: could not open PDF ({exc})",
                provider_name="pymupdf",
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        except (RuntimeError, ValueError) as exc:
            logger.warning("pdf_read_failed", file=source.name, error=str(exc))
            raise TextExtractionError(
                message=f"Unreadable document: could not read PDF ({exc})",
                provider_name="pymupdf",
            ) from exc
        finally:
            doc.close()

        return "\n\n".join(pages)
