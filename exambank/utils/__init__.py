"""Utility modules for ExamBank.

- **errors** -- Domain-specific exception hierarchy rooted at ExamBankError,
  grouped by the failure tier it belongs to (batch, file, provider).
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **llm_json** -- Lenient JSON extraction from model responses.
- **text_normalizer** -- Whitespace normalization for extracted document
  text and answer-option normalization for the quality rules.
"""

from exambank.utils.errors import (
    ArchiveOpenError,
    BatchAbortedError,
    ConfigurationError,
    DownloadError,
    EmbeddingError,
    ExamBankError,
    LLMError,
    StoreError,
    TextExtractionError,
    UnsupportedFormatError,
)
from exambank.utils.llm_json import extract_json
from exambank.utils.logging import configure_logging, get_logger
from exambank.utils.text_normalizer import (
    collapse_whitespace,
    normalize_document_text,
    normalize_option,
)

__all__ = [
    "ArchiveOpenError",
    "BatchAbortedError",
    "ConfigurationError",
    "DownloadError",
    "EmbeddingError",
    "ExamBankError",
    "LLMError",
    "StoreError",
    "TextExtractionError",
    "UnsupportedFormatError",
    "collapse_whitespace",
    "configure_logging",
    "extract_json",
    "get_logger",
    "normalize_document_text",
    "normalize_option",
]
