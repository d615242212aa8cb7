"""Custom exception hierarchy for ExamBank.

All application exceptions inherit from :class:`ExamBankError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "sqlite", "pymupdf") caused the failure.

The hierarchy mirrors the three failure tiers of an ingestion batch:

    ExamBankError  (base -- catch-all for any exambank error)
    +-- BatchAbortedError        (tier 1: nothing in the batch is processed)
    |   +-- UnsupportedFormatError   (upload is neither a document nor a zip)
    |   +-- ArchiveOpenError         (container could not be opened/read)
    |   +-- DownloadError            (signed URL could not be fetched)
    +-- TextExtractionError      (tier 2: one document is unreadable)
    +-- LLMError                 (completion call failed)
    +-- EmbeddingError           (embedding call failed)
    +-- StoreError               (persistence failure)
    +-- ConfigurationError       (startup / missing config)

Tier 3 (candidate rejection) never raises; the quality validator reports
it as a counted outcome.
"""


class ExamBankError(Exception):
    """Base exception for all ExamBank errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Tier 1: whole-batch fatal errors
# ---------------------------------------------------------------------------

class BatchAbortedError(ExamBankError):
    """Raised when a condition aborts the whole batch before any file is processed."""

    def __init__(
        self,
        message: str = "Batch aborted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFormatError(BatchAbortedError):
    """Raised when the uploaded file is neither a supported document nor an archive."""

    def __init__(
        self,
        message: str = "Unsupported format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ArchiveOpenError(BatchAbortedError):
    """Raised when an archive cannot be opened or one of its entries cannot be read."""

    def __init__(
        self,
        message: str = "Could not open archive",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DownloadError(BatchAbortedError):
    """Raised when the upload cannot be fetched from the object store."""

    def __init__(
        self,
        message: str = "Download failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Tier 2: per-file errors
# ---------------------------------------------------------------------------

class TextExtractionError(ExamBankError):
    """Raised when a document has no extractable text (image-only scan, corrupt file)."""

    def __init__(
        self,
        message: str = "No extractable text",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(ExamBankError):
    """Raised when a completion call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(ExamBankError):
    """Raised when an embedding call fails."""

    def __init__(
        self,
        message: str = "Embedding API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(ExamBankError):
    """Raised when the persistent store rejects a read or write."""

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(ExamBankError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
