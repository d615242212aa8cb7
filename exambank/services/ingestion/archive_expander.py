"""Expands an upload into the list of documents to process.

A ``.zip`` upload is enumerated for embedded documents; a plain document
upload yields itself.  Anything else, or an archive that cannot be read,
aborts the whole batch: no embedded file is processed when the container
is damaged.
"""

from __future__ import annotations

import io
import zipfile
import zlib

import structlog

from exambank.models.document import SourceFile
from exambank.services.ingestion.text_extractor import SUPPORTED_EXTENSIONS
from exambank.utils.errors import ArchiveOpenError, UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)

ARCHIVE_EXTENSIONS = frozenset({".zip"})

# macOS Finder adds resource-fork copies of every file under this prefix.
_IGNORED_PREFIXES = ("__MACOSX/",)


class ArchiveExpander:
    """Turns one uploaded blob into :class:`SourceFile` items."""

    def expand(self, data: bytes, filename: str) -> list[SourceFile]:
        """Return the documents contained in the upload.

        Raises
        ------
        UnsupportedFormatError
            If *filename* is neither an archive nor a supported document.
        ArchiveOpenError
            If the archive or one of its document entries cannot be read.
        """
        upload = SourceFile(name=filename, data=data)
        ext = upload.extension

        if ext in ARCHIVE_EXTENSIONS:
            return self._expand_zip(data, filename)
        if ext in SUPPORTED_EXTENSIONS:
            return [upload]

        allowed = ", ".join(sorted(SUPPORTED_EXTENSIONS | ARCHIVE_EXTENSIONS))
        raise UnsupportedFormatError(message=f"Unsupported format '{filename}'. Accepted: {allowed}")

    @staticmethod
    def _expand_zip(data: bytes, filename: str) -> list[SourceFile]:
        files: list[SourceFile] = []
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                for info in archive.infolist():
                    name = info.filename
                    if info.is_dir() or name.startswith(_IGNORED_PREFIXES):
                        continue
                    entry = SourceFile(name=name, data=b"", source_archive=filename)
                    if entry.extension not in SUPPORTED_EXTENSIONS:
                        continue
                    files.append(entry.model_copy(update={"data": archive.read(info)}))
        except (
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            zlib.error,
            RuntimeError,  # encrypted entries
            OSError,
            EOFError,
        ) as exc:
            logger.error("archive_open_failed", archive=filename, error=str(exc))
            raise ArchiveOpenError(message=f"Could not open archive '{filename}': {exc}") from exc

        logger.info("archive_expanded", archive=filename, documents=len(files))
        return files
