"""Unit tests for the ArchiveExpander."""

from __future__ import annotations

import pytest

from exambank.services.ingestion.archive_expander import ArchiveExpander
from exambank.utils.errors import ArchiveOpenError, BatchAbortedError, UnsupportedFormatError
from tests.conftest import make_pdf, make_zip


class TestSingleDocuments:
    @pytest.mark.parametrize("filename", ["prova.pdf", "RESUMO.TXT", "notes.md"])
    def test_supported_document_yields_itself(self, filename: str) -> None:
        files = ArchiveExpander().expand(b"content", filename)

        assert len(files) == 1
        assert files[0].name == filename
        assert files[0].data == b"content"
        assert files[0].source_archive is None

    @pytest.mark.parametrize("filename", ["prova.docx", "image.png", "noextension"])
    def test_unsupported_format_aborts_batch(self, filename: str) -> None:
        with pytest.raises(UnsupportedFormatError) as exc_info:
            ArchiveExpander().expand(b"content", filename)
        assert isinstance(exc_info.value, BatchAbortedError)
        assert filename in exc_info.value.message


class TestZipArchives:
    def test_lists_supported_entries_in_order(self) -> None:
        pdf = make_pdf("Questao 1. Texto qualquer da prova de residencia medica com conteudo.")
        data = make_zip(
            {
                "2023/usp_2023.pdf": pdf,
                "2023/leia-me.txt": b"Instrucoes gerais",
                "2023/capa.jpg": b"\xff\xd8",
            }
        )
        files = ArchiveExpander().expand(data, "provas.zip")

        assert [f.name for f in files] == ["2023/usp_2023.pdf", "2023/leia-me.txt"]
        assert files[0].data == pdf
        assert all(f.source_archive == "provas.zip" for f in files)

    def test_skips_macos_resource_forks_and_directories(self) -> None:
        data = make_zip(
            {
                "__MACOSX/._enare.pdf": b"fork",
                "pasta/": b"",
                "enare.pdf": b"%PDF",
            }
        )
        files = ArchiveExpander().expand(data, "upload.ZIP")
        assert [f.name for f in files] == ["enare.pdf"]

    def test_empty_archive_yields_nothing(self) -> None:
        assert ArchiveExpander().expand(make_zip({}), "vazio.zip") == []

    def test_corrupt_archive_aborts_batch(self) -> None:
        with pytest.raises(ArchiveOpenError) as exc_info:
            ArchiveExpander().expand(b"PK\x03\x04 truncated garbage", "provas.zip")
        assert isinstance(exc_info.value, BatchAbortedError)
        assert "provas.zip" in str(exc_info.value)
