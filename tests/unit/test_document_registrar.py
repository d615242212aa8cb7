"""Unit tests for the DocumentRegistrar (inference rules and title dedup)."""

from __future__ import annotations

import pytest

from exambank.config.loader import PipelineConfig
from exambank.models.document import DocumentCategory, SourceFile
from exambank.services.ingestion.document_registrar import DocumentRegistrar


def _registrar(store=None) -> DocumentRegistrar:  # noqa: ANN001
    config = PipelineConfig()
    return DocumentRegistrar(
        store=store,
        organizations=config.organizations,
        default_organization=config.default_organization,
        current_year=lambda: 2031,
    )


class TestInference:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("ENARE_2023_objetiva.pdf", "ENARE"),
            ("provas/usp-rp 2022.pdf", "USP-RP"),
            ("usp_rp_2022.pdf", "USP-RP"),
            ("USP 2021 R1.pdf", "USP"),
            ("santa_casa-2020.pdf", "SANTA CASA"),
            ("unicamp2019.pdf", "UNICAMP"),
            ("enare2023.pdf", "ENARE"),
            ("UNIFESP-R1_2024.pdf", "UNIFESP"),
            ("campus_notes.pdf", "Outras"),
        ],
    )
    def test_infer_organization(self, filename: str, expected: str) -> None:
        assert _registrar().infer_organization(filename) == expected

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("enare_2023.pdf", 2023),
            ("prova-2019-final.pdf", 2019),
            ("questoes 120234.pdf", 2031),
            ("sem_ano.pdf", 2031),
        ],
    )
    def test_infer_year_falls_back_to_current_year(self, filename: str, expected: int) -> None:
        assert _registrar().infer_year(filename) == expected

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("Apostila_Cardiologia.pdf", DocumentCategory.STUDY_MATERIAL),
            ("resumo-pediatria.txt", DocumentCategory.STUDY_MATERIAL),
            ("enare_2023.pdf", DocumentCategory.EXAM),
        ],
    )
    def test_infer_category(self, filename: str, expected: DocumentCategory) -> None:
        assert _registrar().infer_category(filename) is expected


class TestRegister:
    async def test_creates_document_with_provenance(self, store) -> None:  # noqa: ANN001
        source = SourceFile(name="2023/enare_2023.pdf", data=b"", source_archive="provas.zip")
        document, created = await _registrar(store).register(source, public_url="https://cdn/provas.zip")

        assert created is True
        assert document.title == "2023/enare_2023.pdf"
        assert document.source_organization == "ENARE"
        assert document.year == 2023
        assert document.processed is True
        assert document.source_url == "https://cdn/provas.zip"
        assert document.metadata == {
            "source_archive": "provas.zip",
            "internal_path": "2023/enare_2023.pdf",
        }

        stored = await store.get_document_by_title("2023/enare_2023.pdf")
        assert stored is not None
        assert stored.id == document.id

    async def test_single_upload_is_its_own_archive(self, store) -> None:  # noqa: ANN001
        document, _ = await _registrar(store).register(SourceFile(name="usp_2020.pdf", data=b""))
        assert document.metadata["source_archive"] == "usp_2020.pdf"

    async def test_same_title_is_reused(self, store) -> None:  # noqa: ANN001
        registrar = _registrar(store)
        source = SourceFile(name="enare_2023.pdf", data=b"")

        first, first_created = await registrar.register(source)
        second, second_created = await registrar.register(source)

        assert first_created is True
        assert second_created is False
        assert second.id == first.id
        assert (await store.get_counts())["documents"] == 1
