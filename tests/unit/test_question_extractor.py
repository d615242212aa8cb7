"""Unit tests for the QuestionExtractor prompt/parse cycle and truncate_text."""

from __future__ import annotations

import json

import pytest

from exambank.models.document import DocumentCategory
from exambank.models.question import DEFAULT_EXPLANATION, DEFAULT_SUBJECT_AREA
from exambank.services.ingestion.question_extractor import QuestionExtractor, truncate_text
from exambank.utils.errors import LLMError
from tests.conftest import SAMPLE_STEM, candidate_payload, llm_questions

_TEXT = "Questão 1. " + SAMPLE_STEM + " A) Metformina B) Soro C) Insulina D) Bicarbonato"


class TestTruncateText:
    def test_text_within_budget_is_unchanged(self) -> None:
        assert truncate_text("Short text.", 100) == "Short text."

    def test_cuts_after_last_sentence_end_near_budget(self) -> None:
        text = "A" * 85 + ". " + "B" * 50
        assert truncate_text(text, 100) == "A" * 85 + "."

    def test_hard_cut_when_sentence_end_is_too_early(self) -> None:
        text = "A" * 10 + ". " + "B" * 200
        assert truncate_text(text, 100) == text[:100]

    def test_sentence_end_must_be_followed_by_space(self) -> None:
        text = "Dose 2.5 mg" + "x" * 200
        assert truncate_text(text, 50) == text[:50]


class TestExtract:
    async def test_parses_questions_object(self, mock_llm_provider) -> None:  # noqa: ANN001
        mock_llm_provider.complete.return_value = llm_questions(candidate_payload(), candidate_payload(correct="D"))

        candidates = await QuestionExtractor(mock_llm_provider).extract(_TEXT, "enare_2023.pdf")

        assert len(candidates) == 2
        assert candidates[0].stem == SAMPLE_STEM
        assert candidates[1].correct_option == "D"
        kwargs = mock_llm_provider.complete.await_args.kwargs
        assert kwargs["json_mode"] is True
        assert "enare_2023.pdf" in kwargs["user_prompt"]
        assert SAMPLE_STEM in kwargs["user_prompt"]

    async def test_accepts_fenced_bare_array_and_alternate_keys(self, mock_llm_provider) -> None:  # noqa: ANN001
        item = {
            "question_text": SAMPLE_STEM,
            "options": {"A": "um", "B": "dois", "C": "três", "D": "quatro", "E": "cinco"},
            "correct_answer": "e",
            "area": "Pediatria",
        }
        mock_llm_provider.complete.return_value = "Aqui está:\n```json\n" + json.dumps([item]) + "\n```"

        (candidate,) = await QuestionExtractor(mock_llm_provider).extract(_TEXT, "f.pdf")

        assert candidate.stem == SAMPLE_STEM
        assert candidate.option_e == "cinco"
        assert candidate.correct_option == "e"
        assert candidate.subject_area == "Pediatria"
        assert candidate.explanation == DEFAULT_EXPLANATION

    async def test_defaults_for_missing_explanation_and_area(self, mock_llm_provider) -> None:  # noqa: ANN001
        payload = candidate_payload()
        del payload["explanation"], payload["subject_area"]
        mock_llm_provider.complete.return_value = llm_questions(payload)

        (candidate,) = await QuestionExtractor(mock_llm_provider).extract(_TEXT, "f.pdf")

        assert candidate.explanation == DEFAULT_EXPLANATION
        assert candidate.subject_area == DEFAULT_SUBJECT_AREA

    @pytest.mark.parametrize("response", ["not json at all", '{"answer": 42}', "[1, 2"])
    async def test_unusable_response_yields_no_candidates(self, mock_llm_provider, response: str) -> None:  # noqa: ANN001
        mock_llm_provider.complete.return_value = response
        assert await QuestionExtractor(mock_llm_provider).extract(_TEXT, "f.pdf") == []

    async def test_non_object_items_are_dropped(self, mock_llm_provider) -> None:  # noqa: ANN001
        mock_llm_provider.complete.return_value = json.dumps({"questions": ["oops", candidate_payload()]})
        assert len(await QuestionExtractor(mock_llm_provider).extract(_TEXT, "f.pdf")) == 1

    async def test_caps_question_count(self, mock_llm_provider) -> None:  # noqa: ANN001
        items = [candidate_payload(stem=f"{SAMPLE_STEM} Caso {i}.") for i in range(7)]
        mock_llm_provider.complete.return_value = llm_questions(*items)

        candidates = await QuestionExtractor(mock_llm_provider, max_questions=5).extract(_TEXT, "f.pdf")

        assert len(candidates) == 5
        assert "No máximo 5 questões" in mock_llm_provider.complete.await_args.kwargs["user_prompt"]

    async def test_prompt_is_cut_to_char_budget(self, mock_llm_provider) -> None:  # noqa: ANN001
        long_text = "Frase de teste sobre cardiologia. " * 200
        await QuestionExtractor(mock_llm_provider, char_budget=500).extract(long_text, "f.pdf")

        prompt = mock_llm_provider.complete.await_args.kwargs["user_prompt"]
        assert "(texto truncado)" in prompt
        assert long_text not in prompt

    async def test_study_material_asks_for_generation(self, mock_llm_provider) -> None:  # noqa: ANN001
        await QuestionExtractor(mock_llm_provider).extract(_TEXT, "apostila.pdf", DocumentCategory.STUDY_MATERIAL)
        assert "MATERIAL DE ESTUDO" in mock_llm_provider.complete.await_args.kwargs["user_prompt"]

    async def test_provider_error_propagates(self, mock_llm_provider) -> None:  # noqa: ANN001
        mock_llm_provider.complete.side_effect = LLMError(message="rate limited", provider_name="mock-llm")
        with pytest.raises(LLMError):
            await QuestionExtractor(mock_llm_provider).extract(_TEXT, "f.pdf")
