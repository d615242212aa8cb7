"""Unit tests for lenient JSON extraction from model responses."""

from __future__ import annotations

import json

import pytest

from exambank.utils.llm_json import extract_json


class TestExtractJson:
    def test_plain_object(self) -> None:
        assert extract_json('{"questions": []}') == {"questions": []}

    def test_fenced_block(self) -> None:
        assert extract_json('```json\n{"fixes": [{"index": 0}]}\n```') == {"fixes": [{"index": 0}]}

    def test_unlabelled_fence(self) -> None:
        assert extract_json("```\n[1, 2]\n```") == [1, 2]

    def test_preamble_and_trailing_text(self) -> None:
        response = 'Aqui estão as questões:\n{"questions": [{"stem": "x"}]}\nBoa sorte!'
        assert extract_json(response) == {"questions": [{"stem": "x"}]}

    def test_bare_array_after_preamble(self) -> None:
        assert extract_json('Resultado: [{"index": 1}]') == [{"index": 1}]

    @pytest.mark.parametrize("response", ["", "sem json aqui", '{"questions": [', "] nada ["])
    def test_unrecoverable(self, response: str) -> None:
        with pytest.raises(json.JSONDecodeError):
            extract_json(response)
