"""LLM-driven extraction and synthesis of multiple-choice questions.

The document text (cut to a character budget) goes to the completion
provider with a strict instruction set.  Exams have their questions copied
out verbatim; study material has new questions written from its content.
The JSON reply is parsed leniently into
:class:`~exambank.models.question.QuestionCandidate` objects.

Provider failures raise :class:`~exambank.utils.errors.LLMError` and fail
the file.  A reply that is not usable JSON is logged and yields zero
candidates; it is not an error.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from exambank.interfaces.llm_provider import ILLMProvider
from exambank.models.document import DocumentCategory
from exambank.models.question import QuestionCandidate
from exambank.utils.llm_json import extract_json

logger = structlog.get_logger(logger_name=__name__)

# Sentence end followed by whitespace or end of text.
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s|$)")
_MIN_CUT_RATIO = 0.8

_SYSTEM_PROMPT = (
    "Você é um gerador de questões médicas para provas de residência. "
    "Retorne apenas JSON válido, sem comentários."
)


def truncate_text(text: str, budget: int) -> str:
    """Cut *text* to at most *budget* characters, preferring a sentence end.

    If the text is over budget, the cut falls right after the last sentence
    end inside the budget, provided that point lies beyond 80% of the
    budget; otherwise the text is hard-cut at the budget.
    """
    if len(text) <= budget:
        return text
    window = text[:budget]
    last_end = -1
    for match in _SENTENCE_END_RE.finditer(window):
        last_end = match.end()
    if last_end >= int(budget * _MIN_CUT_RATIO):
        return window[:last_end]
    return window


class QuestionExtractor:
    """Prompts the completion provider for question candidates.

    Parameters
    ----------
    llm_provider:
        Completion provider; the model identifier is its configuration.
    char_budget:
        Maximum characters of document text placed in the prompt.
    max_questions:
        Cap on questions requested per file; extra items are dropped.
    """

    def __init__(self, llm_provider: ILLMProvider, char_budget: int = 30000, max_questions: int = 15) -> None:
        self._llm = llm_provider
        self._char_budget = char_budget
        self._max_questions = max_questions

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(
        self,
        text: str,
        filename: str,
        category: DocumentCategory = DocumentCategory.EXAM,
    ) -> list[QuestionCandidate]:
        """Return candidate questions for one document's text.

        Raises
        ------
        exambank.utils.errors.LLMError
            If the completion call fails.
        """
        excerpt = truncate_text(text, self._char_budget)
        response = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(excerpt, filename, category, truncated=len(excerpt) < len(text)),
            temperature=0.2,
            max_tokens=8000,
            json_mode=True,
        )

        items = self._parse_llm_response(response)
        if items is None:
            logger.warning(
                "question_extraction_unparseable",
                file=filename,
                provider=self._llm.get_provider_name(),
                response_preview=response[:200],
            )
            return []

        if len(items) > self._max_questions:
            logger.info("question_extraction_capped", file=filename, returned=len(items), cap=self._max_questions)
            items = items[: self._max_questions]

        candidates = [c for c in (QuestionCandidate.from_llm_payload(item) for item in items) if c is not None]
        logger.info(
            "question_extraction_complete",
            file=filename,
            category=category.value,
            candidates=len(candidates),
            text_chars=len(excerpt),
        )
        return candidates

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def _build_prompt(self, excerpt: str, filename: str, category: DocumentCategory, truncated: bool) -> str:
        if category is DocumentCategory.STUDY_MATERIAL:
            mode = (
                "O arquivo parece ser MATERIAL DE ESTUDO (apostila, resumo). "
                "GERE questões de múltipla escolha baseadas no conteúdo."
            )
        else:
            mode = (
                "O arquivo parece ser uma PROVA. EXTRAIA as questões existentes, "
                "copiando o texto literalmente. Se o texto não contiver questões, "
                "GERE questões baseadas no conteúdo."
            )
        suffix = "\n... (texto truncado)" if truncated else ""

        return f"""ANALISE O TEXTO ABAIXO E EXTRAIA OU GERE QUESTÕES.

ARQUIVO: {filename}
{mode}

REGRAS:
- No máximo {self._max_questions} questões por arquivo.
- Enunciado COMPLETO e literal, incluindo o caso clínico que antecede a pergunta.
  Nunca comece o enunciado no meio de uma frase.
- Entre 4 e 5 alternativas por questão (A a D obrigatórias, E opcional), com
  conteúdo realmente diferente entre si; nunca repita a mesma alternativa com
  pequenas variações de palavras.
- Distribua o gabarito entre A, B, C, D e E; não concentre as respostas em
  uma única letra.
- Toda questão deve ter uma explicação do gabarito e a área médica.

FORMATO (JSON estrito):
{json.dumps(_RESPONSE_SCHEMA, ensure_ascii=False, indent=2)}

TEXTO:
{excerpt}{suffix}
"""

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_llm_response(response: str) -> list[Any] | None:
        """Return the list of question items, or ``None`` if unusable.

        Accepts a bare JSON array or an object with a ``questions`` array.
        """
        try:
            parsed = extract_json(response)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict) and isinstance(parsed.get("questions"), list):
            return parsed["questions"]
        return None


_RESPONSE_SCHEMA: dict[str, Any] = {
    "questions": [
        {
            "stem": "Enunciado completo, incluindo o caso clínico...",
            "option_a": "...",
            "option_b": "...",
            "option_c": "...",
            "option_d": "...",
            "option_e": "... ou null",
            "correct_option": "C",
            "explanation": "Por que a alternativa correta está certa...",
            "subject_area": "Clínica Médica",
        }
    ]
}
