"""Post-save audit and repair of a document's questions.

After a file's questions are saved, every stored question of that
document is re-audited with the validator's four detection heuristics
(short stem, truncated stem, missing options, similar options).  This is
an independent pass over what is actually in the store, not a reuse of the
validator's in-memory results.

Flagged records are sent to the completion provider in fixed-size batches
together with up to three of the document's embedded chunks as grounding
context.  For each fix the model returns, only the fields it supplied are
overwritten; ``correct_option`` is always kept.  Records are updated in
place by id.

The loop is bounded: after a repair pass the document is audited again and
still-flagged records get another pass, up to ``max_passes``.  With
``max_passes=1`` this is a single unverified repair pass.

Counting: ``AutoFixReport.flagged`` is the number of distinct records
*submitted* for repair, not the number the model actually changed.  A
batch where the model fixes two of three records still counts three.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from exambank.interfaces.llm_provider import ILLMProvider
from exambank.interfaces.question_store import IQuestionStore
from exambank.models.ingestion import AutoFixReport
from exambank.models.question import QuestionRecord, RejectionReason
from exambank.services.ingestion.quality_validator import audit_question
from exambank.utils.errors import ExamBankError
from exambank.utils.llm_json import extract_json

logger = structlog.get_logger(logger_name=__name__)

_REPAIRABLE_FIELDS = (
    "stem",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "option_e",
    "explanation",
    "subject_area",
)

_SYSTEM_PROMPT = (
    "Você conserta questões de residência médica. Foco em enunciados completos "
    "e em alternativas totalmente diferentes entre si. Retorne APENAS JSON válido."
)

_REASON_GUIDE = {
    RejectionReason.SHORT_STEM: "Enunciado muito curto. Expanda com o contexto clínico adequado.",
    RejectionReason.TRUNCATED_STEM: (
        "Enunciado começa no meio de uma frase. Reconstrua o enunciado completo usando "
        "o contexto do documento e as alternativas como pista do tema."
    ),
    RejectionReason.MISSING_OPTIONS: "Alternativas vazias. Gere alternativas médicas plausíveis.",
    RejectionReason.SIMILAR_OPTIONS: (
        "Duas ou mais alternativas são quase iguais. Reescreva-as para que usem conceitos "
        "completamente diferentes, mantendo a correta medicamente certa."
    ),
}

_FlaggedRecord = tuple[QuestionRecord, RejectionReason, str]


class AutoFixer:
    """Audits a document's stored questions and asks the model to repair flagged ones.

    Parameters
    ----------
    llm_provider:
        Completion provider used for repair prompts.
    store:
        Store holding the questions and the document's chunks.
    batch_size:
        Flagged records per repair prompt (default 3).
    context_chunks:
        Number of the document's chunks used as grounding context.
    context_chars:
        Character budget for that context.
    max_passes:
        Upper bound on audit/repair passes.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        store: IQuestionStore,
        batch_size: int = 3,
        context_chunks: int = 3,
        context_chars: int = 6000,
        max_passes: int = 2,
    ) -> None:
        self._llm = llm_provider
        self._store = store
        self._batch_size = batch_size
        self._context_chunks = context_chunks
        self._context_chars = context_chars
        self._max_passes = max_passes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, document_id: str) -> AutoFixReport:
        """Audit and repair *document_id*'s questions.

        A failed batch is logged and counted; remaining batches still run.
        Store errors propagate to the caller.
        """
        submitted: set[str] = set()
        updated = 0
        failed_batches = 0
        passes = 0
        context: str | None = None

        flagged = await self._audit(document_id)
        while flagged and passes < self._max_passes:
            passes += 1
            if context is None:
                context = await self._gather_context(document_id)
            submitted.update(record.id for record, _, _ in flagged)
            logger.info("auto_fix_pass", document_id=document_id, pass_number=passes, flagged=len(flagged))

            for start in range(0, len(flagged), self._batch_size):
                batch = flagged[start : start + self._batch_size]
                try:
                    updated += await self._repair_batch(batch, context)
                except ExamBankError as exc:
                    failed_batches += 1
                    logger.warning(
                        "auto_fix_batch_failed",
                        document_id=document_id,
                        pass_number=passes,
                        batch_start=start,
                        error=str(exc),
                    )

            flagged = await self._audit(document_id)

        report = AutoFixReport(
            flagged=len(submitted),
            updated=updated,
            unresolved=len(flagged) if passes else 0,
            passes=passes,
            failed_batches=failed_batches,
        )
        if passes:
            logger.info("auto_fix_complete", document_id=document_id, **report.model_dump())
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _audit(self, document_id: str) -> list[_FlaggedRecord]:
        flagged: list[_FlaggedRecord] = []
        for record in await self._store.get_questions_for_document(document_id):
            failure = audit_question(record.stem, record.options())
            if failure is not None:
                flagged.append((record, failure[0], failure[1]))
        return flagged

    async def _gather_context(self, document_id: str) -> str:
        chunks = await self._store.get_chunks_for_document(document_id, limit=self._context_chunks)
        return "\n\n".join(chunk.content for chunk in chunks)[: self._context_chars]

    async def _repair_batch(self, batch: list[_FlaggedRecord], context: str) -> int:
        """Send one batch to the model and apply its fixes; returns records written."""
        response = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(batch, context),
            temperature=0.5,
            max_tokens=4000,
            json_mode=True,
        )

        fixes = self._parse_fixes(response)
        if fixes is None:
            logger.warning("auto_fix_unparseable", response_preview=response[:200])
            return 0

        written = 0
        for fix in fixes:
            index = fix.get("index")
            if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(batch):
                continue
            original = batch[index][0]
            repaired = merge_fix(original, fix)
            if repaired != original:
                await self._store.update_question(repaired)
                written += 1
                logger.debug("question_repaired", question_id=original.id, reason=batch[index][1].value)
        return written

    def _build_prompt(self, batch: list[_FlaggedRecord], context: str) -> str:
        items = [
            {
                "index": i,
                "id": record.id,
                "problem": reason.value,
                "detail": detail,
                "stem": record.stem,
                "option_a": record.option_a,
                "option_b": record.option_b,
                "option_c": record.option_c,
                "option_d": record.option_d,
                "option_e": record.option_e,
                "correct_option": record.correct_option,
                "explanation": record.explanation,
                "subject_area": record.subject_area,
            }
            for i, (record, reason, detail) in enumerate(batch)
        ]
        reasons = sorted({reason for _, reason, _ in batch}, key=lambda r: r.value)
        guide = "\n".join(f"- {reason.value}: {_REASON_GUIDE[reason]}" for reason in reasons)

        return f"""CONSERTE as questões abaixo, que têm problemas de qualidade.

PROBLEMAS:
{guide}

REGRAS CRÍTICAS:
- Mantenha o gabarito (correct_option) exatamente como está.
- O enunciado deve começar com letra maiúscula e estar completo.
- Cada alternativa deve usar vocabulário e conceitos diferentes das outras.

CONTEXTO DO DOCUMENTO:
{context or "(indisponível)"}

QUESTÕES:
{json.dumps(items, ensure_ascii=False, indent=2)}

Retorne um JSON no formato:
{{"fixes": [{{"index": 0, "stem": "...", "option_a": "...", "option_b": "...", "option_c": "...",
"option_d": "...", "option_e": "... ou null", "explanation": "...", "subject_area": "..."}}]}}
Inclua apenas os campos que você alterou, além de "index".
"""

    @staticmethod
    def _parse_fixes(response: str) -> list[dict[str, Any]] | None:
        try:
            parsed = extract_json(response)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list):
            fixes = parsed
        elif isinstance(parsed, dict):
            fixes = parsed.get("fixes", parsed.get("fixed_questions"))
        else:
            return None
        if not isinstance(fixes, list):
            return None
        return [fix for fix in fixes if isinstance(fix, dict)]


def merge_fix(original: QuestionRecord, fix: dict[str, Any]) -> QuestionRecord:
    """Overlay the non-empty repairable fields of *fix* on *original*.

    Omitted or blank fields keep the original value; ``id``, ``document_id``
    and ``correct_option`` are never taken from the fix.
    """
    update: dict[str, Any] = {}
    for field in _REPAIRABLE_FIELDS:
        value = fix.get(field)
        if isinstance(value, str) and value.strip():
            update[field] = value.strip()
    return original.model_copy(update=update) if update else original
