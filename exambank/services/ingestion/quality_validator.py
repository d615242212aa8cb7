"""Rule-based quality validation for candidate questions.

The rules run in a fixed order and the first failure decides the outcome:

1. **Short stem** -- missing or shorter than :data:`MIN_STEM_LENGTH`: reject.
2. **Truncated stem** -- first letter is lowercase, which almost always
   means the model started mid-sentence: reject.  Stems opening with a
   digit are exempt.
3. **Missing options** -- any of A-D absent (E is optional): reject.
4. **Similar options** -- two options identical after normalization, or
   the shorter one's leading 80% appears inside the longer: reject.
5. **Duplicate stem** -- an identical stem is already stored or was
   accepted earlier in the batch: skip (not counted as a rejection).
6. **Answer letter** -- normalized to a single A-E letter, see
   :func:`normalize_correct_option`.

Rules 1-4 are plain functions because the auto-fix loop re-runs them over
stored records.  :meth:`QualityValidator.validate` is pure: the same
candidate and stem set always give the same outcome.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from exambank.models.question import (
    OPTION_LETTERS,
    QuestionCandidate,
    RejectionReason,
    ValidationOutcome,
    ValidationStatus,
)
from exambank.utils.text_normalizer import normalize_option

MIN_STEM_LENGTH = 30

# Options shorter than this are never compared for near-duplication;
# "Sim"/"Não" style answers would otherwise trip the prefix rule.
_MIN_NEAR_DUPLICATE_LENGTH = 11
_NEAR_DUPLICATE_RATIO = 0.8

_NON_ANSWER_LETTER_RE = re.compile(r"[^A-E]")
_LABELS = tuple(letter.upper() for letter in OPTION_LETTERS)


# ---------------------------------------------------------------------------
# Individual heuristics (shared with the auto-fix audit)
# ---------------------------------------------------------------------------

def is_short_stem(stem: str | None) -> bool:
    return not stem or len(stem.strip()) < MIN_STEM_LENGTH


def is_truncated_stem(stem: str) -> bool:
    """Return ``True`` if the stem's first letter is lowercase.

    Leading punctuation and quotes are skipped; a leading digit exempts
    the stem (numbered vignettes, "3 dias após ...").
    """
    text = stem.strip()
    if not text or text[0].isdigit():
        return False
    for char in text:
        if char.isalpha():
            return char.islower()
    return False


def missing_required_options(options: Sequence[str | None]) -> list[str]:
    """Return the labels among A-D whose option is missing or blank."""
    return [
        _LABELS[i]
        for i in range(4)
        if i >= len(options) or not options[i] or not str(options[i]).strip()
    ]


def find_similar_options(options: Sequence[str | None]) -> str | None:
    """Describe the first pair of identical or near-duplicate options, or ``None``.

    >>> find_similar_options(["Administer drug X immediately.", "administer drug x immediately", None, None])
    'A and B are identical'
    """
    present = [(_LABELS[i], normalize_option(opt)) for i, opt in enumerate(options) if opt]
    for i, (label_i, opt_i) in enumerate(present):
        for label_j, opt_j in present[i + 1 :]:
            if opt_i == opt_j:
                return f"{label_i} and {label_j} are identical"
            shorter, longer = (opt_i, opt_j) if len(opt_i) < len(opt_j) else (opt_j, opt_i)
            if len(shorter) >= _MIN_NEAR_DUPLICATE_LENGTH:
                prefix = shorter[: int(len(shorter) * _NEAR_DUPLICATE_RATIO)]
                if prefix in longer:
                    return f"{label_i} and {label_j} share over 80% of their text"
    return None


def audit_question(stem: str, options: Sequence[str | None]) -> tuple[RejectionReason, str] | None:
    """Apply rules 1-4; return ``(reason, detail)`` for the first failure."""
    if is_short_stem(stem):
        return RejectionReason.SHORT_STEM, f"stem has {len((stem or '').strip())} characters"
    if is_truncated_stem(stem):
        return RejectionReason.TRUNCATED_STEM, "stem starts with a lowercase letter"
    missing = missing_required_options(options)
    if missing:
        return RejectionReason.MISSING_OPTIONS, f"missing option(s) {', '.join(missing)}"
    similar = find_similar_options(options)
    if similar:
        return RejectionReason.SIMILAR_OPTIONS, similar
    return None


def normalize_correct_option(raw: str | None, has_option_e: bool) -> str:
    """Reduce a model-supplied answer to one letter A-E.

    Uppercases, drops every character outside A-E and falls back to ``"A"``
    unless exactly one letter remains.  ``"E"`` without an option E also
    becomes ``"A"``.  This fallback skews the answer key towards A; it is
    kept as-is pending a product decision (see DESIGN.md).

    >>> normalize_correct_option("c.", has_option_e=False)
    'C'
    """
    letter = _NON_ANSWER_LETTER_RE.sub("", (raw or "").upper())
    if len(letter) != 1:
        letter = "A"
    if letter == "E" and not has_option_e:
        letter = "A"
    return letter


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class QualityValidator:
    """Accepts, rejects or skips candidate questions."""

    def validate(self, candidate: QuestionCandidate, known_stems: set[str] | frozenset[str]) -> ValidationOutcome:
        """Run the rules over *candidate*.

        Parameters
        ----------
        candidate:
            The question as proposed by the model.
        known_stems:
            Stems already stored for the corpus plus those accepted earlier
            in the current batch.  Not modified.
        """
        failure = audit_question(candidate.stem, candidate.options())
        if failure is not None:
            reason, detail = failure
            return ValidationOutcome(status=ValidationStatus.REJECT, reason=reason, detail=detail)

        if candidate.stem in known_stems:
            return ValidationOutcome(status=ValidationStatus.SKIP, detail="duplicate stem")

        return ValidationOutcome(
            status=ValidationStatus.ACCEPT,
            correct_option=normalize_correct_option(
                candidate.correct_option,
                has_option_e=bool(candidate.option_e),
            ),
        )
