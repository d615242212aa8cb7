"""Question models.

A :class:`QuestionCandidate` is whatever the language model returned,
parsed leniently and not yet trusted.  The quality validator turns it into
a :class:`ValidationOutcome`; accepted candidates become persisted
:class:`QuestionRecord` rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTION_LETTERS = ("a", "b", "c", "d", "e")

DEFAULT_EXPLANATION = "Gerado via IA"
DEFAULT_SUBJECT_AREA = "Geral"


class RejectionReason(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Why a question failed a quality heuristic.

    The same tags are used by the validator (pre-save rejection) and by the
    auto-fix audit (post-save flagging), and they are passed to the repair
    prompt verbatim so the model knows what to fix.
    """

    SHORT_STEM = "short_stem"
    TRUNCATED_STEM = "truncated_stem"
    MISSING_OPTIONS = "missing_options"
    SIMILAR_OPTIONS = "similar_options"


class ValidationStatus(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    ACCEPT = "accept"
    REJECT = "reject"
    SKIP = "skip"


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class QuestionCandidate(BaseModel):
    """A multiple-choice question as proposed by the language model."""

    model_config = ConfigDict(frozen=True)

    stem: str = ""
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    option_e: str | None = None
    correct_option: str = ""
    explanation: str = DEFAULT_EXPLANATION
    subject_area: str = DEFAULT_SUBJECT_AREA

    @classmethod
    def from_llm_payload(cls, payload: Any) -> QuestionCandidate | None:
        """Build a candidate from one item of the model's JSON output.

        Accepts the field spellings the extraction prompt has produced in
        practice: ``stem`` or ``question_text``; ``option_a..option_e`` or an
        ``options`` mapping keyed ``a..e`` (any case) or a positional list;
        ``correct_option`` or ``correct_answer``; ``subject_area`` or
        ``area``.  Returns ``None`` for items that are not JSON objects.
        """
        if not isinstance(payload, dict):
            return None

        options_raw = payload.get("options")
        if isinstance(options_raw, dict):
            options_map = {str(k).strip().lower(): v for k, v in options_raw.items()}
        elif isinstance(options_raw, list):
            options_map = dict(zip(OPTION_LETTERS, options_raw))
        else:
            options_map = {}

        options = {
            f"option_{letter}": _clean(payload.get(f"option_{letter}")) or _clean(options_map.get(letter))
            for letter in OPTION_LETTERS
        }

        return cls(
            stem=_clean(payload.get("stem")) or _clean(payload.get("question_text")) or "",
            correct_option=_clean(payload.get("correct_option")) or _clean(payload.get("correct_answer")) or "",
            explanation=_clean(payload.get("explanation")) or DEFAULT_EXPLANATION,
            subject_area=(
                _clean(payload.get("subject_area")) or _clean(payload.get("area")) or DEFAULT_SUBJECT_AREA
            ),
            **options,
        )

    def options(self) -> list[str | None]:
        """Options A-E in order; missing ones are ``None``."""
        return [self.option_a, self.option_b, self.option_c, self.option_d, self.option_e]


class ValidationOutcome(BaseModel):
    """Result of running the quality rules over one candidate.

    ``correct_option`` is only set for accepted candidates and holds the
    normalized answer letter to persist.
    """

    model_config = ConfigDict(frozen=True)

    status: ValidationStatus
    reason: RejectionReason | None = None
    detail: str = ""
    correct_option: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status is ValidationStatus.ACCEPT


class QuestionRecord(BaseModel):
    """A persisted multiple-choice question owned by exactly one document.

    Options A-D are required by the validator before a record is created;
    the model itself tolerates blanks so the post-save audit can read and
    flag damaged rows rather than fail to load them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    stem: str
    option_a: str = ""
    option_b: str = ""
    option_c: str = ""
    option_d: str = ""
    option_e: str | None = None
    correct_option: Literal["A", "B", "C", "D", "E"] = "A"
    explanation: str = DEFAULT_EXPLANATION
    subject_area: str = DEFAULT_SUBJECT_AREA
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @field_validator("option_a", "option_b", "option_c", "option_d", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _option_e_present_for_e(self) -> QuestionRecord:
        if self.correct_option == "E" and not self.option_e:
            raise ValueError("correct_option 'E' requires option_e")
        return self

    def options(self) -> list[str | None]:
        """Options A-E in order; blank required options come back as ``None``."""
        return [
            self.option_a or None,
            self.option_b or None,
            self.option_c or None,
            self.option_d or None,
            self.option_e,
        ]
