"""Text normalization helpers shared by the extractor, chunker and validator.

Two flavours of whitespace handling are needed:

- :func:`normalize_document_text` keeps paragraph breaks (blank lines) so the
  chunker can still split on them, but collapses runs of spaces and stray
  blank lines that PDF text layers are full of.
- :func:`collapse_whitespace` flattens everything to single spaces.  It is
  the measure used to decide whether a document is readable at all.
"""

from __future__ import annotations

import re

_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_ANY_WS_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[.,;:!?]+$")


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run (newlines included) to one space and trim."""
    return _ANY_WS_RE.sub(" ", text).strip()


def normalize_document_text(text: str) -> str:
    """Normalize extracted text while preserving blank-line paragraph breaks.

    Each line is stripped and its internal whitespace collapsed; three or
    more consecutive newlines become a single blank line.

    >>> normalize_document_text("  Intro   text \\n\\n\\n\\n Next\\tpara ")
    'Intro text\\n\\nNext para'
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "")
    lines = [_HORIZONTAL_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    joined = "\n".join(lines)
    return _BLANK_LINES_RE.sub("\n\n", joined).strip()


def normalize_option(option: str) -> str:
    """Lowercase an answer option and strip surrounding space and trailing punctuation.

    >>> normalize_option("  Administer drug X immediately. ")
    'administer drug x immediately'
    """
    return _TRAILING_PUNCT_RE.sub("", option.lower().strip()).strip()
