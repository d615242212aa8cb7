"""Text chunking with paragraph boundaries and a trailing-character overlap.

Splits extracted document text into segments sized for the embedding
model.  Sizes are estimated at four characters per token, so the default
budget of 1000 tokens allows 4000 characters per chunk.

Two paths:

1. **Paragraph path** -- paragraphs (blank-line separated) are packed into
   the running chunk while it stays under the budget.  When the next
   paragraph does not fit, the chunk is flushed and the new one is seeded
   with the last ``overlap`` characters of the flushed chunk (fewer when
   the paragraph is near the budget), followed by the paragraph.

2. **Sentence fallback** -- a paragraph that cannot fit in a chunk on its
   own is split at sentence ends (``.``, ``!``, ``?`` followed by
   whitespace) and the sentences are packed the same way, but *without*
   overlap between the resulting chunks.  A sentence longer than the
   budget is cut into budget-sized pieces.

Overlap applies to the paragraph path only (open question, DESIGN.md).
Every chunk is at most ``max_chars + overlap`` characters long
and any non-empty input produces at least one chunk.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(logger_name=__name__)

CHARS_PER_TOKEN = 4

_PARAGRAPH_SEP = "\n\n"
_SENTENCE_SEP = " "
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


class TextChunker:
    """Splits text into ordered chunk strings.

    Parameters
    ----------
    max_tokens:
        Token budget per chunk (default 1000, i.e. 4000 characters).
    overlap:
        Characters carried from the end of a flushed paragraph-path chunk
        into the next one (default 150).
    """

    def __init__(self, max_tokens: int = 1000, overlap: int = 150) -> None:
        self._max_chars = max_tokens * CHARS_PER_TOKEN
        self._overlap = overlap

    @property
    def max_chars(self) -> int:
        return self._max_chars

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[str]:
        """Split *text* into trimmed chunks.  Empty input returns ``[]``."""
        if not text or not text.strip():
            return []

        chunks = self._accumulate_chunks(self._split_paragraphs(text))
        if not chunks:
            chunks = [text.strip()[: self._max_chars]]

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            max_chars=self._max_chars,
            avg_chars=sum(len(c) for c in chunks) // len(chunks),
        )
        return chunks

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding empty paragraphs."""
        parts = _PARAGRAPH_SPLIT_RE.split(text)
        return [p.strip() for p in parts if p.strip()]

    def _split_sentences(self, paragraph: str) -> list[str]:
        """Split at sentence ends; over-long sentences are cut to the budget."""
        pieces: list[str] = []
        for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) <= self._max_chars:
                pieces.append(sentence)
                continue
            for start in range(0, len(sentence), self._max_chars):
                piece = sentence[start : start + self._max_chars].strip()
                if piece:
                    pieces.append(piece)
        return pieces

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def _accumulate_chunks(self, paragraphs: list[str]) -> list[str]:
        chunks: list[str] = []
        current = ""

        for para in paragraphs:
            if len(para) > self._max_chars:
                # Sentence fallback: flush, then pack sentences with no overlap.
                if current.strip():
                    chunks.append(current.strip())
                current = ""
                for sentence in self._split_sentences(para):
                    if not current:
                        current = sentence
                    elif len(current) + len(_SENTENCE_SEP) + len(sentence) < self._max_chars:
                        current += _SENTENCE_SEP + sentence
                    else:
                        chunks.append(current.strip())
                        current = sentence
                continue

            if not current:
                current = para
            elif len(current) + len(_PARAGRAPH_SEP) + len(para) < self._max_chars:
                current += _PARAGRAPH_SEP + para
            else:
                flushed = current.strip()
                chunks.append(flushed)
                # Shorten the tail so the seeded chunk stays within max_chars + overlap.
                keep = min(self._overlap, self._max_chars + self._overlap - len(_PARAGRAPH_SEP) - len(para))
                tail = flushed[-keep:].lstrip() if keep > 0 else ""
                current = f"{tail}{_PARAGRAPH_SEP}{para}" if tail else para

        if current.strip():
            chunks.append(current.strip())
        return chunks
