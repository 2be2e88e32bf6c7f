"""Cleanup of raw OCR text into a canonical string.

Normalization is pure and idempotent: the passes below are repeated until
the text stops changing, so normalizing already-normalized text is a no-op.
Line structure survives; only whitespace inside a line is collapsed.
"""

from __future__ import annotations

import re

# Common OCR misreads and typographic variants
_MISREADS = str.maketrans(
    {
        "|": "l",
        "‘": "'",
        "’": "'",
        "`": "'",
        "“": '"',
        "”": '"',
        "—": "-",
        "–": "-",
        "…": "...",
    }
)

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\t]")
_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
_SPACE_BEFORE_PUNCT = re.compile(r" +([.!?:;,])")
_SENTENCE_JOIN = re.compile(r"([.!?]) *([A-Z])")
_O_BETWEEN_DIGITS = re.compile(r"(?<=\d)O(?=\d)")
_L_BETWEEN_DIGITS = re.compile(r"(?<=\d)[lI](?=\d)")
_ZERO_BEFORE_LETTERS = re.compile(r"\b0(?=[A-Za-z]{2})")
_ONE_BEFORE_LETTERS = re.compile(r"\b1(?=[A-Za-z]{2})(?!st\b)")
_CHOICE_MARKER = re.compile(r"(?<![\w(])\(?([A-D]) *\) *(?=\S|$)", re.MULTILINE)
_CHOICE_LINE = re.compile(r"^[A-D]\)")

MIN_LINE_LENGTH = 4
_MAX_PASSES = 5


def normalize_text(raw: str | None) -> str:
    """Clean raw OCR output into canonical text.

    Steps: canonical newlines, misread mapping, non-printable removal,
    whitespace collapse, punctuation spacing, digit/letter repair,
    multiple-choice markers as ``A) ``, and removal of noise lines
    (three characters or fewer, unless they are a choice marker).
    """
    if not raw:
        return ""
    text = raw
    for _ in range(_MAX_PASSES):
        cleaned = _normalize_pass(text)
        if cleaned == text:
            break
        text = cleaned
    return text


def _normalize_pass(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.translate(_MISREADS)
    text = _NON_PRINTABLE.sub("", text)
    text = _INLINE_WHITESPACE.sub(" ", text)

    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _SENTENCE_JOIN.sub(r"\1 \2", text)

    text = _O_BETWEEN_DIGITS.sub("0", text)
    text = _L_BETWEEN_DIGITS.sub("1", text)
    text = _ZERO_BEFORE_LETTERS.sub("O", text)
    text = _ONE_BEFORE_LETTERS.sub("l", text)

    text = _CHOICE_MARKER.sub(r"\1) ", text)

    lines = []
    for line in text.split("\n"):
        line = line.strip()
        if len(line) >= MIN_LINE_LENGTH or _CHOICE_LINE.match(line):
            lines.append(line)
    return "\n".join(lines)
