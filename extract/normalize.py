"""Canonicalisation of raw OCR text before candidate extraction.

Every helper here is total: any input (including ``None``) yields a string
and applying a helper to its own output returns the same string.
"""

from __future__ import annotations

import re
from typing import Optional, Pattern


_FULLWIDTH_DIGITS = str.maketrans(
    {chr(0xFF10 + offset): str(offset) for offset in range(10)}
)

_CONFUSABLE_TRANSLATION = str.maketrans(
    {
        "O": "0",
        "o": "0",
        "Ｏ": "0",
        "ｏ": "0",
        "I": "1",
        "i": "1",
        "l": "1",
        "|": "1",
        "Ｉ": "1",
        "ｉ": "1",
        "ｌ": "1",
        "｜": "1",
        "S": "5",
        "s": "5",
        "Ｓ": "5",
        "ｓ": "5",
        "B": "8",
        "b": "8",
        "Ｂ": "8",
        "ｂ": "8",
    }
)

# "odo" labels must survive folding or keyword anchoring would never match.
_PROTECTED_KEYWORD: Pattern[str] = re.compile(r"odo", re.IGNORECASE)

_HORIZONTAL_WHITESPACE: Pattern[str] = re.compile(r"[^\S\r\n]+")
_NON_DIGIT_CHARACTERS: Pattern[str] = re.compile(r"[^0-9\s]+")


def fold_fullwidth_digits(text: str) -> str:
    """Map full-width numerals (U+FF10..U+FF19) to ASCII digits."""

    return text.translate(_FULLWIDTH_DIGITS)


def fold_confusables(text: str) -> str:
    """Replace letters commonly misread for digits, keeping ``odo`` intact."""

    parts = []
    cursor = 0
    for match in _PROTECTED_KEYWORD.finditer(text):
        parts.append(text[cursor : match.start()].translate(_CONFUSABLE_TRANSLATION))
        parts.append(match.group(0))
        cursor = match.end()
    parts.append(text[cursor:].translate(_CONFUSABLE_TRANSLATION))
    return "".join(parts)


def collapse_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs into one space; newlines are preserved."""

    return _HORIZONTAL_WHITESPACE.sub(" ", text)


def strip_non_digits(text: str) -> str:
    """Drop every character that is neither a digit nor whitespace."""

    return _NON_DIGIT_CHARACTERS.sub("", text)


def normalize_ocr_text(
    raw: Optional[str],
    *,
    fold_letters: bool = True,
    digits_only: bool = False,
) -> str:
    """Normalise text produced by the recognition engine.

    Full-width digits are always folded.  ``fold_letters`` enables the
    confusable substitution used by the multi-pass reader, while
    ``digits_only`` drops everything except digits and whitespace, so
    separate numbers stay separate runs.
    """

    if raw is None:
        return ""
    text = raw if isinstance(raw, str) else str(raw)

    text = fold_fullwidth_digits(text)
    if digits_only:
        text = strip_non_digits(text)
    elif fold_letters:
        text = fold_confusables(text)
    return collapse_whitespace(text)


__all__ = [
    "collapse_whitespace",
    "fold_confusables",
    "fold_fullwidth_digits",
    "normalize_ocr_text",
    "strip_non_digits",
]
