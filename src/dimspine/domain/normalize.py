"""
Field normalization (raw text -> typed value).

Every function here is pure and total: it never raises for malformed
input. Anything that cannot be cleaned comes back as ``UNRESOLVED`` and the
call site decides the fallback (median price, zero quantity, quarantine).

Normalization rules:
- Whitespace is trimmed; empty-after-trim is ``UNRESOLVED``
- Descriptive text is title-cased word by word (``"red MUG"`` -> ``"Red Mug"``)
- Natural keys are trimmed only; they stay case-sensitive
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class Unresolved(Enum):
    """Marker for a value that failed its parser's contract."""

    UNRESOLVED = "UNRESOLVED"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved.UNRESOLVED

# A word is a run of letters/digits; anything else separates words.
_WORD = re.compile(r"[^\W_]+")

_TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0"})


def or_none(value: T | Unresolved) -> T | None:
    """Map ``UNRESOLVED`` to ``None`` for storage and display."""
    return None if value is UNRESOLVED else value


def clean_text(raw: str | None) -> str | Unresolved:
    """Trim whitespace; empty-after-trim is unresolved."""
    if raw is None:
        return UNRESOLVED
    text = str(raw).strip()
    if not text:
        return UNRESOLVED
    return text


def title_case(text: str) -> str:
    """
    Capitalize the first character of every word and lowercase the rest.

    Digits count as word characters, so ``"3RD floor"`` becomes
    ``"3rd Floor"`` (unlike ``str.title()``, which yields ``"3Rd Floor"``).
    """
    return _WORD.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), text)


def normalize_title(raw: str | None) -> str | Unresolved:
    """Trimmed, title-cased descriptive text."""
    text = clean_text(raw)
    if text is UNRESOLVED:
        return UNRESOLVED
    return title_case(text)


def normalize_key(raw: str | None) -> str | Unresolved:
    """Natural key: trimmed, case preserved."""
    return clean_text(raw)


def normalize_flag(raw: str | None) -> bool | Unresolved:
    """Boolean text such as ``yes`` / ``0`` / ``True``."""
    text = clean_text(raw)
    if text is UNRESOLVED:
        return UNRESOLVED
    token = text.lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return UNRESOLVED
