"""
Line Normalizer
===============
Turns extractor output into the ordered list of candidate lines the
scanner walks over.
"""

from __future__ import annotations

import re
from typing import Iterable, Union

_LINE_BREAK = re.compile(r"\r?\n")
_WHITESPACE = re.compile(r"\s+")


def normalize_lines(source: Union[str, Iterable[str], None]) -> list[str]:
    """
    Split on line breaks, trim every line and drop the blank ones.

    Relative order is preserved. Empty input yields an empty list, which
    callers treat as "no questions found".
    """
    if not source:
        return []

    if isinstance(source, str):
        raw = _LINE_BREAK.split(source)
    else:
        raw = [part for item in source for part in _LINE_BREAK.split(item)]

    return [line.strip() for line in raw if line.strip()]


def clean_text(text: str) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()
