"""
Anchor Patterns
===============
Ordered ``(pattern, handler)`` tables for the line scanner.

Each table is tried top to bottom and the first matching pattern wins.
Handlers turn the match into the value the scanner needs, so callers
never touch match groups directly.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

Rule = tuple[re.Pattern, Callable[[re.Match], T]]

# Question number: "12" or a range "1-2" / "1 – 2" / "1—2"
_NUMBER = r"(?P<num>\d+(?:\s*[-–—]\s*\d+)?)"
_DASHES = re.compile(r"[–—]")
_SPACES = re.compile(r"\s+")


def normalize_question_number(raw: str) -> str:
    """Strip internal whitespace and unify dash variants to '-'."""
    return _DASHES.sub("-", _SPACES.sub("", raw))


def _category_name(match: re.Match) -> str:
    return match.group("name").strip()


def _question_start(match: re.Match) -> tuple[str, str]:
    return (
        normalize_question_number(match.group("num")),
        match.group("rest").strip(),
    )


def _option_start(match: re.Match) -> tuple[str, str]:
    return match.group("letter").upper(), match.group("rest").strip()


# ─── Category Headers ─────────────────────────────────────────────────────────

CATEGORY_RULES: list[Rule[str]] = [
    # "Hydraulics (14 items):", "Hydraulics (1 item)"
    (re.compile(r"^(?P<name>.+?)\s*\((?P<count>\d+)\s*items?\):?$", re.IGNORECASE),
     _category_name),
    # "Hydraulics (14):"
    (re.compile(r"^(?P<name>.+?)\s*\((?P<count>\d+)\):?$"),
     _category_name),
    # "CATEGORY: Hydraulics"
    (re.compile(r"^CATEGORY:\s*(?P<name>.+)$", re.IGNORECASE),
     _category_name),
    # "Hydraulics - 14 questions"
    (re.compile(r"^(?P<name>.+?)\s*-\s*(?P<count>\d+)\s*questions?$", re.IGNORECASE),
     _category_name),
]

# ─── Question Starts ──────────────────────────────────────────────────────────

QUESTION_RULES: list[Rule[tuple[str, str]]] = [
    # "1. Text", "1) Text", "1-2. Text", "1 – 2) Text"
    (re.compile(rf"^{_NUMBER}[.)]\s*(?P<rest>.+)"),
     _question_start),
    # "Question 1: Text", "question 3. Text"
    (re.compile(rf"^Question\s+{_NUMBER}[:.]\s*(?P<rest>.+)", re.IGNORECASE),
     _question_start),
    # "Q.1: Text", "Q 1: Text", "q2. Text"
    (re.compile(rf"^Q\.?\s*{_NUMBER}[:.]\s*(?P<rest>.+)", re.IGNORECASE),
     _question_start),
]

# Looser prefix that ends body/option accumulation: "Question 2" or a bare
# "2." closes the previous unit even without the text a question start needs
BOUNDARY_PREFIX = re.compile(r"^(\d+[.)]|Question\s+\d+|Q\.?\s*\d+)", re.IGNORECASE)

# ─── Options & Sentinels ──────────────────────────────────────────────────────

OPTION_RULES: list[Rule[tuple[str, str]]] = [
    # "a. Text", "B) Text"
    (re.compile(r"^(?P<letter>[a-e])[.)]\s+(?P<rest>.+)", re.IGNORECASE),
     _option_start),
]

# Lines that point at a figure/table rather than continue the text
REFERENCE_PATTERN = re.compile(
    r"^(Refer to|Figure|Table|Image|Diagram)", re.IGNORECASE
)


# ─── Matchers ─────────────────────────────────────────────────────────────────


def first_match(rules: list[Rule[T]], line: str) -> Optional[T]:
    """Run ``line`` through ``rules`` in order; return the first handler result."""
    for pattern, handler in rules:
        match = pattern.match(line)
        if match:
            return handler(match)
    return None


def match_category(line: str) -> Optional[str]:
    return first_match(CATEGORY_RULES, line)


def match_question_start(line: str) -> Optional[tuple[str, str]]:
    return first_match(QUESTION_RULES, line)


def match_option(line: str) -> Optional[tuple[str, str]]:
    return first_match(OPTION_RULES, line)


def is_reference_line(line: str) -> bool:
    return bool(REFERENCE_PATTERN.match(line))


def ends_accumulation(line: str) -> bool:
    """True when ``line`` opens a new unit instead of continuing the current one."""
    return (
        match_option(line) is not None
        or BOUNDARY_PREFIX.match(line) is not None
        or match_question_start(line) is not None
        or is_reference_line(line)
    )
