"""
Option Extractor
================
Collects the lettered answer options (A-E) that follow a question body,
detects correct-answer markers and strips them from the stored text.

Markers are an explicit ordered rule list. Each rule is applied once per
option, so a glyph can never be stripped twice or depend on the order of
ad hoc replacements.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .normalizer import clean_text
from .patterns import ends_accumulation, is_reference_line, match_category, match_option

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkerRule:
    """A textual marker that flags the option it appears in as correct."""

    name: str
    pattern: re.Pattern


MARKER_RULES: list[MarkerRule] = [
    MarkerRule("checkmark", re.compile(r"[✓✔]")),
    # Radical sign used as a tick, but not "√2" or "√(x)"
    MarkerRule("radical_check", re.compile(r"√(?![\w(])")),
    # "[X]" anywhere; "(X)" only when not attached to a name, so "f(x)" survives
    MarkerRule("boxed_x", re.compile(r"\[x\]|(?<!\w)\(x\)", re.IGNORECASE)),
    MarkerRule("correct_label", re.compile(r"[\[(]correct[\])]", re.IGNORECASE)),
    # "*" / "**" standing alone or hanging off a word, never "2*3"
    MarkerRule("asterisk", re.compile(r"(?<!\S)\*{1,2}(?!\*)|(?<!\*)\*{1,2}(?!\S)")),
    MarkerRule("arrow", re.compile(r"<-{1,2}|-{1,2}>|[→←⟶⟵]")),
]


def strip_markers(text: str) -> tuple[str, list[str]]:
    """
    Remove every correct-answer marker from ``text``.

    Returns:
        (cleaned text, names of the rules that matched)
    """
    matched: list[str] = []
    for rule in MARKER_RULES:
        if rule.pattern.search(text):
            matched.append(rule.name)
            text = rule.pattern.sub(" ", text)
    return clean_text(text), matched


@dataclass
class OptionBlock:
    """Options gathered for one question."""

    options: dict[str, str] = field(default_factory=dict)
    correct_answer: Optional[str] = None
    references: list[str] = field(default_factory=list)


def _ends_option(line: str) -> bool:
    return ends_accumulation(line) or match_category(line) is not None


def extract_options(lines: list[str], cursor: int) -> tuple[OptionBlock, int]:
    """
    Read lettered options starting at ``lines[cursor]``.

    Stops at the first line that is neither an option nor a figure/table
    reference, or when a letter repeats within the block.

    Returns:
        (collected options, index of the first unconsumed line)
    """
    block = OptionBlock()
    seen: set[str] = set()

    while cursor < len(lines):
        line = lines[cursor]

        if is_reference_line(line):
            block.references.append(line)
            cursor += 1
            continue

        opt = match_option(line)
        if opt is None:
            break

        letter, first = opt
        if letter in seen:
            logger.debug(f"Option {letter} repeats; closing option block")
            break
        seen.add(letter)
        cursor += 1

        # Multi-line option text
        parts = [first]
        while cursor < len(lines) and not _ends_option(lines[cursor]):
            parts.append(lines[cursor])
            cursor += 1

        text, markers = strip_markers(" ".join(parts))
        if not text:
            logger.debug(f"Option {letter} is empty after marker removal; dropped")
            continue

        if markers:
            if block.correct_answer and block.correct_answer != letter:
                logger.warning(
                    f"Multiple options marked correct "
                    f"({block.correct_answer}, {letter}); keeping {letter}"
                )
            block.correct_answer = letter
            logger.debug(f"Correct answer marker on {letter}: {', '.join(markers)}")

        block.options[letter] = text

    return block, cursor
