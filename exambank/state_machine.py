"""
State Machine Scanner
=====================
Single forward pass over normalized lines that recovers category headers,
question boundaries and multi-line question bodies, then hands each
question's option lines to the option extractor.

The scanner state is an explicit immutable value advanced by pure step
functions, so every transition can be exercised one line at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from .models import DEFAULT_CATEGORY, ParsedQuestion
from .normalizer import clean_text
from .options import OptionBlock, extract_options
from .patterns import ends_accumulation, match_category, match_question_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannerState:
    """Cursor position and the category currently in effect."""

    cursor: int = 0
    current_category: str = ""


@dataclass
class QuestionCandidate:
    """A question boundary with its body and options, before validation."""

    question_number: str
    question_text: str
    category: str
    block: OptionBlock = field(default_factory=OptionBlock)


def accumulate_body(lines: list[str], cursor: int, first: str) -> tuple[str, int]:
    """
    Join continuation lines onto ``first`` until a new unit starts.

    Returns:
        (space-joined body text, index of the first unconsumed line)
    """
    parts = [first]
    while cursor < len(lines) and not ends_accumulation(lines[cursor]):
        parts.append(lines[cursor])
        cursor += 1
    return clean_text(" ".join(parts)), cursor


def scan_step(
    lines: list[str], state: ScannerState
) -> tuple[ScannerState, Optional[QuestionCandidate]]:
    """
    Advance the scanner past one logical unit.

    A category header moves the cursor one line and replaces the current
    category. A question start consumes its body and options and yields a
    candidate. Anything else is skipped.
    """
    if state.cursor >= len(lines):
        return state, None

    line = lines[state.cursor]

    category = match_category(line)
    if category is not None:
        logger.debug(f"Found category: {category}")
        return replace(state, cursor=state.cursor + 1, current_category=category), None

    start = match_question_start(line)
    if start is None:
        return replace(state, cursor=state.cursor + 1), None

    number, first = start
    body, cursor = accumulate_body(lines, state.cursor + 1, first)
    block, cursor = extract_options(lines, cursor)

    candidate = QuestionCandidate(
        question_number=number,
        question_text=body,
        category=state.current_category,
        block=block,
    )
    return replace(state, cursor=cursor), candidate


def assemble_question(
    candidate: QuestionCandidate, excerpt_length: int = 100
) -> Optional[ParsedQuestion]:
    """Build a ParsedQuestion, or return None if options A and B are missing."""
    options = candidate.block.options
    if not options.get("A") or not options.get("B"):
        return None

    text = candidate.question_text
    return ParsedQuestion(
        question_number=candidate.question_number,
        question_text=text,
        options=dict(options),
        correct_answer=candidate.block.correct_answer,
        category=candidate.category or DEFAULT_CATEGORY,
        source_excerpt=f"Q{candidate.question_number}: {text[:excerpt_length]}...",
        references=list(candidate.block.references),
    )


class QuestionScanner:
    """
    Drives scan_step over a whole document and assembles the results.
    Incomplete candidates are dropped silently and only counted.
    """

    def __init__(self, excerpt_length: int = 100):
        self.excerpt_length = excerpt_length
        self.reset()

    def reset(self):
        """Reset the scanner for a fresh run."""
        self.state = ScannerState()
        self.questions: list[ParsedQuestion] = []
        self.dropped: list[str] = []

    def parse(self, lines: list[str]) -> list[ParsedQuestion]:
        """Scan normalized lines into parsed questions, in source order."""
        self.reset()

        while self.state.cursor < len(lines):
            self.state, candidate = scan_step(lines, self.state)
            if candidate is None:
                continue

            question = assemble_question(candidate, self.excerpt_length)
            if question is None:
                self.dropped.append(candidate.question_number)
                logger.debug(
                    f"Skipped question {candidate.question_number} - "
                    f"insufficient options"
                )
                continue

            logger.debug(
                f"Added Q{question.question_number} | "
                f"{len(question.options)} options | Cat: {question.category}"
                + (f" | Answer: {question.correct_answer}"
                   if question.correct_answer else "")
            )
            self.questions.append(question)

        with_answers = sum(1 for q in self.questions if q.has_correct_answer)
        logger.info(
            f"Parsed {len(self.questions)} questions from {len(lines)} lines "
            f"({with_answers} with answers, {len(self.dropped)} dropped)"
        )
        return self.questions
