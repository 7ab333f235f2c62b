"""
Duplicate Detection
===================
Normalized identity keys and the two-pass duplicate check used by every
import: first against rows already seen in the current file, then against
a snapshot of keys already in storage.

The storage snapshot is taken once per import and never re-queried. Two
imports running at the same time can both pass it for the same question;
the unique index on ``questions.identity_key`` rejects the second insert
and the orchestrator reports that row as a storage duplicate.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Iterable, Mapping, Optional

from .models import CourseVariant, get_course_variant

logger = logging.getLogger(__name__)

KEY_DELIMITER = "::"

_WHITESPACE = re.compile(r"\s+")


class DuplicateStatus(str, Enum):
    UNIQUE = "unique"
    IN_FILE = "in_file"
    IN_DB = "in_db"


def normalize_key_part(text: Optional[str]) -> str:
    """Trim, lowercase and collapse whitespace runs."""
    return _WHITESPACE.sub(" ", (text or "").strip().lower())


def build_key(
    course: CourseVariant | str,
    area: Optional[str],
    subject: str,
    question_text: str,
) -> str:
    """
    Build the identity key of a question.

    The area segment is omitted entirely for course variants without an
    area dimension, so stored and incoming keys always line up.
    """
    variant = course if isinstance(course, CourseVariant) else get_course_variant(course)
    parts = [variant.code]
    if variant.requires_area:
        parts.append(normalize_key_part(area))
    parts.append(normalize_key_part(subject))
    parts.append(normalize_key_part(question_text))
    return KEY_DELIMITER.join(parts)


class DuplicateKeyResolver:
    """
    Per-import duplicate checker.

    Usage:
        resolver = DuplicateKeyResolver.from_records(course, store.find_identities_by_course(code))
        status = resolver.check(key, row_number)
    """

    def __init__(self, course: CourseVariant, existing_keys: Iterable[str] = ()):
        self.course = course
        self.existing_keys: frozenset[str] = frozenset(existing_keys)
        self.seen_in_file: dict[str, int] = {}

    @classmethod
    def from_records(
        cls,
        course: CourseVariant,
        records: Iterable[Mapping[str, Optional[str]]],
    ) -> "DuplicateKeyResolver":
        """Snapshot stored identity projections (area, subject, question_text)."""
        keys = {
            build_key(course, r.get("area"), r.get("subject") or "", r.get("question_text") or "")
            for r in records
        }
        logger.info(f"Loaded {len(keys)} existing {course.code} question keys")
        return cls(course, keys)

    def key_for(self, area: Optional[str], subject: str, question_text: str) -> str:
        return build_key(self.course, area, subject, question_text)

    def check(self, key: str, row_number: int) -> DuplicateStatus:
        """
        Classify ``key`` and remember it when unique.

        The in-file check runs first; a repeat refers to the current row,
        the first occurrence is kept.
        """
        first_row = self.seen_in_file.get(key)
        if first_row is not None:
            logger.debug(f"Row {row_number} repeats row {first_row}")
            return DuplicateStatus.IN_FILE

        if key in self.existing_keys:
            return DuplicateStatus.IN_DB

        self.seen_in_file[key] = row_number
        return DuplicateStatus.UNIQUE
