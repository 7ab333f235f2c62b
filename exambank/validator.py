"""
Row Validation
==============
Required-field and cross-field checks for one structured import row.

Every message carries the 1-based spreadsheet row number so a human can
find the offending row. Rows are judged independently; the validator holds
no state between calls.
"""

from __future__ import annotations

from typing import Optional

from .models import (
    VALID_ANSWERS,
    VALID_DIFFICULTIES,
    CourseVariant,
    ImportRow,
    get_course_variant,
)


def validate_row(
    row: ImportRow,
    row_number: int,
    course: CourseVariant | str,
) -> Optional[str]:
    """
    Validate one import row.

    Args:
        row: The row as read from the sheet.
        row_number: 1-based sheet row (data starts at 2 after the header).
        course: Course variant (or its code) the import targets.

    Returns:
        A human-readable error message, or None if the row is valid.
    """
    variant = course if isinstance(course, CourseVariant) else get_course_variant(course)
    prefix = f"Row {row_number}"

    if not row.question_text.strip():
        return f"{prefix}: question_text is required"
    if not row.option_a.strip():
        return f"{prefix}: option_a is required"
    if not row.option_b.strip():
        return f"{prefix}: option_b is required"

    answer = row.correct_answer.strip().upper()
    if not answer:
        return f"{prefix}: correct_answer is required"
    if answer not in VALID_ANSWERS:
        return f"{prefix}: correct_answer must be A, B, C, or D"

    if row.difficulty.strip() not in VALID_DIFFICULTIES:
        return f"{prefix}: difficulty must be Easy, Medium, or Hard"

    if not row.category.strip():
        return f"{prefix}: category is required"
    if not row.subject.strip():
        return f"{prefix}: subject is required"

    if variant.requires_area and not row.area.strip():
        return f"{prefix}: area is required for {variant.code} questions"

    # A row must not name a correct option it doesn't supply
    if answer == "C" and not row.option_c.strip():
        return f"{prefix}: option_c is required when correct_answer is C"
    if answer == "D" and not row.option_d.strip():
        return f"{prefix}: option_d is required when correct_answer is D"

    return None
