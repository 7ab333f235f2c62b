"""
Data Models
===========
Pydantic models for the ingestion pipeline.
API-facing models serialize with camelCase aliases (``model_dump(by_alias=True)``)
and accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import UnsupportedCourseError

Letter = Literal["A", "B", "C", "D", "E"]

OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D", "E")
VALID_ANSWERS: tuple[str, ...] = ("A", "B", "C", "D")
DEFAULT_CATEGORY = "General"


class ApiModel(BaseModel):
    """Base for models returned to API callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Enums ────────────────────────────────────────────────────────────────────


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


VALID_DIFFICULTIES: tuple[str, ...] = tuple(d.value for d in Difficulty)


# ─── Course Variants ──────────────────────────────────────────────────────────


class CourseVariant(BaseModel):
    """Academic program configuration."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    requires_area: bool = False


COURSE_VARIANTS: dict[str, CourseVariant] = {
    "BSABEN": CourseVariant(
        code="BSABEN",
        name="BS Agricultural and Biosystems Engineering",
        requires_area=True,
    ),
    "BSGE": CourseVariant(
        code="BSGE",
        name="BS Geodetic Engineering",
        requires_area=False,
    ),
}


def get_course_variant(code: Optional[str]) -> CourseVariant:
    """Look up a course variant by code (case-insensitive)."""
    key = (code or "").strip().upper()
    variant = COURSE_VARIANTS.get(key)
    if variant is None:
        valid = ", ".join(COURSE_VARIANTS)
        raise UnsupportedCourseError(
            f"Invalid course {code!r}. Must be one of: {valid}."
        )
    return variant


# ─── PDF Models ───────────────────────────────────────────────────────────────


class RawLine(BaseModel):
    """A logical line of extracted PDF text with its vertical position."""

    text: str
    page_number: int = Field(ge=1)
    y: float = Field(description="Top of the line in PDF points")


class ParsedQuestion(ApiModel):
    """
    A multiple-choice question recovered from PDF text.
    Options A and B are always present; C/D/E only when found in the source.
    """

    question_number: str
    question_text: str
    options: dict[Letter, str]
    correct_answer: Optional[Letter] = None
    category: str = DEFAULT_CATEGORY
    source_excerpt: str = ""
    references: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_options(self) -> "ParsedQuestion":
        for key in ("A", "B"):
            if not self.options.get(key, "").strip():
                raise ValueError(f"option {key} must be present and non-empty")
        if self.correct_answer and self.correct_answer not in self.options:
            raise ValueError(
                f"correct answer {self.correct_answer} is not one of the options"
            )
        return self

    @property
    def has_correct_answer(self) -> bool:
        return self.correct_answer is not None


class PDFPreview(ApiModel):
    """Parsed questions returned for human review; nothing is committed."""

    total_found: int = 0
    with_correct_answers: int = 0
    needs_answers: int = 0
    categories: list[str] = Field(default_factory=list)
    questions: list[ParsedQuestion] = Field(default_factory=list)
    message: str = ""
    warning: Optional[str] = None

    @classmethod
    def from_questions(cls, questions: list[ParsedQuestion]) -> "PDFPreview":
        with_answers = sum(1 for q in questions if q.has_correct_answer)
        needs = len(questions) - with_answers
        categories = list(dict.fromkeys(q.category for q in questions))

        warning = None
        if needs:
            warning = (
                "Some questions don't have correct answers marked. "
                "Set them manually before importing, or they will be skipped."
            )

        return cls(
            total_found=len(questions),
            with_correct_answers=with_answers,
            needs_answers=needs,
            categories=categories,
            questions=questions,
            message=(
                f"Found {len(questions)} questions. {with_answers} have correct "
                f"answers marked, {needs} need answers."
            ),
            warning=warning,
        )


class ConfirmedQuestion(ApiModel):
    """
    A previewed question after human review, submitted for commit.
    Fields left empty fall back to the defaults of the confirm call.
    """

    question_number: str = ""
    question_text: str = ""
    options: dict[str, str] = Field(default_factory=dict)
    correct_answer: Optional[str] = None
    category: Optional[str] = None
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    area: Optional[str] = None
    explanation: Optional[str] = None

    @field_validator("options", mode="before")
    @classmethod
    def _upper_keys(cls, value):
        if isinstance(value, dict):
            return {
                str(k).strip().upper(): "" if v is None else str(v)
                for k, v in value.items()
            }
        return value


# ─── Spreadsheet Models ───────────────────────────────────────────────────────


class ImportRow(BaseModel):
    """
    One data row of a structured import, exactly as read from the sheet.
    Values are coerced to strings but not trimmed; the validator judges them.
    """

    model_config = ConfigDict(frozen=True)

    question_text: str = ""
    option_a: str = ""
    option_b: str = ""
    option_c: str = ""
    option_d: str = ""
    correct_answer: str = ""
    difficulty: str = ""
    category: str = ""
    subject: str = ""
    area: str = ""
    explanation: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_cell(cls, value):
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return value if isinstance(value, str) else str(value)


class RowError(ApiModel):
    row: int
    reason: str
    text: str


class DuplicateEntry(ApiModel):
    row: int
    text: str


class ImportResult(ApiModel):
    """
    Aggregate outcome of one import call. Append-only while the call runs.

    Invariants:
        imported + skipped == total_rows
        skipped == len(errors) + len(duplicates_in_file) + len(duplicates_in_db)
    """

    imported: int = 0
    skipped: int = 0
    errors: list[RowError] = Field(default_factory=list)
    duplicates_in_file: list[DuplicateEntry] = Field(default_factory=list)
    duplicates_in_db: list[DuplicateEntry] = Field(default_factory=list)
    total_rows: int = Field(default=0, exclude=True)

    def add_error(self, row: int, reason: str, text: str):
        self.errors.append(RowError(row=row, reason=reason, text=text))
        self.skipped += 1

    def add_duplicate_in_file(self, row: int, text: str):
        self.duplicates_in_file.append(DuplicateEntry(row=row, text=text))
        self.skipped += 1

    def add_duplicate_in_db(self, row: int, text: str):
        self.duplicates_in_db.append(DuplicateEntry(row=row, text=text))
        self.skipped += 1

    @property
    def is_consistent(self) -> bool:
        listed = (
            len(self.errors)
            + len(self.duplicates_in_file)
            + len(self.duplicates_in_db)
        )
        return (
            self.skipped == listed
            and self.imported + self.skipped == self.total_rows
        )


# ─── Persisted Question ───────────────────────────────────────────────────────


class Question(BaseModel):
    """A question record as written to storage."""

    question_text: str
    option_a: str
    option_b: str
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    correct_answer: str
    difficulty: str
    category: str
    course: str
    area: Optional[str] = None
    subject: str
    explanation: Optional[str] = None
    identity_key: str
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

