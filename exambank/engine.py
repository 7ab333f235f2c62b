"""
Import Orchestrator
===================
Main entry point that ties extraction, scanning, validation, duplicate
resolution and the bulk commit together.

Usage:
    orchestrator = ImportOrchestrator(QuestionStore(db_path), config)
    preview = orchestrator.preview_pdf(pdf_bytes, "exam.pdf")
    result = orchestrator.import_spreadsheet(xlsx_bytes, "bank.xlsx", course="BSGE")

Architecture:
    PDF  → TextExtractor → normalize_lines → QuestionScanner → PDFPreview
           (human review) → confirm_pdf_import ─┐
    XLSX → read_import_rows ────────────────────┴→ validate_row →
           DuplicateKeyResolver → bulk insert → ImportResult
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from .database import QuestionStore
from .duplicates import DuplicateKeyResolver, DuplicateStatus
from .errors import (
    FileTooLargeError,
    NoQuestionsFoundError,
    TooManyRowsError,
    UnsupportedFileError,
)
from .models import (
    DEFAULT_CATEGORY,
    ConfirmedQuestion,
    CourseVariant,
    ImportResult,
    ImportRow,
    PDFPreview,
    Question,
    get_course_variant,
)
from .normalizer import normalize_lines
from .spreadsheet import read_import_rows
from .state_machine import QuestionScanner
from .text_extractor import TextExtractor
from .validator import validate_row

logger = logging.getLogger(__name__)

PDF_EXTENSIONS = (".pdf",)
SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm")


@dataclass
class ImporterConfig:
    """Configuration for the import orchestrator."""

    # Upload limits (checked before parsing)
    max_pdf_bytes: int = 10 * 1024 * 1024
    max_spreadsheet_bytes: int = 5 * 1024 * 1024
    max_rows: int = 500

    # PDF extraction
    min_text_length: int = 50
    line_tolerance: float = 2.0

    # Reporting
    excerpt_length: int = 100
    duplicate_text_length: int = 80

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class Store(Protocol):
    def insert_many(self, questions: list[Question]) -> list[int]: ...

    def find_identities_by_course(self, course: str) -> list[dict]: ...

    def count(self, course: Optional[str] = None) -> int: ...


class ImportOrchestrator:
    """
    Drives the two ingestion paths.

        - Spreadsheet commit mode: validate → dedup → single bulk insert
        - PDF preview mode: extract → scan → preview (nothing committed),
          followed by an explicit confirm that commits reviewed questions

    Each call is self-contained; no state is shared between imports.
    """

    def __init__(self, store: Optional[Store] = None, config: Optional[ImporterConfig] = None):
        self.store = store or QuestionStore()
        self.config = config or ImporterConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the exambank package
        pkg_logger = logging.getLogger("exambank")
        pkg_logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Console handler
        if not pkg_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            pkg_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).resolve()
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in pkg_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                pkg_logger.addHandler(file_handler)

    # ─── PDF Preview ──────────────────────────────────────────────────────

    def preview_pdf(self, data: bytes, filename: str = "upload.pdf") -> PDFPreview:
        """
        Parse a PDF exam sheet into questions for human review.

        Raises:
            InputRejectedError: Wrong extension, too large, unreadable,
                encrypted, no text, or no questions found.
        """
        self._check_upload(filename, data, PDF_EXTENSIONS, self.config.max_pdf_bytes)

        start_time = time.time()
        logger.info(f"Starting PDF preview of: {filename} ({len(data)} bytes)")

        # ── Step 1: Extract text ──────────────────────────────────────
        extractor = TextExtractor(
            line_tolerance=self.config.line_tolerance,
            min_text_length=self.config.min_text_length,
        )
        text = extractor.extract_text(data)

        # ── Step 2: Normalize lines ───────────────────────────────────
        lines = normalize_lines(text)

        # ── Step 3: Scan questions ────────────────────────────────────
        scanner = QuestionScanner(excerpt_length=self.config.excerpt_length)
        questions = scanner.parse(lines)

        if not questions:
            raise NoQuestionsFoundError(
                "No questions found in PDF. Please ensure questions are numbered "
                "(1., 2., or 1-2. for ranges), options are labeled (a., b., c., d.) "
                f"and the PDF contains actual text. The parser read {len(lines)} "
                "lines but couldn't identify question patterns."
            )

        preview = PDFPreview.from_questions(questions)

        elapsed = time.time() - start_time
        logger.info(
            f"Preview complete in {elapsed:.2f}s: {preview.total_found} questions, "
            f"{preview.with_correct_answers} with answers, "
            f"{preview.needs_answers} need answers"
        )
        return preview

    def confirm_pdf_import(
        self,
        questions: Iterable[Union[ConfirmedQuestion, dict]],
        course: str,
        default_subject: str,
        default_difficulty: str,
        default_area: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ImportResult:
        """
        Commit reviewed PDF questions.

        Per-question subject/difficulty/area override the defaults. Row
        numbers in the result are 1-based question positions.
        """
        variant = get_course_variant(course)

        rows: list[tuple[int, ImportRow]] = []
        for position, raw in enumerate(questions, start=1):
            q = raw if isinstance(raw, ConfirmedQuestion) else ConfirmedQuestion.model_validate(raw)
            if q.options.get("E"):
                logger.debug(f"Question {position}: option E is not stored")
            rows.append((position, ImportRow(
                question_text=q.question_text,
                option_a=q.options.get("A", ""),
                option_b=q.options.get("B", ""),
                option_c=q.options.get("C", ""),
                option_d=q.options.get("D", ""),
                correct_answer=q.correct_answer or "",
                difficulty=q.difficulty or default_difficulty or "",
                category=q.category or DEFAULT_CATEGORY,
                subject=q.subject or default_subject or "",
                area=q.area or default_area or "",
                explanation=q.explanation or "",
            )))

        self._check_row_count(len(rows))
        logger.info(f"Confirming {len(rows)} reviewed PDF questions for {variant.code}")
        return self._import_rows(rows, variant, created_by)

    # ─── Spreadsheet Import ───────────────────────────────────────────────

    def import_spreadsheet(
        self,
        data: bytes,
        filename: str,
        course: str,
        created_by: Optional[str] = None,
    ) -> ImportResult:
        """
        Validate, deduplicate and commit a spreadsheet import.

        Raises:
            InputRejectedError: Wrong extension, too large, unknown course,
                bad header, no rows or too many rows.
            CommitError: The bulk insert failed; nothing was imported.
        """
        self._check_upload(
            filename, data, SPREADSHEET_EXTENSIONS, self.config.max_spreadsheet_bytes
        )
        variant = get_course_variant(course)

        logger.info(f"Starting spreadsheet import of: {filename} for {variant.code}")
        rows = read_import_rows(data, variant)
        self._check_row_count(len(rows))

        return self._import_rows(rows, variant, created_by)

    # ─── Shared Commit Path ───────────────────────────────────────────────

    def _import_rows(
        self,
        rows: list[tuple[int, ImportRow]],
        course: CourseVariant,
        created_by: Optional[str],
    ) -> ImportResult:
        """Validate → in-file dedup → storage dedup → batch → bulk insert."""
        result = ImportResult(total_rows=len(rows))

        # Snapshot stored keys once; not re-checked at commit
        resolver = DuplicateKeyResolver.from_records(
            course, self.store.find_identities_by_course(course.code)
        )

        batch: list[Question] = []
        batch_rows: list[tuple[int, str]] = []

        for row_number, row in rows:
            raw_text = row.question_text.strip()

            error = validate_row(row, row_number, course)
            if error:
                result.add_error(row_number, error, raw_text)
                continue

            area = row.area.strip() if course.requires_area else None
            subject = row.subject.strip()
            key = resolver.key_for(area, subject, raw_text)
            label = self._duplicate_label(course, area, subject, raw_text)

            status = resolver.check(key, row_number)
            if status is DuplicateStatus.IN_FILE:
                result.add_duplicate_in_file(row_number, label)
                continue
            if status is DuplicateStatus.IN_DB:
                result.add_duplicate_in_db(row_number, label)
                continue

            batch.append(self._to_question(row, course, key, created_by))
            batch_rows.append((row_number, label))

        # Single bulk insert; a CommitError propagates with nothing imported
        conflicts: list[int] = []
        if batch:
            conflicts = self.store.insert_many(batch)

        for idx in conflicts:
            row_number, label = batch_rows[idx]
            logger.warning(f"Row {row_number} was stored concurrently; reported as duplicate")
            result.add_duplicate_in_db(row_number, label)
        result.imported = len(batch) - len(conflicts)

        logger.info(
            f"Import complete. {result.imported} imported, {result.skipped} skipped "
            f"({len(result.errors)} errors, {len(result.duplicates_in_file)} in-file "
            f"duplicates, {len(result.duplicates_in_db)} stored duplicates)"
        )
        return result

    def _to_question(
        self,
        row: ImportRow,
        course: CourseVariant,
        key: str,
        created_by: Optional[str],
    ) -> Question:
        return Question(
            question_text=row.question_text.strip(),
            option_a=row.option_a.strip(),
            option_b=row.option_b.strip(),
            option_c=row.option_c.strip() or None,
            option_d=row.option_d.strip() or None,
            correct_answer=row.correct_answer.strip().upper(),
            difficulty=row.difficulty.strip(),
            category=row.category.strip(),
            course=course.code,
            area=row.area.strip() if course.requires_area else None,
            subject=row.subject.strip(),
            explanation=row.explanation.strip() or None,
            identity_key=key,
            created_by=created_by,
        )

    def _duplicate_label(
        self, course: CourseVariant, area: Optional[str], subject: str, text: str
    ) -> str:
        scope = "/".join(p for p in (course.code, area, subject) if p)
        return f"[{scope}] {text[:self.config.duplicate_text_length]}"

    # ─── Pre-conditions ───────────────────────────────────────────────────

    def _check_upload(
        self, filename: str, data: bytes, extensions: tuple[str, ...], max_bytes: int
    ):
        ext = Path(filename or "").suffix.lower()
        if ext not in extensions:
            raise UnsupportedFileError(
                f"Unsupported file type {ext or '(none)'!r}. "
                f"Accepted: {', '.join(extensions)}"
            )
        if len(data) > max_bytes:
            raise FileTooLargeError(
                f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
            )

    def _check_row_count(self, count: int):
        if count > self.config.max_rows:
            raise TooManyRowsError(
                f"Too many rows. Maximum {self.config.max_rows} questions per import."
            )
