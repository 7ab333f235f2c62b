"""
Spreadsheet I/O
===============
Reads structured question imports from .xlsx workbooks (openpyxl) and
builds the downloadable import template.

Workbook layout:
    - The first sheet not named "Instructions" holds the data
    - Row 1 is the header row; column order is free, names are fixed
    - Fully blank rows are skipped but keep their sheet row numbers
"""

from __future__ import annotations

import logging
from io import BytesIO
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from .errors import CorruptFileError, EmptySpreadsheetError, InvalidSpreadsheetError
from .models import CourseVariant, ImportRow

logger = logging.getLogger(__name__)

INSTRUCTIONS_SHEET = "Instructions"
FIRST_DATA_ROW = 2

REQUIRED_COLUMNS = (
    "question_text",
    "option_a",
    "option_b",
    "correct_answer",
    "difficulty",
    "category",
    "subject",
)
OPTIONAL_COLUMNS = ("option_c", "option_d", "explanation")


def template_columns(course: CourseVariant) -> list[str]:
    """Column set of the import sheet for ``course``."""
    columns = [
        "question_text", "option_a", "option_b", "option_c", "option_d",
        "correct_answer", "difficulty", "category",
    ]
    if course.requires_area:
        columns.append("area")
    columns.extend(["subject", "explanation"])
    return columns


def read_import_rows(data: bytes, course: CourseVariant) -> list[tuple[int, ImportRow]]:
    """
    Read all data rows of an import workbook.

    Returns:
        List of (sheet row number, row) pairs in sheet order.

    Raises:
        CorruptFileError: If the bytes are not a readable workbook.
        InvalidSpreadsheetError: If no data sheet exists or columns are missing.
        EmptySpreadsheetError: If the sheet has no data rows.
    """
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError) as e:
        raise CorruptFileError(
            "The spreadsheet could not be read. Please upload a valid .xlsx file."
        ) from e

    try:
        sheet_name = next(
            (n for n in workbook.sheetnames if n.strip().lower() != INSTRUCTIONS_SHEET.lower()),
            None,
        )
        if sheet_name is None:
            raise InvalidSpreadsheetError("No valid sheet found in the workbook")

        rows_iter = workbook[sheet_name].iter_rows(values_only=True)
        header = next(rows_iter, None)
        columns = _map_header(header, course)

        rows: list[tuple[int, ImportRow]] = []
        for row_number, values in enumerate(rows_iter, start=FIRST_DATA_ROW):
            if not values or all(_is_blank(v) for v in values):
                continue
            record = {
                name: values[idx] if idx < len(values) else None
                for name, idx in columns.items()
            }
            rows.append((row_number, ImportRow(**record)))
    finally:
        workbook.close()

    if not rows:
        raise EmptySpreadsheetError("The file contains no data rows")

    logger.info(f"Read {len(rows)} data rows from sheet {sheet_name!r}")
    return rows


def build_template(course: CourseVariant) -> bytes:
    """Build the import template workbook for ``course`` as .xlsx bytes."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Questions"

    columns = template_columns(course)
    sheet.append(columns)
    for example in _example_rows(course):
        sheet.append([example.get(col, "") for col in columns])

    widths = {"question_text": 70, "explanation": 45, "correct_answer": 16}
    for idx, col in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(idx)].width = widths.get(col, 28)

    info = workbook.create_sheet(INSTRUCTIONS_SHEET)
    for line in _instruction_lines(course):
        info.append([line])
    info.column_dimensions["A"].width = 90

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _map_header(header, course: CourseVariant) -> dict[str, int]:
    """Map known column names to their index in the header row."""
    if not header:
        raise InvalidSpreadsheetError("The sheet has no header row")

    positions: dict[str, int] = {}
    for idx, cell in enumerate(header):
        name = str(cell).strip().lower() if cell is not None else ""
        if name and name not in positions:
            positions[name] = idx

    required = list(REQUIRED_COLUMNS)
    if course.requires_area:
        required.append("area")
    missing = [col for col in required if col not in positions]
    if missing:
        raise InvalidSpreadsheetError(
            f"Missing required column(s): {', '.join(missing)}"
        )

    known = set(required) | set(OPTIONAL_COLUMNS) | {"area"}
    return {name: idx for name, idx in positions.items() if name in known}


def _example_rows(course: CourseVariant) -> list[dict[str, str]]:
    if course.requires_area:
        return [{
            "question_text": (
                "Calculate the total hydrostatic force on a submerged vertical "
                "rectangular gate (2m x 3m) with its top edge 1.5m below the "
                "water surface."
            ),
            "option_a": "85.3 kN",
            "option_b": "96.2 kN",
            "option_c": "72.5 kN",
            "option_d": "108.4 kN",
            "correct_answer": "B",
            "difficulty": "Hard",
            "category": "Engineering Science",
            "area": "Agricultural Power and Energy",
            "subject": "Hydraulics",
            "explanation": "Use F = pg*y*A where y is the depth to the centroid.",
        }]
    return [{
        "question_text": "Under RA 8560, define the scope of Geodetic Engineering practice.",
        "option_a": "Land surveying only",
        "option_b": "Hydrographic surveys only",
        "option_c": "All surveying activities including land, geodetic, and cadastral",
        "option_d": "Environmental impact assessment",
        "correct_answer": "C",
        "difficulty": "Medium",
        "category": "Laws & Ethics",
        "subject": "Professional Practice",
        "explanation": "RA 8560 covers the full scope of Geodetic Engineering.",
    }]


def _instruction_lines(course: CourseVariant) -> list[str]:
    lines = [
        f"QUESTION BANK IMPORT TEMPLATE - {course.code}",
        "",
        "REQUIRED COLUMNS",
        "question_text    - Full question text",
        "option_a         - Choice A",
        "option_b         - Choice B",
        "option_c         - Choice C (required if correct_answer = C)",
        "option_d         - Choice D (required if correct_answer = D)",
        "correct_answer   - One of: A, B, C, D",
        "difficulty       - One of: Easy, Medium, Hard",
        "category         - e.g. Engineering Science, Laws & Ethics, Mathematics",
    ]
    if course.requires_area:
        lines.append("area             - Area the subject belongs to")
    lines.extend([
        "subject          - e.g. Hydraulics, Surveying, Professional Practice",
        "explanation      - Optional explanation for the correct answer",
        "",
        "DUPLICATE DETECTION",
        "Each row is checked twice before importing:",
        "  1. Within the uploaded file - repeated questions are skipped.",
        "  2. Against the question bank - questions already stored are skipped.",
        "Matching ignores case and extra spaces in question_text and subject.",
        "",
        "TIPS",
        "- Do NOT modify the column headers in row 1 of the Questions sheet.",
        "- Delete the example row before uploading your data.",
        "- Maximum 500 questions per upload. Supported format: .xlsx",
    ])
    return lines
