"""
Shared fixtures: in-memory PDFs and workbooks, temporary question banks.
"""

from __future__ import annotations

from io import BytesIO

import fitz  # PyMuPDF
import pytest
from openpyxl import Workbook

from exambank.database import QuestionStore

BSGE_HEADER = [
    "question_text", "option_a", "option_b", "option_c", "option_d",
    "correct_answer", "difficulty", "category", "subject", "explanation",
]
BSABEN_HEADER = [
    "question_text", "option_a", "option_b", "option_c", "option_d",
    "correct_answer", "difficulty", "category", "area", "subject", "explanation",
]


def build_pdf(lines: list[str], line_height: float = 16.0) -> bytes:
    """Render each string on its own line of a single A4 page."""
    doc = fitz.open()
    page = doc.new_page()
    for idx, line in enumerate(lines):
        page.insert_text((72, 72 + idx * line_height), line, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def build_workbook(header: list, rows: list[list], extra_sheets: dict = None) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Questions"
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    for name, lines in (extra_sheets or {}).items():
        extra = workbook.create_sheet(name)
        for line in lines:
            extra.append(line)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def bsge_row(text: str, answer: str = "A", subject: str = "Surveying", **overrides) -> list:
    values = {
        "question_text": text,
        "option_a": "Alpha",
        "option_b": "Bravo",
        "option_c": "Charlie",
        "option_d": "Delta",
        "correct_answer": answer,
        "difficulty": "Medium",
        "category": "Engineering Science",
        "subject": subject,
        "explanation": "",
    }
    values.update(overrides)
    return [values[col] for col in BSGE_HEADER]


def bsaben_row(text: str, area: str = "Power", subject: str = "Hydraulics", **overrides) -> list:
    values = {
        "question_text": text,
        "option_a": "Alpha",
        "option_b": "Bravo",
        "option_c": "",
        "option_d": "",
        "correct_answer": "B",
        "difficulty": "Easy",
        "category": "Engineering Science",
        "area": area,
        "subject": subject,
        "explanation": "",
    }
    values.update(overrides)
    return [values[col] for col in BSABEN_HEADER]


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "questions.sqlite")


@pytest.fixture
def store(db_path) -> QuestionStore:
    store = QuestionStore(db_path)
    store.init()
    return store


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf([
        "Hydraulics (2 items):",
        "1. What is the unit of discharge",
        "in the SI system?",
        "a. cubic meters per second *",
        "b. liters",
        "c. meters per second",
        "2. Which instrument measures flow velocity?",
        "a. Current meter",
        "b. Barometer",
    ])
