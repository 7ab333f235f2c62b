"""
Error Taxonomy
==============
Exceptions raised by the ingestion pipeline.

Only two families abort an import call:
    - InputRejectedError: the upload is refused before parsing starts
    - CommitError: the bulk insert failed and nothing was imported

Per-item problems (bad rows, duplicates, incomplete questions) are never
raised; they are recorded on the ImportResult / PDFPreview instead.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all ingestion failures."""


# ─── Input Rejections ─────────────────────────────────────────────────────────


class InputRejectedError(IngestError, ValueError):
    """The uploaded input cannot be processed at all."""

    category = "input_rejected"


class UnsupportedFileError(InputRejectedError):
    category = "unsupported_file"


class FileTooLargeError(InputRejectedError):
    category = "file_too_large"


class TooManyRowsError(InputRejectedError):
    category = "too_many_rows"


class EmptySpreadsheetError(InputRejectedError):
    category = "empty_spreadsheet"


class InvalidSpreadsheetError(InputRejectedError):
    """Workbook has no usable sheet or is missing required columns."""

    category = "invalid_spreadsheet"


class CorruptFileError(InputRejectedError):
    category = "corrupt_file"


class EncryptedPDFError(InputRejectedError):
    category = "encrypted_pdf"


class NoExtractableTextError(InputRejectedError):
    """PDF is image-only (scanned) or carries too little text."""

    category = "no_text"


class NoQuestionsFoundError(InputRejectedError):
    category = "no_questions"


class UnsupportedCourseError(InputRejectedError):
    category = "unsupported_course"


# ─── Commit Failures ──────────────────────────────────────────────────────────


class CommitError(IngestError, RuntimeError):
    """Bulk insert failed; the whole batch was rolled back."""

    category = "commit_failed"
