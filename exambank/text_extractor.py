"""
Text Extractor
==============
Extracts positioned text lines from PDF bytes using PyMuPDF (fitz).

Text runs are regrouped into logical lines by their vertical position:
runs whose top edges lie within ``line_tolerance`` points of each other
belong to the same visual line, ordered left to right.

Rejects (never returns empty text for):
    - Unreadable / corrupt / empty byte streams
    - Password-protected PDFs
    - Image-only (scanned) PDFs with no embedded text
"""

from __future__ import annotations

import logging

import fitz  # PyMuPDF

from .errors import CorruptFileError, EncryptedPDFError, NoExtractableTextError
from .models import RawLine

logger = logging.getLogger(__name__)


class TextExtractor:
    """
    Handles PDF ingestion and line reconstruction.

    Only embedded text is read; images are ignored (no OCR).
    """

    def __init__(self, line_tolerance: float = 2.0, min_text_length: int = 50):
        self.line_tolerance = line_tolerance
        self.min_text_length = min_text_length

    def extract_lines(self, data: bytes) -> list[RawLine]:
        """
        Extract ordered logical lines from a PDF byte buffer.

        Raises:
            CorruptFileError: If the bytes are not a readable PDF.
            EncryptedPDFError: If the PDF needs a password.
        """
        if not data:
            raise CorruptFileError("The uploaded PDF is empty.")

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:  # fitz.FileDataError is a RuntimeError
            raise CorruptFileError(
                "Invalid PDF file format. Please ensure the file is a valid PDF."
            ) from e

        with doc:
            if doc.needs_pass:
                raise EncryptedPDFError(
                    "The PDF is password-protected. "
                    "Please remove encryption and try again."
                )
            if doc.page_count == 0:
                raise CorruptFileError("The PDF has no pages.")

            all_lines: list[RawLine] = []
            for page_idx in range(doc.page_count):
                page = doc[page_idx]
                page_lines = self._extract_page_lines(page, page_idx + 1)
                all_lines.extend(page_lines)

            logger.info(
                f"Extracted {len(all_lines)} lines from {doc.page_count} pages"
            )

        return all_lines

    def extract_text(self, data: bytes) -> str:
        """
        Extract the PDF as a single text blob with one logical line per row.

        Raises:
            NoExtractableTextError: If the PDF carries no meaningful text.
        """
        lines = self.extract_lines(data)
        text = "\n".join(line.text for line in lines)

        logger.debug(f"Extracted text length: {len(text)}")

        if not text.strip():
            raise NoExtractableTextError(
                "No text could be extracted from the PDF. "
                "The PDF might be image-based or scanned."
            )
        if len(text) < self.min_text_length:
            raise NoExtractableTextError(
                "Could not extract meaningful text from PDF. "
                "The PDF may be image-based (scanned) or empty."
            )
        return text

    def _extract_page_lines(self, page: fitz.Page, page_num: int) -> list[RawLine]:
        """Regroup the text runs of one page into visual lines."""
        runs: list[tuple[float, float, str]] = []

        page_dict = page.get_text("dict")
        for block in page_dict.get("blocks", []):
            if block.get("type") != 0:  # Text only
                continue
            for line in block.get("lines", []):
                line_text = "".join(
                    span.get("text", "") for span in line.get("spans", [])
                )
                if not line_text.strip():
                    continue
                x0, y0 = line["bbox"][0], line["bbox"][1]
                runs.append((y0, x0, line_text))

        # Reading order: top to bottom, then left to right
        runs.sort(key=lambda r: (r[0], r[1]))

        lines: list[RawLine] = []
        current: list[tuple[float, str]] = []
        current_y = None

        for y, x, text in runs:
            if current_y is not None and abs(y - current_y) > self.line_tolerance:
                lines.append(self._join_runs(current, page_num, current_y))
                current = []
                current_y = None
            if current_y is None:
                current_y = y
            current.append((x, text))

        if current:
            lines.append(self._join_runs(current, page_num, current_y))

        return lines

    @staticmethod
    def _join_runs(
        runs: list[tuple[float, str]], page_num: int, y: float
    ) -> RawLine:
        runs.sort(key=lambda r: r[0])
        text = " ".join(t.strip() for _, t in runs if t.strip())
        return RawLine(text=text, page_number=page_num, y=y)
