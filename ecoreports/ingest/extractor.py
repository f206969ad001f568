"""
PDF text extraction.
"""

import io
import logging
from typing import NamedTuple

import PyPDF2

from ecoreports.errors import ExtractionError

logger = logging.getLogger(__name__)


class ExtractedText(NamedTuple):
    text: str
    page_count: int


def extract_text(payload: bytes) -> ExtractedText:
    """
    Extract plain text and the page count from raw PDF bytes.

    Pages are joined with a blank line.  Raises ``ExtractionError`` when the
    bytes are not a readable PDF or no text comes out of it.
    """
    if not payload:
        raise ExtractionError("PDF payload is empty.")

    try:
        reader = PyPDF2.PdfReader(io.BytesIO(payload))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise ExtractionError(f"Failed to parse PDF: {e}", e) from e

    text = "\n\n".join(pages)
    if not text.strip():
        raise ExtractionError("No text could be extracted from the PDF")

    logger.debug("Extracted %d characters from %d pages", len(text), len(pages))
    return ExtractedText(text=text, page_count=len(pages))
