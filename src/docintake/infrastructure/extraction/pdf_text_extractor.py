"""PDF text extractor - TextExtractorPort implementation using pdfplumber.

Extraction is best-effort: scanned PDFs and images yield "" and the
classifier falls back to the image itself or the filename.
"""

import io
import logging

import pdfplumber

from ...domain.validation.ports import TextExtractorPort

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = {"text/plain", "text/csv"}


class PDFTextExtractor(TextExtractorPort):
    """Reads the text layer of PDFs, decodes plain text, ignores everything else."""

    def __init__(self, max_pages: int = 10):
        self.max_pages = max_pages

    def extract_text(self, content: bytes, mime_type: str, file_name: str) -> str:
        if not content:
            return ""

        if mime_type in TEXT_MIME_TYPES:
            return content.decode("utf-8", errors="replace")

        if mime_type != "application/pdf" and not (file_name or "").lower().endswith(".pdf"):
            return ""

        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = pdf.pages[: self.max_pages]
                all_text = "\n".join((page.extract_text() or "") for page in pages)
        except Exception as e:
            logger.warning(f"Could not read PDF text from {file_name}: {e}")
            return ""

        text = all_text.strip()
        logger.info(f"Extracted {len(text)} chars from {len(pages)} PDF pages of {file_name}")
        return text
