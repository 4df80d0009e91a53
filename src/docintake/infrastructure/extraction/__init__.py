"""Text extraction adapters"""

from .pdf_text_extractor import PDFTextExtractor

__all__ = ["PDFTextExtractor"]
