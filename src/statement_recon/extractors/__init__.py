"""
Document → layout-preserved text extractors.

Provides:
- PdfToTextExtractor: poppler `pdftotext -layout`
- PlainTextExtractor: pre-extracted .txt files
- get_extractor_for(): choose by file suffix

Extraction failure is always fatal to the parse that requested it.
"""

from pathlib import Path

from .base import BaseTextExtractor, TextExtractionError
from .pdftotext import PdfToTextExtractor
from .plain_text import PlainTextExtractor


def get_extractor_for(path: Path, pdftotext_path: str = "pdftotext") -> BaseTextExtractor:
    """Return the extractor that handles the given file."""
    if Path(path).suffix.lower() == ".txt":
        return PlainTextExtractor()
    return PdfToTextExtractor(binary=pdftotext_path)


__all__ = [
    "BaseTextExtractor",
    "PdfToTextExtractor",
    "PlainTextExtractor",
    "TextExtractionError",
    "get_extractor_for",
]
