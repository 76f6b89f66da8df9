"""
Extractor for statements that were already converted to text.
"""

from pathlib import Path
from typing import Optional

from .base import BaseTextExtractor, TextExtractionError


class PlainTextExtractor(BaseTextExtractor):
    """Read a pre-extracted layout text file as-is."""

    @property
    def name(self) -> str:
        return "plain_text"

    def extract_text(self, path: Path, timeout: Optional[float] = None) -> str:
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise TextExtractionError(f"Cannot read {path}: {e}") from e
