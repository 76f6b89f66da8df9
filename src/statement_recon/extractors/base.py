"""
Base text extractor interface and common errors.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class TextExtractionError(Exception):
    """Raised when a document cannot be converted to text.

    Always fatal to the parse that requested it.
    """

    pass


class BaseTextExtractor(ABC):
    """
    Base class for all text extractors.

    Each extractor converts a stored document into plain text that keeps
    the visual layout (column alignment, indentation) of the original page.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @abstractmethod
    def extract_text(self, path: Path, timeout: Optional[float] = None) -> str:
        """
        Convert the document at path into layout-preserved text.

        Args:
            path: Local path of the stored document
            timeout: Seconds the caller is willing to wait (None = unbounded)

        Returns:
            Raw text

        Raises:
            TextExtractionError: If the document could not be converted
        """
        pass
