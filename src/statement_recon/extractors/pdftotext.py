"""
Layout-preserving text extraction via poppler's pdftotext.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .base import BaseTextExtractor, TextExtractionError

logger = logging.getLogger(__name__)


class PdfToTextExtractor(BaseTextExtractor):
    """
    Run `pdftotext -layout <file> -` and return its stdout.

    The -layout flag keeps the statement's table columns aligned, which the
    statement parser depends on (two-column checks table, indented
    continuation lines).
    """

    def __init__(self, binary: str = "pdftotext"):
        self.binary = binary

    @property
    def name(self) -> str:
        return "pdftotext"

    def _resolve_binary(self) -> str:
        found = shutil.which(self.binary)
        if not found:
            raise TextExtractionError(
                f"pdftotext not found ({self.binary!r}); install poppler-utils "
                "or set parser.pdftotext_path"
            )
        return found

    def extract_text(self, path: Path, timeout: Optional[float] = None) -> str:
        path = Path(path)
        if not path.is_file():
            raise TextExtractionError(f"Statement file not found: {path}")

        binary = self._resolve_binary()
        logger.debug(f"Running {binary} -layout on {path} (timeout={timeout})")

        try:
            completed = subprocess.run(
                [binary, "-layout", str(path), "-"],
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise TextExtractionError(f"pdftotext timed out after {timeout}s") from e
        except OSError as e:
            raise TextExtractionError(f"pdftotext failed to start: {e}") from e

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise TextExtractionError(
                f"pdftotext failed with exit code {completed.returncode}: {stderr}"
            )

        return completed.stdout.decode("utf-8", errors="replace")
