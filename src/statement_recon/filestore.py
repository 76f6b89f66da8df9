"""
Local file storage for uploaded statement documents.

Stored files get a random name that keeps the original extension; the
returned identifier is that name, relative to the store's base path.
"""

import logging
import secrets
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class FileStoreError(Exception):
    """Raised when a stored file cannot be written, found or removed."""

    pass


class FileStore:
    """Flat directory of uploaded files."""

    def __init__(self, base_path: Path | str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _generate_id() -> str:
        return secrets.token_hex(8)

    def save(self, filename: str, src: Path | str) -> str:
        """
        Copy a file into the store.

        Args:
            filename: Original name (only its extension is kept)
            src: Local file to copy

        Returns:
            Identifier of the stored file
        """
        identifier = self._generate_id() + Path(filename).suffix.lower()
        dest = self.base_path / identifier

        try:
            shutil.copyfile(src, dest)
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise FileStoreError(f"Cannot store {filename}: {e}") from e

        logger.debug(f"Stored {filename} as {identifier}")
        return identifier

    def resolve(self, identifier: str) -> Path:
        """Return the full path of a stored file."""
        if not identifier:
            raise FileStoreError("Empty file identifier")

        path = (self.base_path / identifier).resolve()
        if path.parent != self.base_path.resolve():
            raise FileStoreError(f"Invalid file identifier: {identifier!r}")
        return path

    def delete(self, identifier: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        if not identifier:
            return
        try:
            self.resolve(identifier).unlink(missing_ok=True)
        except OSError as e:
            raise FileStoreError(f"Cannot delete {identifier}: {e}") from e
