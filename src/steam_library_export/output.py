"""
Artifact naming and writing.
"""

import logging
import os
import re
import tempfile
from pathlib import Path

from .errors import WriteFailure

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    """Remove characters that are not allowed in file names on common platforms."""
    cleaned = _UNSAFE_CHARS.sub("", name).strip()
    return cleaned or "untitled"


class ArtifactWriter:
    """Reads and writes one note file per game in the output directory."""

    def __init__(self, output_dir: Path, extension: str = ".md"):
        self.output_dir = output_dir
        self.extension = extension

    def path_for(self, name: str) -> Path:
        """Path of the note for an already sanitized name."""
        return self.output_dir / f"{name}{self.extension}"

    def read_existing(self, path: Path) -> str | None:
        """Current note contents, or None if there is no readable note."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read existing note {path}: {e}")
            return None

    def write(self, path: Path, text: str) -> None:
        """
        Write a note, replacing any previous version.

        The text goes to a temporary file first so an interrupted run never
        leaves a half-written note behind.

        Raises:
            WriteFailure: If the note could not be written
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=".tmp-", suffix=self.extension
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise WriteFailure(path, str(e)) from e
