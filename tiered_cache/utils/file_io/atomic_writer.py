"""
Atomic file writing for the durable cache store.

Content is written to a temporary sibling file and moved over the target
with ``os.replace`` so readers never observe a half-written document.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional
import logging

from ...core.exceptions import BackendUnavailableError


class AtomicWriter:
    """
    Atomic file writer.

    Attributes:
        logger (logging.Logger): Logger instance
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def write_atomic(self, file_path: Path, content: str, encoding: str = 'utf-8') -> Path:
        """
        Write content to a file atomically.

        Args:
            file_path: Path to the target file
            content: Content to write
            encoding: File encoding

        Returns:
            The target file path

        Raises:
            BackendUnavailableError: If the write operation fails
        """
        temp_file = None

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            # One temp file per write
            fd, temp_name = tempfile.mkstemp(
                dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
            )
            temp_file = Path(temp_name)
            with os.fdopen(fd, "w", encoding=encoding) as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_file, file_path)
            self.logger.debug(f"File written atomically: {file_path}")
            return file_path

        except OSError as e:
            self.logger.error(f"Failed to write file atomically: {file_path}: {e}")

            if temp_file is not None and temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    self.logger.debug(f"Could not remove temporary file {temp_file}")

            raise BackendUnavailableError(
                f"Failed to write {file_path}: {e}",
                backend="durable",
                operation="SET",
                original_error=e
            )

    def read(self, file_path: Path, encoding: str = 'utf-8') -> Optional[str]:
        """
        Read a file written by ``write_atomic``.

        Returns:
            File content, or None if the file does not exist

        Raises:
            BackendUnavailableError: If the file exists but cannot be read
        """
        try:
            with open(file_path, 'r', encoding=encoding) as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to read {file_path}: {e}",
                backend="durable",
                operation="GET",
                original_error=e
            )
