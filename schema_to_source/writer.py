"""
Atomic file writer for finalized output.

Ensures that an interrupted write never leaves a generated file in an
incomplete state.
"""

from __future__ import annotations

import ast
import logging
import tempfile
from collections.abc import Callable
from pathlib import Path

from .errors import WriteError

logger = logging.getLogger(__name__)


class AtomicWriter:
    """Writes files through a temporary file and an atomic replace.

    1. Write to a temporary file in the target directory
    2. Validate the content (Python files only)
    3. Replace the target file

    With ``atomic=False`` the content is validated and written in place.
    """

    def __init__(self, validate_python: Callable[[str, Path], None] | None = None, atomic: bool = True):
        """Initialize the writer.

        Args:
            validate_python: Optional validation for Python content; raises WriteError
            atomic: Whether to go through a temporary file
        """
        self._validate_python = validate_python or self._default_validate_python
        self._atomic = atomic

    def write(self, path: Path, content: str, validate: bool = True) -> None:
        """Write content to ``path``.

        Args:
            path: Target file path
            content: Content to write
            validate: Whether to validate before finalizing

        Raises:
            WriteError: If validation fails
            OSError: If file operations fail
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if not self._atomic:
            if validate:
                self._validate(content, path)
            path.write_text(content, encoding="utf-8")
            return

        # Same directory so the replace stays on one filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            text=True,
        )
        temp_path = Path(temp_path_str)

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)

            if validate:
                self._validate(content, path)

            temp_path.replace(path)
            logger.debug("Wrote %s", path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

    def write_if_not_exists(self, path: Path, content: str, validate: bool = True) -> None:
        """Write content only if the file doesn't exist yet.

        Raises:
            FileExistsError: If the file already exists
            WriteError: If validation fails
        """
        path = Path(path)
        if path.exists():
            raise FileExistsError(f"Output file already exists: {path}. Use force mode to overwrite.")
        self.write(path, content, validate)

    def _validate(self, content: str, path: Path) -> None:
        if path.suffix == ".py":
            self._validate_python(content, path)

    def _default_validate_python(self, content: str, path: Path) -> None:
        try:
            ast.parse(content)
        except SyntaxError as e:
            raise WriteError(str(path), f"generated Python code is not valid: {e}") from e
