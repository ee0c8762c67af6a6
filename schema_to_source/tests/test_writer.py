"""
Tests for the atomic writer.
"""

from __future__ import annotations

import pytest

from schema_to_source.errors import WriteError
from schema_to_source.writer import AtomicWriter


class TestAtomicWriter:
    """Tests for AtomicWriter."""

    def test_write_creates_parents(self, tmp_path):
        """Test writing into a directory that does not exist yet."""
        target = tmp_path / "pkg" / "types" / "user.py"

        AtomicWriter().write(target, "x = 1\n")

        assert target.read_text(encoding="utf-8") == "x = 1\n"
        assert [p.name for p in target.parent.iterdir()] == ["user.py"]

    def test_invalid_python_is_not_written(self, tmp_path):
        """Test validation failure leaves no target and no temp file."""
        target = tmp_path / "broken.py"

        with pytest.raises(WriteError) as exc_info:
            AtomicWriter().write(target, "def broken(:\n")

        assert exc_info.value.path == str(target)
        assert list(tmp_path.iterdir()) == []

    def test_existing_file_untouched_on_failure(self, tmp_path):
        """Test that a failed write keeps the previous content."""
        target = tmp_path / "a.py"
        target.write_text("x = 1\n", encoding="utf-8")

        with pytest.raises(WriteError):
            AtomicWriter().write(target, "class (")

        assert target.read_text(encoding="utf-8") == "x = 1\n"

    def test_validation_skipped(self, tmp_path):
        """Test writing unparsable Python when validation is off."""
        target = tmp_path / "a.py"

        AtomicWriter().write(target, "class (", validate=False)

        assert target.read_text(encoding="utf-8") == "class ("

    def test_non_python_not_validated(self, tmp_path):
        """Test that only .py files are syntax-checked."""
        target = tmp_path / "a.out"

        AtomicWriter().write(target, "class (")

        assert target.exists()

    def test_non_atomic_mode(self, tmp_path):
        """Test in-place writes still validate."""
        writer = AtomicWriter(atomic=False)
        writer.write(tmp_path / "a.py", "x = 1\n")

        with pytest.raises(WriteError):
            writer.write(tmp_path / "b.py", "class (")
        assert not (tmp_path / "b.py").exists()

    def test_write_if_not_exists(self, tmp_path):
        """Test refusing to overwrite."""
        target = tmp_path / "a.py"
        writer = AtomicWriter()
        writer.write_if_not_exists(target, "x = 1\n")

        with pytest.raises(FileExistsError):
            writer.write_if_not_exists(target, "x = 2\n")

        assert target.read_text(encoding="utf-8") == "x = 1\n"

    def test_custom_validator(self, tmp_path):
        """Test a caller-supplied Python validator."""

        def require_future(content, path):
            if not content.startswith("from __future__"):
                raise WriteError(str(path), "missing __future__ import")

        with pytest.raises(WriteError):
            AtomicWriter(validate_python=require_future).write(tmp_path / "a.py", "x = 1\n")
