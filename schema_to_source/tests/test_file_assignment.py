"""
Tests for file assignment rules.
"""

from __future__ import annotations

import pytest

from schema_to_source.file_assignment import FileAssigner, FileNamingContext, FileRule, merge_file_rules


class TestFileAssigner:
    """Tests for FileAssigner.path_for."""

    def test_first_matching_rule_wins(self):
        """Test prefix matching in rule order."""
        assigner = FileAssigner([FileRule("types:User", "user_types.py"), FileRule("types:", "types.py")])

        assert assigner.path_for("types:User:row", "UserRow") == "user_types.py"
        assert assigner.path_for("types:Post:row", "PostRow") == "types.py"

    def test_naming_function_context(self):
        """Test the context passed to naming functions."""
        seen = []

        def naming(context: FileNamingContext) -> str:
            seen.append(context)
            return f"{context.folder_name}/{context.variant}.py"

        assigner = FileAssigner([FileRule("types:", naming, output_dir="models/")])

        assert assigner.path_for("types:UserEmail:insert", "UserEmailInsert", schema="app") == "models/user_email/insert.py"
        assert seen[0] == FileNamingContext(
            name="UserEmailInsert",
            entity_name="UserEmail",
            folder_name="user_email",
            capability="types:UserEmail:insert",
            variant="insert",
            schema="app",
        )

    def test_explicit_entity(self):
        """Test that an explicit entity overrides the capability segment."""
        assigner = FileAssigner([FileRule("queries:", lambda c: f"{c.folder_name}.py")])

        assert assigner.path_for("queries:findById", "find_by_id", entity="User") == "user.py"

    def test_default_file(self):
        """Test the fallback for unmatched capabilities."""
        assert FileAssigner([], default_file="index.py").path_for("misc", "x") == "index.py"

    def test_no_match_without_default(self):
        """Test that an unplaceable capability fails."""
        with pytest.raises(ValueError):
            FileAssigner([]).path_for("misc", "x")


class TestMergeFileRules:
    """Tests for combining defaults with overrides."""

    def test_override_replaces_pattern(self):
        defaults = [FileRule("types:", "types.py"), FileRule("enums:", "enums.py")]
        overrides = [FileRule("types:", "models.py")]

        merged = merge_file_rules(defaults, overrides)

        assert merged == [FileRule("enums:", "enums.py"), FileRule("types:", "models.py")]
