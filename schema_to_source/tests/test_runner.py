"""
End-to-end tests for run_providers and write_files.
"""

from __future__ import annotations

import pytest

from schema_to_source.config import GeneratorConfig, OutputConfig, OutputMode
from schema_to_source.errors import EmitConflict, SymbolConflict, UnresolvedReferences
from schema_to_source.file_builder import SymbolMeta, exported
from schema_to_source.imports import symbol_import
from schema_to_source.model import Entity, Field, SemanticModel
from schema_to_source.providers import ProviderRegistry, SymbolDeclaration, define_provider
from schema_to_source.runner import run_providers, write_files

MODEL = SemanticModel(
    entities=(Entity(name="User", fields=(Field("id", "int", is_primary_key=True), Field("email", "str"))),),
    metadata={"source": "postgres://localhost/app"},
)

PLAIN = GeneratorConfig(add_generation_comment=False)


def types_provider():
    def provide(params, deps, ctx):
        ctx.file("user.out").ast(
            exported("class UserRow:\n    id: int", SymbolMeta("UserRow", "types:User:row", entity="User", shape="row"))
        ).emit()
        return "UserRow"

    return define_provider(
        "types",
        "types:User:row",
        provide=provide,
        declare=lambda: [SymbolDeclaration("UserRow", "types:User:row")],
    )


def queries_provider():
    def provide(params, deps, ctx):
        ref = symbol_import("types", "User", "row")
        ctx.file("user-queries.out").import_(ref).import_(ref).ast(
            "def find_by_id(id: int) -> UserRow:\n    ..."
        ).ast("def find_many() -> list[UserRow]:\n    ...").emit()
        return ["find_by_id", "find_many"]

    return define_provider(
        "queries",
        "queries:User:findById",
        provide=provide,
        requires=lambda params: ["types:User:row"],
        declare=lambda: [SymbolDeclaration("find_by_id", "queries:User:findById", ("types:User:row",))],
    )


def enum_provider(name, enum_name):
    def provide(params, deps, ctx):
        ctx.file("enums.out").ast(f"class {enum_name}(Enum):\n    VALUE = 'value'").emit()

    return define_provider(name, name, provide=provide)


class TestRunProviders:
    """End-to-end runs."""

    def test_cross_file_symbol_import(self):
        """Test that a symbol import resolves to one statement for its module."""
        result = run_providers([queries_provider(), types_provider()], MODEL, PLAIN, targets=["queries:User:findById"])

        content = result.files["user-queries.out"]
        import_lines = [line for line in content.splitlines() if line.startswith(("from ", "import "))]
        assert import_lines == ["from .user import UserRow"]
        assert content.startswith("from .user import UserRow\n\n\ndef find_by_id")
        assert result.unresolved == []
        assert [step.provider.name for step in result.plan] == ["types", "queries"]

    def test_structured_files_merge(self):
        """Test two unrelated providers contributing to one file."""
        result = run_providers([enum_provider("X", "EnumA"), enum_provider("Y", "EnumB")], MODEL, PLAIN, targets=["X", "Y"])

        content = result.files["enums.out"]
        assert "class EnumA(Enum)" in content
        assert "class EnumB(Enum)" in content
        assert content.index("EnumA") < content.index("EnumB")
        assert result.emissions.get("enums.out").plugin == "X, Y"

    def test_banner(self):
        """Test the generation banner on structured files."""
        result = run_providers([enum_provider("X", "EnumA"), enum_provider("Y", "EnumB")], MODEL, targets=["X", "Y"])

        lines = result.files["enums.out"].splitlines()
        assert lines[0] == "# This file was generated by schema_to_source. Do not edit it by hand."
        assert lines[1] == "# Generated by: X, Y"
        assert lines[2] == "# Source: postgres://localhost/app"
        assert lines[3] == "class EnumA(Enum):"

    def test_unresolved_reference_is_warning(self, caplog):
        """Test non-strict handling of unresolved imports."""

        def provide(params, deps, ctx):
            ctx.file("posts.py").import_(symbol_import("types", "Post", "row")).ast("x = 1").emit()

        result = run_providers([define_provider("posts", "posts", provide=provide)], MODEL, PLAIN, targets=["posts"])

        assert [ref.describe() for ref in result.unresolved] == ["types/Post/row"]
        assert "Unresolved import types/Post/row" in caplog.text

    def test_unresolved_reference_strict(self):
        """Test strict mode raising on unresolved imports."""

        def provide(params, deps, ctx):
            ctx.file("posts.py").import_(symbol_import("types", "Post", "row")).ast("x = 1").emit()

        config = GeneratorConfig(add_generation_comment=False, strict_references=True)

        with pytest.raises(UnresolvedReferences) as exc_info:
            run_providers([define_provider("posts", "posts", provide=provide)], MODEL, config, targets=["posts"])

        assert exc_info.value.references[0].file == "posts.py"

    def test_raw_emit_conflict(self):
        """Test that two providers writing one raw file fail the run."""

        def writer(text):
            return lambda params, deps, ctx: ctx.file("shared.txt").content(text).emit()

        providers = [define_provider("a", "a", provide=writer("a")), define_provider("b", "b", provide=writer("b"))]

        with pytest.raises(EmitConflict):
            run_providers(providers, MODEL, PLAIN, targets=["a", "b"])

    def test_same_name_in_same_file_conflict(self):
        """Test symbol collisions between providers sharing a file."""

        def exporter(capability):
            return lambda params, deps, ctx: ctx.file("models.py").ast(exported("class User: ...", SymbolMeta("User", capability))).emit()

        providers = [define_provider("a", "a", provide=exporter("models:User")), define_provider("b", "b", provide=exporter("schemas:User"))]

        with pytest.raises(SymbolConflict) as exc_info:
            run_providers(providers, MODEL, PLAIN, targets=["a", "b"])

        assert exc_info.value.file == "models.py"

    def test_declaration_conflict_before_running(self):
        """Test that conflicting declarations stop the run before any provider executes."""
        calls = []

        def declaring(name):
            return define_provider(
                name,
                name,
                provide=lambda params, deps, ctx: calls.append(name),
                declare=lambda: [SymbolDeclaration("UserRow", "types:User:row")],
            )

        with pytest.raises(SymbolConflict):
            run_providers([declaring("a"), declaring("b")], MODEL, PLAIN, targets=["a"])

        assert calls == []

    def test_pending_requests_through_registry(self):
        """Test passing a registry with requests issued up front."""
        registry = ProviderRegistry.from_providers([types_provider()])
        deferred = registry.request("types:User:row", requested_by="routes")

        run_providers(registry, MODEL, PLAIN)

        assert deferred.result == "UserRow"


class TestWriteFiles:
    """Tests for writing finalized files."""

    def test_writes_all_files(self, tmp_path):
        """Test files are written under the output directory."""
        result = run_providers([queries_provider(), types_provider()], MODEL, targets=["queries:User:findById"])
        config = GeneratorConfig(output_dir=str(tmp_path))

        written = write_files(result, config)

        assert sorted(p.name for p in written) == ["user-queries.out", "user.out"]
        assert (tmp_path / "user.out").read_text(encoding="utf-8") == result.files["user.out"]

    def test_error_mode_refuses_existing(self, tmp_path):
        """Test that nothing is written when a target exists in error mode."""
        result = run_providers([queries_provider(), types_provider()], MODEL, targets=["queries:User:findById"])
        (tmp_path / "user.out").write_text("keep", encoding="utf-8")

        with pytest.raises(FileExistsError):
            write_files(result, GeneratorConfig(output_dir=str(tmp_path)))

        assert (tmp_path / "user.out").read_text(encoding="utf-8") == "keep"
        assert not (tmp_path / "user-queries.out").exists()

    def test_force_mode_overwrites(self, tmp_path):
        """Test force mode."""
        result = run_providers([types_provider()], MODEL, targets=["types:User:row"])
        (tmp_path / "user.out").write_text("old", encoding="utf-8")
        config = GeneratorConfig(output_dir=str(tmp_path), output=OutputConfig(mode=OutputMode.FORCE))

        write_files(result, config)

        assert (tmp_path / "user.out").read_text(encoding="utf-8") == result.files["user.out"]
