"""
Python fragment serializer.

Fragments are ``ast`` nodes (statements or whole modules) or raw source
strings. Nodes are unparsed with the built-in ast module; imports are built
as ``ast.Import``/``ast.ImportFrom`` nodes and grouped the same way every
generated file groups them.
"""

from __future__ import annotations

import ast
import io
import tokenize
from typing import Any

from ..imports import ImportStatement
from .base import FragmentSerializer

# Top-level line prefixes that start a declaration
_DECLARATION_PREFIXES = ("def ", "async def ", "class ", "@")


class PythonSerializer(FragmentSerializer):
    """Serializer for generated Python modules."""

    def serialize(self, fragments: list[Any]) -> str:
        """Serialize fragments in order, one after another."""
        parts = []
        for fragment in fragments:
            if isinstance(fragment, str):
                parts.append(fragment.strip("\n"))
            elif isinstance(fragment, ast.AST):
                parts.append(ast.unparse(fragment))
            else:
                raise TypeError(f"Cannot serialize fragment of type {type(fragment).__name__}")
        return "\n".join(part for part in parts if part)

    def render_imports(self, statements: list[ImportStatement]) -> str:
        """Render imports: __future__, absolute modules, relative modules, then type-only imports."""
        statements = [_copy(stmt) for stmt in statements if not stmt.is_empty()]

        type_only: list[ImportStatement] = []
        for stmt in statements:
            types = [name for name in stmt.types if name not in stmt.named]
            if types:
                type_only.append(ImportStatement(source=stmt.source, named=types))

        if type_only:
            typing_stmt = next((stmt for stmt in statements if stmt.source == "typing"), None)
            if typing_stmt is None:
                typing_stmt = ImportStatement(source="typing")
                statements.append(typing_stmt)
            if "TYPE_CHECKING" not in typing_stmt.named:
                typing_stmt.named.append("TYPE_CHECKING")

        future = [stmt for stmt in statements if stmt.source == "__future__"]
        absolute = sorted(
            (stmt for stmt in statements if stmt.source != "__future__" and not stmt.source.startswith(".")),
            key=lambda stmt: stmt.source,
        )
        relative = sorted((stmt for stmt in statements if stmt.source.startswith(".")), key=lambda stmt: stmt.source)

        nodes: list[ast.stmt] = []
        for stmt in future + absolute + relative:
            nodes.extend(self._import_nodes(stmt))

        if type_only:
            guarded: list[ast.stmt] = []
            for stmt in sorted(type_only, key=lambda stmt: stmt.source):
                guarded.extend(self._import_nodes(stmt))
            nodes.append(ast.If(test=ast.Name(id="TYPE_CHECKING", ctx=ast.Load()), body=guarded, orelse=[]))

        return "\n".join(ast.unparse(node) for node in nodes)

    def normalize(self, code: str) -> str:
        """Ensure two blank lines before each top-level declaration and a trailing newline.

        Comment lines directly above a declaration stay attached to it, and
        lines inside multi-line string literals are left alone.
        """
        in_strings = _string_continuation_lines(code)
        result: list[str] = []
        for number, line in enumerate(code.split("\n"), start=1):
            if number not in in_strings and line.startswith(_DECLARATION_PREFIXES):
                comments: list[str] = []
                while result and result[-1].startswith("#"):
                    comments.insert(0, result.pop())
                if result and not result[-1].startswith("@"):
                    while result and result[-1].strip() == "":
                        result.pop()
                    if result:
                        result.extend(["", ""])
                result.extend(comments)
            result.append(line)

        while result and result[-1].strip() == "":
            result.pop()
        return "\n".join(result) + "\n" if result else ""

    def assemble(self, header: str | None, import_block: str, body: str) -> str:
        """Imports are separated from the body by two blank lines."""
        if import_block and body:
            return (header or "") + import_block + "\n\n\n" + body
        return (header or "") + (import_block + "\n" if import_block else body)

    def _import_nodes(self, stmt: ImportStatement) -> list[ast.stmt]:
        """Build the import nodes for one source module."""
        level, module = _split_source(stmt.source)
        nodes: list[ast.stmt] = []

        if stmt.namespace:
            # A namespace import replaces value imports for the same module
            nodes.append(_module_alias(level, module, stmt.namespace))
            return nodes

        if stmt.default:
            nodes.append(_module_alias(level, module, stmt.default))
        if stmt.named:
            nodes.append(
                ast.ImportFrom(
                    module=module,
                    names=[ast.alias(name=name, asname=None) for name in sorted(stmt.named)],
                    level=level,
                )
            )
        return nodes


def _copy(stmt: ImportStatement) -> ImportStatement:
    return ImportStatement(
        source=stmt.source,
        named=list(stmt.named),
        types=list(stmt.types),
        default=stmt.default,
        namespace=stmt.namespace,
    )


def _split_source(source: str) -> tuple[int, str | None]:
    """Split ".types.user" into (1, "types.user"); "typing" into (0, "typing")."""
    module = source.lstrip(".")
    return len(source) - len(module), module or None


def _module_alias(level: int, module: str | None, alias: str) -> ast.stmt:
    """Bind a whole module to ``alias``."""
    if level == 0:
        return ast.Import(names=[ast.alias(name=module, asname=alias if alias != module else None)])
    if module is None:
        return ast.ImportFrom(module=None, names=[ast.alias(name=alias, asname=None)], level=level)
    parent, _, leaf = module.rpartition(".")
    return ast.ImportFrom(
        module=parent or None,
        names=[ast.alias(name=leaf, asname=alias if alias != leaf else None)],
        level=level,
    )


def _string_continuation_lines(code: str) -> set[int]:
    """Line numbers that continue a string literal opened on an earlier line.

    Code that does not tokenize yields an empty set, so every line is then
    treated as code.
    """
    lines: set[int] = set()
    fstring_starts: list[int] = []
    try:
        for token in tokenize.generate_tokens(io.StringIO(code).readline):
            if token.type == tokenize.STRING:
                lines.update(range(token.start[0] + 1, token.end[0] + 1))
            elif token.type == tokenize.FSTRING_START:
                fstring_starts.append(token.start[0])
            elif token.type == tokenize.FSTRING_END:
                lines.update(range(fstring_starts.pop() + 1, token.end[0] + 1))
    except (tokenize.TokenError, SyntaxError):
        return set()
    return lines
