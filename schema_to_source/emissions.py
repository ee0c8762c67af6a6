"""
Emission buffer.

Buffers generated file content from every provider until the whole plan
has run. Raw-text emissions are owned by a single plugin per path;
structured (fragment) emissions to the same path are merged, so several
providers can contribute declarations to one generated file. Imports of
structured files are resolved only at serialization time, when every
symbol is known.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import EmitConflict
from .imports import ImportRef, ImportStatement, PackageImportRef, RelativeImportRef, SymbolImportRef, merge_imports
from .serializers.base import FragmentSerializer
from .symbols import SymbolRegistry
from .utils import normalize_path

logger = logging.getLogger(__name__)


@dataclass
class EmissionEntry:
    """A finalized (or raw) file: path, text, and the plugin(s) behind it."""

    path: str
    content: str
    plugin: str


@dataclass
class AstEmissionEntry:
    """A structured file buffered until serialization.

    Attributes:
        path: Output path
        fragments: Fragments in emission order
        plugin: Comma-joined attribution of every contributing plugin
        header: Header text kept from the first emission
        imports: Import references to resolve at serialization time
    """

    path: str
    fragments: list[Any] = field(default_factory=list)
    plugin: str = ""
    header: str | None = None
    imports: list[ImportRef] = field(default_factory=list)

    @property
    def plugins(self) -> list[str]:
        return self.plugin.split(", ") if self.plugin else []


@dataclass
class UnresolvedRef:
    """A symbol import that could not be resolved during serialization."""

    capability: str
    entity: str
    shape: str | None
    plugin: str
    file: str

    def describe(self) -> str:
        parts = [self.capability, self.entity] + ([self.shape] if self.shape else [])
        return "/".join(part for part in parts if part)


class EmissionBuffer:
    """Buffers emissions for one run.

    Per-path lifecycle: unwritten, buffered (raw or structured, one or
    several owners), finalized (raw text, available from ``get_all``).
    """

    def __init__(self):
        self._emissions: dict[str, EmissionEntry] = {}
        self._ast_emissions: dict[str, AstEmissionEntry] = {}
        # Plugins that wrote raw content per path, in first-write order
        self._raw_writers: dict[str, list[str]] = {}
        # Paths with both raw and structured output, with every writer
        self._mixed_paths: dict[str, list[str]] = {}
        self._unresolved: list[UnresolvedRef] = []

    def emit(self, path: str, content: str, plugin: str) -> None:
        """Emit raw text. The last write wins; every writer is tracked."""
        path = normalize_path(path)
        self._track_writer(path, plugin)
        self._emissions[path] = EmissionEntry(path, content, plugin)

    def append_emit(self, path: str, content: str, plugin: str) -> None:
        """Append raw text to a file this plugin already wrote.

        An unwritten path is created. Appending to another plugin's file
        does not change the content and is recorded as a conflict.
        """
        path = normalize_path(path)
        existing = self._emissions.get(path)
        if existing is None:
            self.emit(path, content, plugin)
            return

        if existing.plugin == plugin:
            existing.content += content
        else:
            logger.debug("Plugin %s tried to append to %s owned by %s", plugin, path, existing.plugin)
            self._track_writer(path, plugin)

    def emit_ast(
        self,
        path: str,
        fragments: list[Any],
        plugin: str,
        header: str | None = None,
        imports: list[ImportRef] | None = None,
    ) -> None:
        """Buffer structured fragments, merging with an existing entry for the path."""
        path = normalize_path(path)
        existing = self._ast_emissions.get(path)
        if existing is None:
            self._ast_emissions[path] = AstEmissionEntry(
                path=path,
                fragments=list(fragments),
                plugin=plugin,
                header=header,
                imports=list(imports or []),
            )
            return

        logger.debug("Merging fragments from %s into %s (%s)", plugin, path, existing.plugin)
        existing.fragments.extend(fragments)
        if plugin not in existing.plugins:
            existing.plugin = f"{existing.plugin}, {plugin}"
        existing.imports.extend(imports or [])

    def get(self, path: str) -> EmissionEntry | None:
        return self._emissions.get(normalize_path(path))

    def get_all(self) -> list[EmissionEntry]:
        """Raw and finalized emissions."""
        return list(self._emissions.values())

    def get_ast_emissions(self) -> list[AstEmissionEntry]:
        """Structured emissions not yet serialized."""
        return list(self._ast_emissions.values())

    def get_unresolved_refs(self) -> list[UnresolvedRef]:
        return list(self._unresolved)

    def validate(self) -> None:
        """Check for multi-plugin raw writes and mixed raw/structured paths.

        Structured emissions are merged and never conflict with each other.
        A path that received raw text and structured fragments conflicts
        even when one plugin wrote both.

        Raises:
            EmitConflict: For the first conflicting path
        """
        for path, plugins in self._raw_writers.items():
            if len(plugins) > 1:
                raise EmitConflict(path, plugins)
        for path, plugins in self._mixed_paths.items():
            raise EmitConflict(path, plugins)

    def serialize_ast(self, serializer: FragmentSerializer, symbols: SymbolRegistry) -> list[str]:
        """Finalize every structured emission into raw text.

        Resolves import references (symbol refs through the registry,
        package and relative refs verbatim), merges them per module, renders
        the import block and the body, and stores the result as a raw
        emission. References that cannot be resolved are collected (see
        ``get_unresolved_refs``) instead of failing.

        Args:
            serializer: Serializer for fragments and imports
            symbols: Registry used to resolve symbol references

        Returns:
            Paths that were finalized
        """
        finalized = []
        for entry in self._ast_emissions.values():
            statements = self._resolve_imports(entry, symbols)
            import_block = serializer.render_imports(statements) if statements else ""
            body = serializer.normalize(serializer.serialize(entry.fragments))
            content = serializer.assemble(entry.header, import_block, body)

            if entry.path in self._raw_writers:
                writers = list(self._raw_writers[entry.path])
                writers.extend(plugin for plugin in entry.plugins if plugin not in writers)
                self._mixed_paths[entry.path] = writers

            self._emissions[entry.path] = EmissionEntry(entry.path, content, entry.plugin)
            finalized.append(entry.path)

        self._ast_emissions.clear()
        return finalized

    def clear(self) -> None:
        """Wipe all buffered state."""
        self._emissions.clear()
        self._ast_emissions.clear()
        self._raw_writers.clear()
        self._mixed_paths.clear()
        self._unresolved.clear()

    def _track_writer(self, path: str, plugin: str) -> None:
        writers = self._raw_writers.setdefault(path, [])
        if plugin not in writers:
            writers.append(plugin)

    def _resolve_imports(self, entry: AstEmissionEntry, symbols: SymbolRegistry) -> list[ImportStatement]:
        statements: list[ImportStatement] = []

        for ref in entry.imports:
            if isinstance(ref, SymbolImportRef):
                symbol = symbols.resolve(ref.ref)
                if symbol is None:
                    self._unresolved.append(
                        UnresolvedRef(
                            capability=ref.ref.capability,
                            entity=ref.ref.entity,
                            shape=ref.ref.shape,
                            plugin=entry.plugin,
                            file=entry.path,
                        )
                    )
                    continue
                stmt = symbols.import_for(symbol, entry.path)
                if stmt is not None:
                    statements.append(stmt)
            elif isinstance(ref, (PackageImportRef, RelativeImportRef)):
                statements.append(
                    ImportStatement(
                        source=ref.source,
                        named=list(ref.names),
                        types=list(ref.types),
                        default=ref.default,
                        namespace=ref.namespace,
                    )
                )
            else:
                raise TypeError(f"Unknown import reference: {ref!r}")

        return merge_imports(statements)
