"""
Import references and resolved import statements.

Providers describe what a generated file needs to import without knowing
where other providers put their output. The references are resolved after
every provider has run, using the symbol registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SymbolRef:
    """Reference to a symbol registered by some provider."""

    capability: str
    entity: str = ""
    shape: str | None = None


@dataclass(frozen=True)
class SymbolImportRef:
    """Import a registered symbol; the source module is computed at resolution time."""

    ref: SymbolRef


@dataclass(frozen=True)
class PackageImportRef:
    """Import from an external package; ``source`` is used verbatim."""

    source: str
    names: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    default: str | None = None
    namespace: str | None = None


@dataclass(frozen=True)
class RelativeImportRef:
    """Import from a caller-specified relative module; ``source`` is used verbatim."""

    source: str
    names: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    default: str | None = None
    namespace: str | None = None


ImportRef = SymbolImportRef | PackageImportRef | RelativeImportRef


def symbol_import(capability: str, entity: str = "", shape: str | None = None) -> SymbolImportRef:
    """Shorthand for ``SymbolImportRef(SymbolRef(capability, entity, shape))``."""
    return SymbolImportRef(SymbolRef(capability, entity, shape))


@dataclass
class ImportStatement:
    """A single resolved import, possibly merged from several references.

    Attributes:
        source: Module path ("typing", ".user", "..types.user")
        named: Value names imported from the module
        types: Names only needed for type checking
        default: Name bound to the module itself
        namespace: Namespace alias for the whole module
    """

    source: str
    named: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    default: str | None = None
    namespace: str | None = None

    def is_empty(self) -> bool:
        return not self.named and not self.types and self.default is None and self.namespace is None


def merge_imports(statements: list[ImportStatement]) -> list[ImportStatement]:
    """Merge import statements that share the same source module.

    Named and type specifiers are kept unique (first occurrence order),
    the first default and namespace seen win. The result is sorted by
    source for deterministic output.
    """
    by_source: dict[str, ImportStatement] = {}

    for stmt in statements:
        existing = by_source.get(stmt.source)
        if existing is None:
            existing = ImportStatement(source=stmt.source)
            by_source[stmt.source] = existing
        for name in stmt.named:
            if name not in existing.named:
                existing.named.append(name)
        for name in stmt.types:
            if name not in existing.types:
                existing.types.append(name)
        if existing.default is None:
            existing.default = stmt.default
        if existing.namespace is None:
            existing.namespace = stmt.namespace

    return [by_source[source] for source in sorted(by_source)]
