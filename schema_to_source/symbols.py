"""
Symbol registry for cross-file import resolution.

Providers register every exported artifact they emit (a class, a function,
a type alias) under its capability key. Other providers then reference the
artifact by capability instead of by file, and the registry computes the
import that makes it visible from wherever the reference is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any

from .errors import SymbolConflict
from .imports import ImportStatement, SymbolRef
from .utils import normalize_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    """A declared exported artifact.

    Attributes:
        name: Exported identifier ("UserRow")
        file: Output path of the file that defines it
        capability: Capability kind or full capability key
        entity: Entity the symbol belongs to
        shape: Optional shape variant ("row", "insert")
        is_type: Whether the symbol is only needed for type checking
        is_default: Whether the symbol is the module itself
    """

    name: str
    file: str
    capability: str
    entity: str = ""
    shape: str | None = None
    is_type: bool = False
    is_default: bool = False

    @property
    def key(self) -> str:
        return capability_key(self.capability, self.entity, self.shape)


@dataclass
class SymbolCollision:
    """Same symbol name defined in the same file by more than one plugin."""

    symbol: str
    file: str
    plugins: list[str]


@dataclass
class EntityMethods:
    """Methods a provider generated for one entity (e.g. query functions).

    Consumers such as route generators read these to find out what they
    can wire up without knowing which provider produced them.
    """

    entity: str
    methods: list[Any] = field(default_factory=list)
    plugin: str = ""
    import_path: str = ""


def capability_key(capability: str, entity: str = "", shape: str | None = None) -> str:
    """Build the canonical ``kind:entity[:shape]`` key.

    Segments after the kind are compared by position with ``entity`` and
    ``shape``. When one sequence is a prefix of the other the longer one is
    kept, so ``("types:User:row", "User", "row")``, ``("types:User", "User",
    "row")`` and ``("types", "User", "row")`` produce the same key. Otherwise
    the entity and shape are appended to the capability as given.
    """
    kind, *carried = capability.split(":")
    given = [segment for segment in (entity, shape) if segment]
    if carried[: len(given)] == given:
        return capability
    if given[: len(carried)] == carried:
        return ":".join([kind, *given])
    return ":".join([kind, *carried, *given])


def relative_module_path(for_file: str, target_file: str) -> str:
    """Compute the relative Python module path from one output file to another.

    Both paths are relative to the output root. Separators are normalized
    first, so the result does not depend on the OS that built the paths.

    Examples:
        relative_module_path("queries/user.py", "types/user.py") -> "..types.user"
        relative_module_path("types/post.py", "types/user.py") -> ".user"
        relative_module_path("user-queries.out", "user.out") -> ".user"
    """
    source = PurePosixPath(normalize_path(for_file))
    target = PurePosixPath(normalize_path(target_file))

    from_dirs = source.parent.parts
    to_dirs = target.parent.parts

    common = 0
    while common < min(len(from_dirs), len(to_dirs)) and from_dirs[common] == to_dirs[common]:
        common += 1

    level = len(from_dirs) - common + 1
    remaining = list(to_dirs[common:])
    if target.stem != "__init__":
        remaining.append(target.stem)

    return "." * level + ".".join(remaining)


class SymbolRegistry:
    """Tracks emitted symbols for the duration of one run."""

    def __init__(self):
        self._symbols: dict[str, tuple[Symbol, str]] = {}
        self._entity_methods: dict[str, EntityMethods] = {}

    def register(self, symbol: Symbol, plugin: str) -> None:
        """Register a symbol under its capability key.

        Re-registering an identical symbol from the same plugin is a no-op.
        Any other registration for an existing key is a conflict.

        Raises:
            SymbolConflict: If the key is already taken by a different symbol
                or by another plugin
        """
        symbol = _normalized(symbol)
        key = symbol.key
        existing = self._symbols.get(key)
        if existing is not None:
            existing_symbol, existing_plugin = existing
            if existing_symbol == symbol and existing_plugin == plugin:
                return
            raise SymbolConflict(key, [existing_plugin, plugin], file=symbol.file)

        logger.debug("Registered symbol %s -> %s (%s) from %s", key, symbol.name, symbol.file, plugin)
        self._symbols[key] = (symbol, plugin)

    def resolve(self, ref: SymbolRef) -> Symbol | None:
        """Resolve a reference to a registered symbol, or None."""
        entry = self._symbols.get(capability_key(ref.capability, ref.entity, ref.shape))
        return entry[0] if entry else None

    def has(self, capability: str, entity: str = "", shape: str | None = None) -> bool:
        return capability_key(capability, entity, shape) in self._symbols

    def plugin_for(self, symbol: Symbol) -> str | None:
        """Name of the plugin that registered a symbol."""
        entry = self._symbols.get(symbol.key)
        return entry[1] if entry else None

    def import_for(self, symbol: Symbol, for_file: str) -> ImportStatement | None:
        """Compute the import that makes ``symbol`` visible from ``for_file``.

        Returns None when the symbol is defined in ``for_file`` itself.
        Callers merge the statements for the same module (see
        ``imports.merge_imports``).
        """
        if normalize_path(symbol.file) == normalize_path(for_file):
            return None

        source = relative_module_path(for_file, symbol.file)
        if symbol.is_default:
            return ImportStatement(source=source, default=symbol.name)
        if symbol.is_type:
            return ImportStatement(source=source, types=[symbol.name])
        return ImportStatement(source=source, named=[symbol.name])

    def query(self, prefix: str) -> list[Symbol]:
        """All symbols whose capability key falls under ``prefix``.

        Matching is segment-aware: "queries" and "queries:" both match
        "queries:User:findById" but neither matches "queriesExtra:User".
        """
        exact = prefix.rstrip(":")
        head = exact + ":"
        return [symbol for key, (symbol, _) in self._symbols.items() if key == exact or key.startswith(head)]

    def entities(self, prefix: str) -> list[str]:
        """Sorted names of entities with at least one symbol under ``prefix``."""
        return sorted({symbol.entity for symbol in self.query(prefix) if symbol.entity})

    def get_all(self) -> list[Symbol]:
        return [symbol for symbol, _ in self._symbols.values()]

    def register_entity_methods(self, entity: str, methods: list[Any], plugin: str, import_path: str = "") -> None:
        """Record the methods a plugin generated for an entity.

        The same plugin may call this repeatedly to add methods.

        Raises:
            SymbolConflict: If another plugin already registered methods for the entity
        """
        existing = self._entity_methods.get(entity)
        if existing is None:
            self._entity_methods[entity] = EntityMethods(entity, list(methods), plugin, normalize_path(import_path))
            return
        if existing.plugin != plugin:
            raise SymbolConflict(f"methods:{entity}", [existing.plugin, plugin])
        existing.methods.extend(methods)
        if import_path:
            existing.import_path = normalize_path(import_path)

    def get_entity_methods(self, entity: str) -> EntityMethods | None:
        return self._entity_methods.get(entity)

    def get_entities_with_methods(self) -> list[str]:
        """Sorted names of every entity that has at least one registered method."""
        return sorted(name for name, entry in self._entity_methods.items() if entry.methods)

    def validate(self) -> list[SymbolCollision]:
        """Find names defined in the same file by more than one plugin."""
        by_file_and_name: dict[tuple[str, str], list[str]] = {}
        for symbol, plugin in self._symbols.values():
            plugins = by_file_and_name.setdefault((symbol.file, symbol.name), [])
            if plugin not in plugins:
                plugins.append(plugin)

        return [
            SymbolCollision(symbol=name, file=file, plugins=plugins)
            for (file, name), plugins in by_file_and_name.items()
            if len(plugins) > 1
        ]

    def clear(self) -> None:
        self._symbols.clear()
        self._entity_methods.clear()


def _normalized(symbol: Symbol) -> Symbol:
    file = normalize_path(symbol.file)
    return symbol if file == symbol.file else replace(symbol, file=file)
