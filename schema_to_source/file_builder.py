"""
File builder: the facade providers use to produce one output file.

A builder collects a header, import references and either structured
fragments (``ast``) or raw text (``content``), never both. On ``emit`` it
registers the symbols attached to its fragments and hands the file to the
emission buffer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .emissions import EmissionBuffer
from .errors import FileBuilderError
from .imports import ImportRef
from .symbols import Symbol, SymbolRegistry
from .utils import normalize_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymbolMeta:
    """Export information attached to a fragment; the file is filled in on emit."""

    name: str
    capability: str
    entity: str = ""
    shape: str | None = None
    is_type: bool = False
    is_default: bool = False


@dataclass
class SymbolFragment:
    """Fragments together with the symbols they export."""

    fragments: list[Any] = field(default_factory=list)
    symbols: list[SymbolMeta] = field(default_factory=list)


def exported(fragment: Any, *symbols: SymbolMeta) -> SymbolFragment:
    """Attach exported symbols to a fragment or list of fragments."""
    fragments = list(fragment) if isinstance(fragment, list) else [fragment]
    return SymbolFragment(fragments, list(symbols))


class FileBuilder:
    """Build one output file for one provider.

    Example:
        ctx.file("queries/user.py") \\
            .import_(symbol_import("types", "User", "row")) \\
            .ast(exported(func_node, SymbolMeta("find_user_by_id", "queries:User:findById"))) \\
            .emit()
    """

    def __init__(self, path: str, plugin: str, symbols: SymbolRegistry, emissions: EmissionBuffer):
        self.path = normalize_path(path)
        self.plugin = plugin
        self._symbols = symbols
        self._emissions = emissions
        self._headers: list[str] = []
        self._imports: list[ImportRef] = []
        self._fragments: list[Any] = []
        self._exports: list[SymbolMeta] = []
        self._raw: str | None = None
        self._emitted = False

    def header(self, text: str) -> FileBuilder:
        """Add header text (license, banner). Several headers are joined by newlines."""
        self._headers.append(text)
        return self

    def import_(self, ref: ImportRef) -> FileBuilder:
        """Add an import reference, resolved when the file is serialized."""
        self._imports.append(ref)
        return self

    def ast(self, fragment: Any) -> FileBuilder:
        """Add a fragment, a list of fragments, or a SymbolFragment.

        Raises:
            FileBuilderError: If raw content was already added
        """
        if self._raw is not None:
            raise FileBuilderError(f"Cannot mix ast() and content() for file {self.path}")

        if isinstance(fragment, SymbolFragment):
            self._fragments.extend(fragment.fragments)
            self._exports.extend(fragment.symbols)
        elif isinstance(fragment, list):
            self._fragments.extend(fragment)
        else:
            self._fragments.append(fragment)
        return self

    def content(self, text: str) -> FileBuilder:
        """Add raw text; repeated calls concatenate.

        Raises:
            FileBuilderError: If fragments were already added
        """
        if self._fragments:
            raise FileBuilderError(f"Cannot mix content() and ast() for file {self.path}")
        self._raw = text if self._raw is None else self._raw + text
        return self

    def emit(self, append: bool = False) -> None:
        """
        Register exported symbols and hand the file to the emission buffer.

        Raw content goes through ``emit`` (or ``append_emit`` when
        ``append`` is set); structured content goes through ``emit_ast``
        together with the imports and header.

        Args:
            append: Append raw content to this provider's existing file

        Raises:
            FileBuilderError: If the builder was already emitted, or imports
                were added to a raw file
            SymbolConflict: If an exported symbol clashes with a registered one
        """
        if self._emitted:
            raise FileBuilderError(f"File {self.path} was already emitted by {self.plugin}")
        if self._raw is not None and self._imports:
            raise FileBuilderError(f"Imports are only resolved for ast() content, not for raw file {self.path}")
        self._emitted = True

        for meta in self._exports:
            self._symbols.register(
                Symbol(
                    name=meta.name,
                    file=self.path,
                    capability=meta.capability,
                    entity=meta.entity,
                    shape=meta.shape,
                    is_type=meta.is_type,
                    is_default=meta.is_default,
                ),
                self.plugin,
            )

        header = "\n".join(self._headers) + "\n" if self._headers else None

        if self._raw is not None:
            text = (header or "") + self._raw
            if append:
                self._emissions.append_emit(self.path, text, self.plugin)
            else:
                self._emissions.emit(self.path, text, self.plugin)
            return

        logger.debug("%s emits %d fragments to %s", self.plugin, len(self._fragments), self.path)
        self._emissions.emit_ast(self.path, self._fragments, self.plugin, header, self._imports)

