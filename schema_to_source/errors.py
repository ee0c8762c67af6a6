"""
Error types raised by the generation core.

Every error carries the structured fields that identify what failed
(capability, provider, path) as attributes, so callers can report
them without parsing messages. All of them abort the run.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for all errors raised by the generation core."""

    pass


class PluginNotFound(GenerationError):
    """Raised when a required capability has no provider that can satisfy it.

    Attributes:
        kind: The requested capability kind
        params: The request params
        requested_by: Name of the provider (or "initial") that asked for it
    """

    def __init__(self, kind: str, params: Any = None, requested_by: str = "initial"):
        self.kind = kind
        self.params = params
        self.requested_by = requested_by
        super().__init__(f'No provider found for "{kind}" (params: {params!r}, requested by {requested_by})')


class AmbiguousProvider(GenerationError):
    """Raised when more than one provider can satisfy a singleton kind."""

    def __init__(self, kind: str, providers: list[str]):
        self.kind = kind
        self.providers = list(providers)
        super().__init__(f'Singleton kind "{kind}" is provided by more than one provider: {", ".join(self.providers)}')


class CyclicDependency(GenerationError):
    """Raised when the requirement graph is not acyclic.

    Attributes:
        cycle: Member nodes of the cycle in traversal order, with the
            first node repeated at the end
    """

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class PluginExecutionFailed(GenerationError):
    """Raised when a provider's provide() call raises.

    The underlying exception is available as ``cause`` and as ``__cause__``.
    """

    def __init__(self, plugin: str, kind: str, params: Any, cause: BaseException):
        self.plugin = plugin
        self.kind = kind
        self.params = params
        self.cause = cause
        super().__init__(f'Plugin "{plugin}" failed while providing "{kind}": {cause}')


class ResourceNotResolved(GenerationError):
    """Raised when a requested resource is read before it has been produced."""

    def __init__(self, kind: str, params: Any = None):
        self.kind = kind
        self.params = params
        super().__init__(f'Resource "{kind}" has not been resolved yet (params: {params!r})')


class EmitConflict(GenerationError):
    """Raised when the emissions for one path cannot be combined.

    Either two or more plugins wrote raw content to the path, or the path
    received both raw text and structured fragments.
    """

    def __init__(self, path: str, plugins: list[str]):
        self.path = path
        self.plugins = list(plugins)
        if len(self.plugins) > 1:
            message = f"Multiple plugins emitted to the same file: {path}"
        else:
            message = f"Raw and structured content emitted to the same file: {path}"
        super().__init__(f"{message} (plugins: {', '.join(self.plugins)})")


class SymbolConflict(GenerationError):
    """Raised when two registrations claim the same symbol identity.

    Attributes:
        symbol: Capability key or symbol name that collided
        file: File the collision happened in, if known
        plugins: Plugins involved in the collision
    """

    def __init__(self, symbol: str, plugins: list[str], file: str | None = None):
        self.symbol = symbol
        self.file = file
        self.plugins = list(plugins)
        location = f" in {file}" if file else ""
        super().__init__(f'Symbol collision: "{symbol}"{location} from plugins: {", ".join(self.plugins)}')


class UnresolvedReferences(GenerationError):
    """Raised in strict mode when symbol imports could not be resolved."""

    def __init__(self, references: list):
        self.references = list(references)
        described = ", ".join(f"{r.describe()} (requested by {r.plugin} in {r.file})" for r in self.references)
        super().__init__(f"Undefined symbol references: {described}")


class FileBuilderError(GenerationError):
    """Raised when a FileBuilder is used inconsistently."""

    pass


class WriteError(GenerationError):
    """Raised when a finalized file cannot be written safely."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")
