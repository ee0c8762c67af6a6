"""
Plan execution.

Runs the steps of an ExecutionPlan strictly in order, caching each result
under its request key. Providers see the run through a ProviderContext:
the semantic model, file builders, the symbol registry, on-demand
requests and runtime handlers registered by earlier providers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .emissions import EmissionBuffer
from .errors import PluginExecutionFailed, ResourceNotResolved
from .file_assignment import FileAssigner, FileRule, merge_file_rules
from .file_builder import FileBuilder
from .model import SemanticModel
from .providers import Provider, ProviderRegistry
from .resolution import ExecutionPlan, ResolvedRequest
from .symbols import SymbolRegistry
from .utils import describe_request, request_key

logger = logging.getLogger(__name__)

ServiceHandler = Callable[[Any, "ProviderContext"], Any]


class HandlerRegistry:
    """Runtime handlers registered by providers for later providers in the same run."""

    def __init__(self):
        self._handlers: dict[str, tuple[ServiceHandler, str]] = {}

    def register(self, kind: str, handler: ServiceHandler, plugin: str) -> None:
        """Register a handler for ``kind``; a later registration replaces an earlier one."""
        existing = self._handlers.get(kind)
        if existing is not None:
            logger.warning("Handler for %s registered by %s replaces the one from %s", kind, plugin, existing[1])
        self._handlers[kind] = (handler, plugin)

    def get(self, kind: str) -> ServiceHandler | None:
        entry = self._handlers.get(kind)
        return entry[0] if entry else None

    def has(self, kind: str) -> bool:
        return kind in self._handlers

    def kinds(self) -> list[str]:
        return list(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()


@dataclass
class ExecutionServices:
    """Everything a run shares between plan steps.

    Attributes:
        model: Read-only semantic model
        symbols: Symbol registry for the run
        emissions: Emission buffer for the run
        handlers: Runtime handlers registered during the run
        file_rules: File rule overrides applied on top of provider defaults
        default_file: Output file for capabilities no rule matches
    """

    model: SemanticModel
    symbols: SymbolRegistry = field(default_factory=SymbolRegistry)
    emissions: EmissionBuffer = field(default_factory=EmissionBuffer)
    handlers: HandlerRegistry = field(default_factory=HandlerRegistry)
    file_rules: tuple[FileRule, ...] = ()
    default_file: str | None = None


class ProviderContext:
    """The view of the run a provider gets while its step executes."""

    def __init__(self, step: ResolvedRequest, services: ExecutionServices, results: dict[str, Any]):
        self._step = step
        self._services = services
        self._results = results

    @property
    def model(self) -> SemanticModel:
        return self._services.model

    @property
    def symbols(self) -> SymbolRegistry:
        return self._services.symbols

    @property
    def plugin(self) -> str:
        return self._step.provider.name

    @property
    def provider(self) -> Provider:
        return self._step.provider

    def file(self, path: str) -> FileBuilder:
        """Start a file builder attributed to this provider."""
        return FileBuilder(path, self.plugin, self._services.symbols, self._services.emissions)

    def request(self, kind: str, params: Any = None) -> Any:
        """
        Get a resource on demand.

        A runtime handler registered for ``kind`` is called first; otherwise
        the result of an already executed step is returned.

        Raises:
            ResourceNotResolved: If there is neither a handler nor a cached result
        """
        handler = self._services.handlers.get(kind)
        if handler is not None:
            return handler(params, self)

        key = request_key(kind, params)
        if key in self._results:
            return self._results[key]
        raise ResourceNotResolved(kind, params)

    def register_handler(self, kind: str, handler: ServiceHandler) -> None:
        """Expose a synchronous service to providers that run later."""
        self._services.handlers.register(kind, handler, self.plugin)

    def file_path(self, capability: str, name: str, entity: str = "", variant: str | None = None) -> str:
        """Output path for a symbol, from this provider's file rules and the overrides."""
        rules = merge_file_rules(self._step.provider.file_defaults, self._services.file_rules)
        return FileAssigner(rules, self._services.default_file).path_for(capability, name, entity, variant)


def _dependency_results(step: ResolvedRequest, results: dict[str, Any]) -> list[Any]:
    """Required results first, then optional ones with None for absent providers."""
    deps = [results[dep.key] for dep in step.dependencies]
    deps.extend(results[dep.key] if dep is not None else None for dep in step.optional_dependencies)
    return deps


def execute(plan: ExecutionPlan, registry: ProviderRegistry, services: ExecutionServices) -> dict[str, Any]:
    """
    Run every plan step in order.

    After the last step, every pending request of ``registry`` whose key
    has a result is resolved with it.

    Args:
        plan: Topologically ordered plan
        registry: Registry holding the pending requests
        services: Shared services for the run

    Returns:
        Result cache keyed by request key

    Raises:
        PluginExecutionFailed: If a provider raises; the remaining steps are not run
    """
    results: dict[str, Any] = {}

    for index, step in enumerate(plan, start=1):
        logger.debug("Step %d/%d: %s via %s", index, len(plan), step.describe(), step.provider.name)
        deps = _dependency_results(step, results)
        ctx = ProviderContext(step, services, results)
        try:
            result = step.provider.provide(step.params, deps, ctx)
        except Exception as e:
            raise PluginExecutionFailed(step.provider.name, step.kind, step.params, e) from e
        results[step.key] = result

    for pending in registry.pending_requests():
        if pending.key in results and not pending.deferred.is_resolved:
            pending.deferred.resolve(results[pending.key])
        elif pending.key not in results:
            logger.debug("Pending request %s was not produced", describe_request(pending.kind, pending.params))

    return results
