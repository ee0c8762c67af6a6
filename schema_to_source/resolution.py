"""
Capability resolution.

Matches requests to providers, expands their requirements transitively,
deduplicates identical ``(kind, params)`` nodes and orders the result so
that every dependency runs before its dependents.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import AmbiguousProvider, CyclicDependency, PluginNotFound, SymbolConflict
from .providers import Provider, ProviderRegistry, ResourceRequest, SymbolDeclaration, as_request
from .utils import describe_request, request_key

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ResolvedRequest:
    """One plan step: a request matched to the provider that will satisfy it.

    Attributes:
        provider: Matched provider
        kind: Requested kind
        params: Request params
        dependencies: Required dependency steps, in declared order
        optional_dependencies: Optional dependency steps in declared order,
            None where no provider matched
    """

    provider: Provider
    kind: str
    params: Any = None
    dependencies: list[ResolvedRequest] = field(default_factory=list)
    optional_dependencies: list[ResolvedRequest | None] = field(default_factory=list)

    @property
    def key(self) -> str:
        return request_key(self.kind, self.params)

    def describe(self) -> str:
        return describe_request(self.kind, self.params)

    def __repr__(self) -> str:
        return f"ResolvedRequest({self.describe()} by {self.provider.name})"


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered plan steps, dependencies first, each ``(kind, params)`` once."""

    steps: tuple[ResolvedRequest, ...] = ()

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def keys(self) -> list[str]:
        return [step.key for step in self.steps]

    def describe(self) -> list[str]:
        return [f"{step.describe()} <- {step.provider.name}" for step in self.steps]


class _DependencyGraph:
    """Directed graph of node keys to the keys they depend on.

    Traversal uses Kahn's algorithm; nodes that never become ready form
    (or depend on) a cycle, which is located with a depth-first walk.
    """

    def __init__(self):
        self._dependencies: dict[str, set[str]] = {}
        self._labels: dict[str, str] = {}

    def add_node(self, key: str, label: str, dependencies: Iterable[str]) -> None:
        self._dependencies.setdefault(key, set()).update(dependencies)
        self._labels[key] = label

    def traverse(self) -> list[str]:
        """Return node keys in dependency order (insertion order among peers).

        Raises:
            CyclicDependency: If the graph contains a cycle
        """
        remaining = {key: set(deps) & self._dependencies.keys() for key, deps in self._dependencies.items()}
        dependents: dict[str, list[str]] = {key: [] for key in remaining}
        for key, deps in remaining.items():
            for dep in deps:
                dependents[dep].append(key)

        ready = deque(key for key, deps in remaining.items() if not deps)
        order: list[str] = []
        while ready:
            key = ready.popleft()
            order.append(key)
            for dependent in dependents[key]:
                deps = remaining[dependent]
                deps.discard(key)
                if not deps:
                    ready.append(dependent)

        if len(order) < len(remaining):
            done = set(order)
            leftover = {key: deps for key, deps in remaining.items() if key not in done}
            raise CyclicDependency([self._labels[key] for key in self._find_cycle(leftover)])

        return order

    def _find_cycle(self, leftover: dict[str, set[str]]) -> list[str]:
        """Walk unfinished nodes until one repeats on the current path."""
        path: list[str] = []
        on_path: set[str] = set()
        visited: set[str] = set()

        def walk(key: str) -> list[str] | None:
            path.append(key)
            on_path.add(key)
            for dep in sorted(leftover[key]):
                if dep in on_path:
                    return path[path.index(dep) :] + [dep]
                if dep not in visited:
                    cycle = walk(dep)
                    if cycle:
                        return cycle
            on_path.discard(key)
            visited.add(key)
            path.pop()
            return None

        for key in leftover:
            if key not in visited:
                cycle = walk(key)
                if cycle:
                    return cycle
        # Every leftover node has an unfinished dependency, so a cycle exists
        raise AssertionError("leftover nodes without a cycle")


def _check_singletons(registry: ProviderRegistry) -> None:
    """A singleton must be the only provider registered for its kind."""
    for provider in registry.singletons():
        names = [p.name for p in registry.providers(provider.kind)]
        if len(names) > 1:
            raise AmbiguousProvider(provider.kind, names)


def _match(registry: ProviderRegistry, request: ResourceRequest) -> Provider | None:
    """First provider of the kind whose ``can_provide`` accepts the params."""
    candidates = [p for p in registry.providers(request.kind) if p.can_provide(request.params)]
    if not candidates:
        return None
    if len(candidates) > 1 and any(p.singleton for p in candidates):
        raise AmbiguousProvider(request.kind, [p.name for p in candidates])
    return candidates[0]


def resolve(registry: ProviderRegistry, targets: Iterable[ResourceRequest | str | tuple] = ()) -> ExecutionPlan:
    """
    Build the execution plan.

    Initial requests are the explicit targets, every pending request of the
    registry and every singleton provider (with its singleton params). They
    are expanded breadth-first through ``requires`` and ``optional_requires``.

    Args:
        registry: Registered providers and pending requests
        targets: Explicit requests to satisfy

    Returns:
        Topologically ordered ExecutionPlan

    Raises:
        PluginNotFound: If a required request has no matching provider
        AmbiguousProvider: If a singleton kind has more than one matching provider
        CyclicDependency: If the requirement graph has a cycle
    """
    _check_singletons(registry)

    queue: deque[tuple[ResourceRequest, str]] = deque()
    for target in targets:
        queue.append((as_request(target), "initial"))
    for pending in registry.pending_requests():
        queue.append((ResourceRequest(pending.kind, pending.params), pending.requested_by))
    for provider in registry.singletons():
        queue.append((ResourceRequest(provider.kind, provider.singleton_params), "initial"))

    nodes: dict[str, ResolvedRequest] = {}
    edges: dict[str, tuple[list[str], list[str | None]]] = {}

    while queue:
        request, requested_by = queue.popleft()
        key = request.key
        if key in nodes:
            continue

        provider = _match(registry, request)
        if provider is None:
            raise PluginNotFound(request.kind, request.params, requested_by)

        nodes[key] = ResolvedRequest(provider, request.kind, request.params)

        required_keys = []
        for dep in provider.requires(request.params):
            dep = as_request(dep)
            required_keys.append(dep.key)
            queue.append((dep, provider.name))

        optional_keys: list[str | None] = []
        for dep in provider.optional_requires(request.params):
            dep = as_request(dep)
            if dep.key not in nodes and _match(registry, dep) is None:
                logger.debug("Optional dependency %s of %s has no provider", dep.describe(), provider.name)
                optional_keys.append(None)
                continue
            optional_keys.append(dep.key)
            queue.append((dep, provider.name))

        edges[key] = (required_keys, optional_keys)

    graph = _DependencyGraph()
    for key, node in nodes.items():
        required_keys, optional_keys = edges[key]
        node.dependencies = [nodes[dep] for dep in required_keys]
        node.optional_dependencies = [nodes[dep] if dep is not None else None for dep in optional_keys]
        graph.add_node(key, node.describe(), required_keys + [dep for dep in optional_keys if dep is not None])

    plan = ExecutionPlan(tuple(nodes[key] for key in graph.traverse()))
    logger.debug("Resolved plan with %d steps: %s", len(plan), plan.describe())
    return plan


def validate_declarations(providers: Iterable[Provider]) -> list[SymbolDeclaration]:
    """
    Check upfront declarations before anything runs.

    Args:
        providers: Providers whose ``declare()`` output to check

    Returns:
        All declarations, in provider order

    Raises:
        SymbolConflict: If two providers declare the same capability
        PluginNotFound: If a ``depends_on`` capability is declared by nobody
        CyclicDependency: If declarations depend on each other in a cycle
    """
    owners: dict[str, str] = {}
    declarations: list[tuple[SymbolDeclaration, str]] = []

    for provider in providers:
        for declaration in provider.declare():
            owner = owners.get(declaration.capability)
            if owner is not None and owner != provider.name:
                raise SymbolConflict(declaration.capability, [owner, provider.name])
            owners[declaration.capability] = provider.name
            declarations.append((declaration, provider.name))

    graph = _DependencyGraph()
    for declaration, plugin in declarations:
        for dependency in declaration.depends_on:
            if dependency not in owners:
                raise PluginNotFound(dependency, requested_by=plugin)
        graph.add_node(declaration.capability, declaration.capability, declaration.depends_on)

    graph.traverse()
    return [declaration for declaration, _ in declarations]
