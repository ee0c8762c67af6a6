"""
Provider contract and provider registry.

A provider is a named unit of generation logic that satisfies requests of
one resource kind. The core routes requests to providers without knowing
what the resources represent (types, queries, routes): params are opaque
JSON-like values handed back to the provider that matched them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import ResourceNotResolved
from .utils import describe_request, request_key

if TYPE_CHECKING:
    from .execution import ProviderContext
    from .file_assignment import FileRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceRequest:
    """A need for a resource of ``kind`` with opaque ``params``."""

    kind: str
    params: Any = None

    @property
    def key(self) -> str:
        return request_key(self.kind, self.params)

    def describe(self) -> str:
        return describe_request(self.kind, self.params)


@dataclass(frozen=True)
class SymbolDeclaration:
    """A capability a provider promises to produce, declared before anything runs.

    Attributes:
        name: Symbol name the capability will be exported as
        capability: Capability key ("types:User:row")
        depends_on: Capability keys this one needs from other providers
    """

    name: str
    capability: str
    depends_on: tuple[str, ...] = ()


def as_request(value: ResourceRequest | str | tuple) -> ResourceRequest:
    """Accept ``ResourceRequest``, a bare kind, or a ``(kind, params)`` tuple."""
    if isinstance(value, ResourceRequest):
        return value
    if isinstance(value, str):
        return ResourceRequest(value)
    kind, params = value
    return ResourceRequest(kind, params)


class Provider(ABC):
    """Base class for generation units.

    Subclasses set ``name`` and ``kind`` and implement ``provide``. The
    remaining hooks have permissive defaults: accept any params, require
    nothing, declare nothing.

    Attributes:
        name: Unique provider name used in errors and attribution
        kind: Resource kind this provider handles
        singleton: Run once automatically with ``singleton_params``; at most
            one provider may satisfy a singleton kind
        singleton_params: Params used for the automatic singleton request
        file_defaults: File rules used to place this provider's output
    """

    name: str = ""
    kind: str = ""
    singleton: bool = False
    singleton_params: Any = None
    file_defaults: tuple[FileRule, ...] = ()

    def can_provide(self, params: Any) -> bool:
        return True

    def requires(self, params: Any) -> list[ResourceRequest]:
        return []

    def optional_requires(self, params: Any) -> list[ResourceRequest]:
        return []

    def declare(self) -> list[SymbolDeclaration]:
        return []

    @abstractmethod
    def provide(self, params: Any, deps: list[Any], ctx: ProviderContext) -> Any:
        """
        Generate the resource.

        Args:
            params: Request params
            deps: Results of required dependencies, then optional ones in
                declared order (None where no provider matched)
            ctx: Context for this step

        Returns:
            The resource value, cached for dependents
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} kind={self.kind!r}>"


class _FunctionProvider(Provider):
    """Provider assembled from plain callables by ``define_provider``."""

    def __init__(
        self,
        name: str,
        kind: str,
        provide: Callable[[Any, list[Any], ProviderContext], Any],
        can_provide: Callable[[Any], bool] | None = None,
        requires: Callable[[Any], list] | None = None,
        optional_requires: Callable[[Any], list] | None = None,
        declare: Callable[[], list[SymbolDeclaration]] | None = None,
        singleton: bool = False,
        singleton_params: Any = None,
        file_defaults: tuple[FileRule, ...] = (),
    ):
        self.name = name
        self.kind = kind
        self.singleton = singleton
        self.singleton_params = singleton_params
        self.file_defaults = tuple(file_defaults)
        self._provide = provide
        self._can_provide = can_provide
        self._requires = requires
        self._optional_requires = optional_requires
        self._declare = declare

    def can_provide(self, params: Any) -> bool:
        return self._can_provide(params) if self._can_provide else True

    def requires(self, params: Any) -> list[ResourceRequest]:
        return [as_request(r) for r in self._requires(params)] if self._requires else []

    def optional_requires(self, params: Any) -> list[ResourceRequest]:
        return [as_request(r) for r in self._optional_requires(params)] if self._optional_requires else []

    def declare(self) -> list[SymbolDeclaration]:
        return list(self._declare()) if self._declare else []

    def provide(self, params: Any, deps: list[Any], ctx: ProviderContext) -> Any:
        return self._provide(params, deps, ctx)


def define_provider(
    name: str,
    kind: str,
    provide: Callable[[Any, list[Any], ProviderContext], Any],
    *,
    can_provide: Callable[[Any], bool] | None = None,
    requires: Callable[[Any], list] | None = None,
    optional_requires: Callable[[Any], list] | None = None,
    declare: Callable[[], list[SymbolDeclaration]] | None = None,
    singleton: bool = False,
    singleton_params: Any = None,
    file_defaults: tuple[FileRule, ...] = (),
) -> Provider:
    """
    Build a provider from plain callables.

    ``requires`` and ``optional_requires`` may return ``ResourceRequest``
    objects, bare kinds or ``(kind, params)`` tuples.

    Example:
        define_provider(
            "user-queries",
            "queries:User:findById",
            provide=lambda params, deps, ctx: ...,
            requires=lambda params: ["types:User:row"],
        )
    """
    return _FunctionProvider(
        name=name,
        kind=kind,
        provide=provide,
        can_provide=can_provide,
        requires=requires,
        optional_requires=optional_requires,
        declare=declare,
        singleton=singleton,
        singleton_params=singleton_params,
        file_defaults=file_defaults,
    )


class DeferredResource:
    """Placeholder for a result that is only known after execution.

    Reading ``result`` before the executor populated it raises
    ``ResourceNotResolved``.
    """

    def __init__(self, kind: str, params: Any = None):
        self.kind = kind
        self.params = params
        self._resolved = False
        self._result: Any = None

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    @property
    def result(self) -> Any:
        if not self._resolved:
            raise ResourceNotResolved(self.kind, self.params)
        return self._result

    def resolve(self, value: Any) -> None:
        """Populate the result. A deferred is resolved exactly once."""
        if self._resolved:
            raise RuntimeError(f"Deferred resource {describe_request(self.kind, self.params)} is already resolved")
        self._result = value
        self._resolved = True


@dataclass
class PendingRequest:
    """A request issued before resolution, resolved by key after execution."""

    kind: str
    params: Any
    deferred: DeferredResource
    requested_by: str = "initial"

    @property
    def key(self) -> str:
        return request_key(self.kind, self.params)


@dataclass
class ProviderRegistry:
    """Providers registered for one run, plus requests issued before resolution."""

    _providers: list[Provider] = field(default_factory=list)
    _pending: list[PendingRequest] = field(default_factory=list)

    @classmethod
    def from_providers(cls, providers: list[Provider]) -> ProviderRegistry:
        registry = cls()
        for provider in providers:
            registry.register(provider)
        return registry

    def register(self, provider: Provider) -> None:
        """Register a provider. Registration order decides matching precedence.

        Raises:
            ValueError: If a provider with the same name is already registered
        """
        if any(existing.name == provider.name for existing in self._providers):
            raise ValueError(f'Provider "{provider.name}" is already registered')
        logger.debug("Registered provider %s for kind %s", provider.name, provider.kind)
        self._providers.append(provider)

    def providers(self, kind: str | None = None) -> list[Provider]:
        """Registered providers, optionally only those for ``kind``."""
        if kind is None:
            return list(self._providers)
        return [provider for provider in self._providers if provider.kind == kind]

    def singletons(self) -> list[Provider]:
        return [provider for provider in self._providers if provider.singleton]

    def request(self, kind: str, params: Any = None, requested_by: str = "initial") -> DeferredResource:
        """Ask for a resource before resolution.

        The request becomes an initial node of the plan; its deferred is
        populated once the plan has run.
        """
        deferred = DeferredResource(kind, params)
        self._pending.append(PendingRequest(kind, params, deferred, requested_by))
        return deferred

    def pending_requests(self) -> list[PendingRequest]:
        return list(self._pending)

    def clear_pending(self) -> None:
        self._pending.clear()


class SemanticModelProvider(Provider):
    """Core singleton that hands the run's semantic model to dependents."""

    name = "semantic-model"
    kind = "semantic-model"
    singleton = True

    def provide(self, params: Any, deps: list[Any], ctx: ProviderContext) -> Any:
        return ctx.model
