"""
Run orchestration.

Glues the phases of one generation run together: declaration checks,
resolution, execution, serialization of structured files, banner and
formatter post-processing, validation and, separately, writing to disk.
Nothing is written unless the whole run succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .banner import BannerRenderer
from .config import GeneratorConfig, OutputMode
from .emissions import EmissionBuffer, UnresolvedRef
from .errors import SymbolConflict, UnresolvedReferences
from .execution import ExecutionServices, execute
from .file_assignment import FileRule
from .formatters import get_formatter
from .model import SemanticModel
from .providers import Provider, ProviderRegistry, ResourceRequest
from .resolution import ExecutionPlan, resolve, validate_declarations
from .serializers import FragmentSerializer, PythonSerializer
from .symbols import SymbolRegistry
from .writer import AtomicWriter

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of a successful run.

    Attributes:
        files: Finalized content by output path
        emissions: The run's emission buffer
        symbols: The run's symbol registry
        plan: The executed plan
        results: Provider results by request key
        unresolved: Symbol imports that could not be resolved
    """

    files: dict[str, str]
    emissions: EmissionBuffer
    symbols: SymbolRegistry
    plan: ExecutionPlan
    results: dict[str, Any] = field(default_factory=dict)
    unresolved: list[UnresolvedRef] = field(default_factory=list)


def run_providers(
    providers: Iterable[Provider] | ProviderRegistry,
    model: SemanticModel,
    config: GeneratorConfig | None = None,
    targets: Iterable[ResourceRequest | str | tuple] = (),
    serializer: FragmentSerializer | None = None,
    file_rules: Iterable[FileRule] = (),
) -> RunResult:
    """
    Run providers against a semantic model.

    Args:
        providers: Providers, or a registry that may also hold pending requests
        model: Semantic model handed to every provider
        config: Run configuration (defaults when omitted)
        targets: Explicit requests to satisfy in addition to singletons and
            pending requests
        serializer: Serializer for structured files (PythonSerializer by default)
        file_rules: File rule overrides applied on top of provider defaults

    Returns:
        RunResult with the finalized files

    Raises:
        PluginNotFound, AmbiguousProvider, CyclicDependency: Resolution failures
        PluginExecutionFailed: A provider raised
        UnresolvedReferences: Unresolved imports with ``strict_references``
        EmitConflict: Two providers wrote raw content to one file
        SymbolConflict: Conflicting declarations or symbol registrations
    """
    config = config or GeneratorConfig()
    registry = providers if isinstance(providers, ProviderRegistry) else ProviderRegistry.from_providers(list(providers))
    serializer = serializer or PythonSerializer()

    validate_declarations(registry.providers())

    plan = resolve(registry, targets)
    for line in plan.describe():
        logger.debug("Plan: %s", line)

    services = ExecutionServices(
        model=model,
        file_rules=tuple(file_rules),
        default_file=config.default_file,
    )
    results = execute(plan, registry, services)

    emissions = services.emissions
    attribution = {entry.path: entry.plugins for entry in emissions.get_ast_emissions()}
    finalized = emissions.serialize_ast(serializer, services.symbols)
    _post_process(emissions, finalized, attribution, config, model)

    unresolved = emissions.get_unresolved_refs()
    for ref in unresolved:
        logger.warning("Unresolved import %s requested by %s in %s", ref.describe(), ref.plugin, ref.file)
    if unresolved and config.strict_references:
        raise UnresolvedReferences(unresolved)

    emissions.validate()
    collisions = services.symbols.validate()
    if collisions:
        collision = collisions[0]
        raise SymbolConflict(collision.symbol, collision.plugins, file=collision.file)

    files = {entry.path: entry.content for entry in emissions.get_all()}
    logger.info("Generated %d files from %d plan steps", len(files), len(plan))

    return RunResult(
        files=files,
        emissions=emissions,
        symbols=services.symbols,
        plan=plan,
        results=results,
        unresolved=unresolved,
    )


def _post_process(
    emissions: EmissionBuffer,
    finalized: list[str],
    attribution: dict[str, list[str]],
    config: GeneratorConfig,
    model: SemanticModel,
) -> None:
    """Add the banner to finalized structured files and run the formatter on Python output."""
    banner = BannerRenderer() if config.add_generation_comment else None
    formatter = get_formatter(config.formatter.name) if config.formatter.enabled else None
    if formatter is not None and not formatter.is_available():
        logger.warning("Formatter %s is not available, output is left unformatted", config.formatter.name)
        formatter = None

    for path in finalized:
        entry = emissions.get(path)
        if entry is None:
            continue
        if formatter is not None and path.endswith(".py"):
            entry.content = formatter.format(entry.content, config.formatter)
        if banner is not None:
            entry.content = banner.apply(entry.content, attribution.get(path, []), model.metadata.get("source"))


def write_files(result: RunResult, config: GeneratorConfig | None = None) -> list[Path]:
    """
    Write a run's finalized files under ``config.output_dir``.

    In ``error`` mode every target is checked first, so an existing file
    aborts the write before anything is touched.

    Returns:
        Written paths, sorted

    Raises:
        FileExistsError: In error mode, if any target already exists
        WriteError: If a Python file fails validation
    """
    config = config or GeneratorConfig()
    root = Path(config.output_dir)
    targets = {root / path: content for path, content in sorted(result.files.items())}

    if config.output.mode == OutputMode.ERROR_IF_EXISTS:
        existing = [str(path) for path in targets if path.exists()]
        if existing:
            raise FileExistsError(f"Output files already exist: {', '.join(existing)}. Use force mode to overwrite.")

    writer = AtomicWriter(atomic=config.output.atomic_write)
    for path, content in targets.items():
        writer.write(path, content, validate=config.output.validate_before_write)

    logger.info("Wrote %d files to %s", len(targets), root)
    return list(targets)
