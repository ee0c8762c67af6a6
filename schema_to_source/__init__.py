"""Schema to Source

Orchestration core for schema-driven source generation: providers are
matched to requested capabilities, ordered by their dependencies and run
once each; the files they emit are merged, their cross-file imports
resolved, and the result written atomically.
"""

__version__ = "0.1.0"

from .config import FormatterConfig, GeneratorConfig, OutputConfig, OutputMode
from .emissions import EmissionBuffer
from .errors import (
    AmbiguousProvider,
    CyclicDependency,
    EmitConflict,
    FileBuilderError,
    GenerationError,
    PluginExecutionFailed,
    PluginNotFound,
    ResourceNotResolved,
    SymbolConflict,
    UnresolvedReferences,
    WriteError,
)
from .execution import ExecutionServices, ProviderContext, execute
from .file_assignment import FileAssigner, FileRule
from .file_builder import FileBuilder, SymbolFragment, SymbolMeta, exported
from .imports import PackageImportRef, RelativeImportRef, SymbolImportRef, SymbolRef, symbol_import
from .model import SemanticModel
from .providers import Provider, ProviderRegistry, ResourceRequest, SemanticModelProvider, SymbolDeclaration, define_provider
from .resolution import ExecutionPlan, resolve, validate_declarations
from .runner import RunResult, run_providers, write_files
from .symbols import Symbol, SymbolRegistry
from .writer import AtomicWriter

__all__ = [
    "run_providers",
    "write_files",
    "RunResult",
    "Provider",
    "define_provider",
    "ProviderRegistry",
    "ResourceRequest",
    "SymbolDeclaration",
    "SemanticModelProvider",
    "resolve",
    "validate_declarations",
    "ExecutionPlan",
    "execute",
    "ExecutionServices",
    "ProviderContext",
    "EmissionBuffer",
    "SymbolRegistry",
    "Symbol",
    "FileBuilder",
    "SymbolFragment",
    "SymbolMeta",
    "exported",
    "FileAssigner",
    "FileRule",
    "SymbolRef",
    "SymbolImportRef",
    "PackageImportRef",
    "RelativeImportRef",
    "symbol_import",
    "SemanticModel",
    "GeneratorConfig",
    "FormatterConfig",
    "OutputConfig",
    "OutputMode",
    "AtomicWriter",
    "GenerationError",
    "PluginNotFound",
    "AmbiguousProvider",
    "CyclicDependency",
    "PluginExecutionFailed",
    "ResourceNotResolved",
    "EmitConflict",
    "SymbolConflict",
    "UnresolvedReferences",
    "FileBuilderError",
    "WriteError",
]
