"""
Core: module resolution and the staged configuration build

Contains:
- Definition: module definition model and structural validation
- Discovery: resource scanning and duplicate detection
- Graph: reachability, dependency checks, topological ordering
- Registry: named schema/configure/initializer callables
- Backend: configuration collaborator interface and reference backend
- Pipeline: schema -> init -> configure -> validate
- Errors: structured failure taxonomy
"""

from .errors import (
    Stage, ModuleError, DiscoveryError, InvalidDefinition, DuplicateDefinition,
    ModuleAlreadyDeclared, ModuleNameNotFound, MissingModule, CircularDependency,
    SchemaError, SchemaMergeError, InitializerError, ConfigureError,
)
from .definition import ModuleDefinition, Initializer, InitKind, validate_definition, is_namespaced
from .discovery import (
    DiscoveryStrategy, InMemoryDiscovery, ResourceDiscovery,
    discover_definitions, check_duplicates,
)
from .graph import ModuleGraph, build_graph, validate_dependencies, reachable, topological_sort, find_cycle
from .registry import CallableRegistry, UnknownReference, get_registry, reset_registry
from .backend import (
    ConfigBackend, Configuration, DictConfigBackend,
    ConfigValidationError, SchemaConflictError,
)
from .pipeline import ModuleBuilder, BuildResult, BuildStatus, build_config, select_root

__all__ = [
    # Errors
    "Stage", "ModuleError", "DiscoveryError", "InvalidDefinition", "DuplicateDefinition",
    "ModuleAlreadyDeclared", "ModuleNameNotFound", "MissingModule", "CircularDependency",
    "SchemaError", "SchemaMergeError", "InitializerError", "ConfigureError",
    # Definition
    "ModuleDefinition", "Initializer", "InitKind", "validate_definition", "is_namespaced",
    # Discovery
    "DiscoveryStrategy", "InMemoryDiscovery", "ResourceDiscovery",
    "discover_definitions", "check_duplicates",
    # Graph
    "ModuleGraph", "build_graph", "validate_dependencies", "reachable", "topological_sort", "find_cycle",
    # Registry
    "CallableRegistry", "UnknownReference", "get_registry", "reset_registry",
    # Backend
    "ConfigBackend", "Configuration", "DictConfigBackend",
    "ConfigValidationError", "SchemaConflictError",
    # Pipeline
    "ModuleBuilder", "BuildResult", "BuildStatus", "build_config", "select_root",
]
