"""
Trellis: module resolution and staged configuration builds

Modules declare their dependencies and hooks in `trellis.yaml` files.
Trellis selects the modules reachable from a root, orders them by
dependency, and builds one configuration through fixed phases.

Usage:
    registry = get_registry()
    registry.register("acme.web/schema", web_schema)

    builder = ModuleBuilder(ResourceDiscovery(["."]), DictConfigBackend(registry))
    config = builder.build("acme.web/app")
"""

__version__ = "0.1.0"

# Core layer
from .core import (
    Stage, ModuleError, DiscoveryError, InvalidDefinition, DuplicateDefinition,
    ModuleAlreadyDeclared, ModuleNameNotFound, MissingModule, CircularDependency,
    SchemaError, SchemaMergeError, InitializerError, ConfigureError,
    ModuleDefinition, Initializer, InitKind, validate_definition,
    DiscoveryStrategy, InMemoryDiscovery, ResourceDiscovery, discover_definitions,
    ModuleGraph, build_graph, validate_dependencies, reachable, topological_sort,
    CallableRegistry, UnknownReference, get_registry, reset_registry,
    ConfigBackend, Configuration, DictConfigBackend, ConfigValidationError, SchemaConflictError,
    ModuleBuilder, BuildResult, BuildStatus, build_config,
)

# Config (stays at root)
from .config import Config, ConfigManager, DiscoveryConfig, BuildConfig, get_config

__all__ = [
    # Errors
    'Stage', 'ModuleError', 'DiscoveryError', 'InvalidDefinition', 'DuplicateDefinition',
    'ModuleAlreadyDeclared', 'ModuleNameNotFound', 'MissingModule', 'CircularDependency',
    'SchemaError', 'SchemaMergeError', 'InitializerError', 'ConfigureError',
    # Model and resolution
    'ModuleDefinition', 'Initializer', 'InitKind', 'validate_definition',
    'DiscoveryStrategy', 'InMemoryDiscovery', 'ResourceDiscovery', 'discover_definitions',
    'ModuleGraph', 'build_graph', 'validate_dependencies', 'reachable', 'topological_sort',
    'CallableRegistry', 'UnknownReference', 'get_registry', 'reset_registry',
    # Build
    'ConfigBackend', 'Configuration', 'DictConfigBackend', 'ConfigValidationError', 'SchemaConflictError',
    'ModuleBuilder', 'BuildResult', 'BuildStatus', 'build_config',
    # Config
    'Config', 'ConfigManager', 'DiscoveryConfig', 'BuildConfig', 'get_config',
]
