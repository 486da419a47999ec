"""
Build Pipeline: turn a root module into a validated configuration

One build is a single pass through fixed stages:

    DISCOVER -> RESOLVE -> SORT -> SCHEMA -> INIT -> CONFIGURE -> VALIDATE

- SCHEMA:    schema functions of active modules, dependency order
- INIT:      initializers, dependency order (foundations seed data first)
- CONFIGURE: configure functions, REVERSE dependency order
             (consuming modules shape the config before the modules they use)

Every stage fails fast. Nothing is retried, and no partial configuration
is returned on failure, except the non-strict validation result.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union

from .backend import ConfigBackend
from .definition import ModuleDefinition, validate_definition
from .discovery import DiscoveryStrategy, discover_definitions, discovery_from_settings
from .errors import (
    ConfigureError, InitializerError, InvalidDefinition, ModuleAlreadyDeclared,
    ModuleNameNotFound, SchemaError, SchemaMergeError, Stage,
)
from .graph import reachable, topological_sort
from .registry import CallableRegistry, get_registry


logger = logging.getLogger(__name__)

Root = Union[str, ModuleDefinition, dict]


class BuildStatus(Enum):
    """Build outcome."""
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BuildResult:
    """
    Result of a build attempt.

    While a build runs, `stage` tracks the current stage; on failure it
    names the stage that failed.
    """
    status: BuildStatus = BuildStatus.RUNNING
    stage: Stage = Stage.DISCOVER
    config: Any = None
    error: Optional[Exception] = None
    order: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == BuildStatus.DONE


def select_root(root: Root, discovered: List[ModuleDefinition]) -> Tuple[ModuleDefinition, List[ModuleDefinition]]:
    """
    Pin down the root definition among discovered candidates.

    An inline root (definition or raw mapping) is added to the candidates;
    a bare name must match a discovered definition.

    Returns:
        (root definition, all candidate definitions)

    Raises:
        ModuleNameNotFound: Root name not discovered
        ModuleAlreadyDeclared: Inline root name already discovered
        InvalidDefinition: Inline root is malformed
    """
    if isinstance(root, str):
        existing = next((d for d in discovered if d.name == root), None)
        if existing is None:
            raise ModuleNameNotFound(root)
        return existing, discovered

    try:
        definition = validate_definition(root, "<inline>")
    except InvalidDefinition as e:
        # inline roots are validated while resolving, not discovering
        e.stage = Stage.RESOLVE
        raise
    if any(d.name == definition.name for d in discovered):
        raise ModuleAlreadyDeclared(definition.name)
    return definition, discovered + [definition]


class ModuleBuilder:
    """
    Drives module resolution and the staged configuration build.

    Holds no per-build state: every call rediscovers definitions and
    recomputes the ordering, so one builder can serve concurrent builds.
    """

    def __init__(
        self,
        discovery: DiscoveryStrategy,
        backend: ConfigBackend,
        registry: Optional[CallableRegistry] = None,
        strict: bool = True
    ):
        self.discovery = discovery
        self.backend = backend
        self.registry = registry if registry is not None else get_registry()
        self.strict = strict  # default for build() and try_build()

    @classmethod
    def from_config(cls, config, backend: ConfigBackend, registry: Optional[CallableRegistry] = None, base_dir=None) -> 'ModuleBuilder':
        """Create a builder whose discovery and validation follow a trellis Config."""
        return cls(
            discovery_from_settings(config.discovery, base_dir),
            backend,
            registry,
            strict=config.build.strict_validation,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def candidates(self, root: Root) -> Tuple[ModuleDefinition, List[ModuleDefinition]]:
        """Discover candidates and pin down the root definition."""
        return select_root(root, discover_definitions(self.discovery))

    def resolve(self, root: Root) -> List[ModuleDefinition]:
        """Return the active definitions for root, in dependency order."""
        return self._resolve(root, BuildResult())

    def _resolve(self, root: Root, run: BuildResult) -> List[ModuleDefinition]:
        run.stage = Stage.DISCOVER
        discovered = discover_definitions(self.discovery)

        run.stage = Stage.RESOLVE
        definition, all_definitions = select_root(root, discovered)
        active = reachable(all_definitions, definition)

        run.stage = Stage.SORT
        ordered = topological_sort(active)
        run.order = [d.name for d in ordered]
        logger.debug("Module order for %s: %s", definition.name, run.order)
        return ordered

    # =========================================================================
    # Phases
    # =========================================================================

    def collect_schemas(self, ordered: List[ModuleDefinition]) -> List[Tuple[str, Any]]:
        """
        Call every schema function; None results contribute nothing.

        Returns:
            (module name, schema) pairs in dependency order
        """
        schemas = []
        for definition in ordered:
            if definition.schema is None:
                continue
            try:
                schema = self.registry.resolve(definition.schema)()
            except Exception as e:
                raise SchemaError(definition.name, definition, definition.schema) from e
            if schema is not None:
                schemas.append((definition.name, schema))
        return schemas

    def install_schemas(self, blank: Any, collected: List[Tuple[str, Any]]) -> Any:
        """
        Hand the collected schemas to the backend.

        Raises:
            SchemaMergeError: The backend rejected the schemas. When the
                cause names a conflicting attribute, only the modules
                declaring it are reported.
        """
        try:
            return self.backend.init_config(blank, [schema for _, schema in collected])
        except Exception as e:
            attribute = getattr(e, "attribute", None)
            owners = [name for name, _ in collected]
            if attribute is not None:
                owners = [
                    name for name, schema in collected
                    if isinstance(schema, Mapping) and attribute in schema
                ] or owners
            raise SchemaMergeError(owners, attribute) from e

    def initialize(self, config: Any, ordered: List[ModuleDefinition]) -> Any:
        """Apply each module's initializers, dependency order."""
        for definition in ordered:
            for initializer in definition.inits:
                try:
                    config = self.backend.apply_initializer(config, initializer)
                except Exception as e:
                    raise InitializerError(definition.name, definition, initializer) from e
            if definition.inits:
                logger.debug("Initialized %s (%d initializers)", definition.name, len(definition.inits))
        return config

    def configure(self, config: Any, ordered: List[ModuleDefinition]) -> Any:
        """Call each module's configure function, reverse dependency order."""
        for definition in reversed(ordered):
            if definition.configure is None:
                continue
            try:
                configure_fn = self.registry.resolve(definition.configure)
                result = configure_fn(config)
            except Exception as e:
                raise ConfigureError(definition.name, definition, definition.configure) from e
            if result is not None:
                config = result
            logger.debug("Configured %s", definition.name)
        return config

    # =========================================================================
    # Entry points
    # =========================================================================

    def _run(self, root: Root, blank: Any, strict: Optional[bool], run: BuildResult) -> Any:
        if strict is None:
            strict = self.strict
        ordered = self._resolve(root, run)
        logger.info("Building configuration from %d modules", len(ordered))

        run.stage = Stage.SCHEMA
        config = self.install_schemas(blank, self.collect_schemas(ordered))

        run.stage = Stage.INIT
        config = self.initialize(config, ordered)

        run.stage = Stage.CONFIGURE
        config = self.configure(config, ordered)

        run.stage = Stage.VALIDATE
        config = self.backend.validate(config, strict)

        run.stage = Stage.DONE
        run.status = BuildStatus.DONE
        run.config = config
        return config

    def build(self, root: Root, blank: Any = None, strict: Optional[bool] = None) -> Any:
        """
        Run the whole pipeline and return the validated configuration.

        Args:
            root: Module name, ModuleDefinition, or raw definition mapping
            blank: Empty configuration handed to the backend
            strict: Raise on validation errors instead of returning them
                (default: the builder's `strict` setting)

        Raises:
            ModuleError: On any resolution or phase failure
        """
        return self._run(root, blank, strict, BuildResult())

    def try_build(self, root: Root, blank: Any = None, strict: Optional[bool] = None) -> BuildResult:
        """
        Like build(), but report failure as a BuildResult.

        The failing stage and the exception (with its cause chain) are kept
        on the result instead of being raised.
        """
        run = BuildResult()
        try:
            self._run(root, blank, strict, run)
        except Exception as e:
            run.status = BuildStatus.FAILED
            run.error = e
            logger.info("Build failed at %s stage: %s", run.stage.value, e)
        return run


def build_config(
    root: Root,
    blank: Any = None,
    strict: bool = True,
    *,
    discovery: DiscoveryStrategy,
    backend: ConfigBackend,
    registry: Optional[CallableRegistry] = None
) -> Any:
    """Build a configuration for root in one call."""
    return ModuleBuilder(discovery, backend, registry).build(root, blank, strict)
