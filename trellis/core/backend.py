"""
Configuration Backend: the collaborator that owns the configuration

The build pipeline never looks inside a configuration. It only calls the
three backend operations, in a fixed order:

    init_config(blank, schemas)          once, after the schema phase
    apply_initializer(config, init)      per initializer, init phase
    validate(config, strict)             once, at the end

DictConfigBackend is the reference implementation: a configuration is a
schema (attribute -> spec) plus a flat list of entity records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .definition import Initializer, InitKind
from .registry import CallableRegistry, get_registry


class ConfigBackend(ABC):
    """Interface the build pipeline drives."""

    @abstractmethod
    def init_config(self, blank: Any, schemas: Sequence[Any]) -> Any:
        """Install merged schemas on a blank configuration."""

    @abstractmethod
    def apply_initializer(self, config: Any, initializer: Initializer) -> Any:
        """Apply one initializer and return the configuration."""

    @abstractmethod
    def validate(self, config: Any, strict: bool) -> Any:
        """Validate the finished configuration."""


class SchemaConflictError(ValueError):
    """Two schemas define the same attribute differently."""

    def __init__(self, attribute: str, first: Any, second: Any):
        self.attribute = attribute
        self.first = first
        self.second = second
        super().__init__(f"Attribute {attribute} defined twice with different specs: {first!r} vs {second!r}")


class ConfigValidationError(Exception):
    """Strict validation found errors in the configuration."""

    def __init__(self, errors: List[str], config: Any = None):
        self.errors = list(errors)
        self.config = config
        super().__init__(f"Configuration is invalid ({len(self.errors)} errors):\n" + "\n".join(self.errors))


@dataclass
class Configuration:
    """Schema plus entity records."""
    schema: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    entities: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, entity: Mapping[str, Any]) -> None:
        """Append one entity record."""
        if not isinstance(entity, Mapping):
            raise TypeError(f"Entity must be a mapping, got {type(entity).__name__}")
        self.entities.append(dict(entity))

    def find(self, attribute: str) -> List[Any]:
        """All values of an attribute across entities."""
        return [e[attribute] for e in self.entities if attribute in e]


TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "int": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "float": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "bool": lambda v: isinstance(v, bool),
    "list": lambda v: isinstance(v, list),
    "map": lambda v: isinstance(v, dict),
}


class DictConfigBackend(ConfigBackend):
    """
    Reference backend over Configuration.

    Args:
        registry: Resolves callable and form initializers
        base_dir: Directory script initializer paths are relative to
    """

    def __init__(self, registry: Optional[CallableRegistry] = None, base_dir: Optional[Path] = None):
        self.registry = registry if registry is not None else get_registry()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    def init_config(self, blank: Optional[Configuration], schemas: Sequence[Any]) -> Configuration:
        config = blank if blank is not None else Configuration()
        for schema in schemas:
            if not isinstance(schema, Mapping):
                raise TypeError(f"Schema must be a mapping of attribute -> spec, got {type(schema).__name__}")
            for attribute, spec in schema.items():
                spec = dict(spec or {})
                existing = config.schema.get(attribute)
                if existing is not None and existing != spec:
                    raise SchemaConflictError(attribute, existing, spec)
                config.schema[attribute] = spec
        return config

    def apply_initializer(self, config: Configuration, initializer: Initializer) -> Configuration:
        if initializer.kind == InitKind.SCRIPT:
            for entity in self._load_script(initializer.value):
                config.add(entity)
            return config

        if initializer.kind == InitKind.LITERAL:
            for entity in initializer.value:
                config.add(entity)
            return config

        if initializer.kind == InitKind.CALLABLE:
            fn = self.registry.resolve(initializer.value)
            result = fn(config)
            return config if result is None else result

        if initializer.kind == InitKind.FORM:
            op, *args = initializer.value
            result = self.registry.resolve(op)(config, *args)
            return config if result is None else result

        raise ValueError(f"Unsupported initializer kind: {initializer.kind}")

    def _load_script(self, path: str) -> List[Any]:
        script = Path(path)
        if not script.is_absolute():
            script = self.base_dir / script
        with open(script, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise ValueError(f"Script {script} must hold an entity mapping or a list of them")
        return data

    def validate(self, config: Configuration, strict: bool) -> Configuration:
        errors = []
        for position, entity in enumerate(config.entities):
            for attribute, value in entity.items():
                spec = config.schema.get(attribute)
                if spec is None:
                    errors.append(f"entity {position}: undeclared attribute {attribute}")
                    continue
                expected = spec.get("type")
                check = TYPE_CHECKS.get(expected)
                if check is not None and not check(value):
                    errors.append(f"entity {position}: {attribute} should be {expected}, got {value!r}")

        config.errors = errors
        if errors and strict:
            raise ConfigValidationError(errors, config)
        return config
