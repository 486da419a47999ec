"""
Module Definition: the declarative record behind every module

A module definition names a configuration unit, its dependencies, and the
optional hooks the build pipeline calls:

    name: acme.web/server
    dependencies: [acme/core]
    schema: acme.web/schema          # zero-arg fn -> schema data
    configure: acme.web/configure    # fn(config) -> config
    inits:
      - scripts/server.yaml          # script file
      - {ref: acme.web/seed}         # registered callable
      - [{server/port: 8080}]        # literal entities
      - {form: [acme/add, 1, 2]}     # registered operator applied to args

Definitions are immutable values; equality is structural.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import orjson
import xxhash

from .errors import InvalidDefinition, _ref_name


NAME_PATTERN = re.compile(r"^[A-Za-z_][\w.\-]*/[A-Za-z_*+!?<>=][\w.\-*+!?<>=]*$")

KNOWN_KEYS = ("name", "dependencies", "schema", "configure", "inits")

Ref = Union[str, Callable[..., Any]]


def is_namespaced(value: Any) -> bool:
    """Check for a `namespace/name` string."""
    return isinstance(value, str) and bool(NAME_PATTERN.match(value))


class InitKind(Enum):
    """Initializer descriptor shapes."""
    SCRIPT = "script"
    CALLABLE = "callable"
    LITERAL = "literal"
    FORM = "form"


@dataclass(frozen=True)
class Initializer:
    """A tagged initializer descriptor."""
    kind: InitKind
    value: Any

    @classmethod
    def from_raw(cls, raw: Any) -> 'Initializer':
        """
        Tag a raw initializer.

        Raises:
            ValueError: If the raw value matches no initializer shape
        """
        if isinstance(raw, Initializer):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                raise ValueError("script path is empty")
            return cls(InitKind.SCRIPT, raw)
        if callable(raw):
            return cls(InitKind.CALLABLE, raw)
        if isinstance(raw, list):
            return cls(InitKind.LITERAL, raw)
        if isinstance(raw, Mapping) and len(raw) == 1:
            if "ref" in raw:
                ref = raw["ref"]
                if not (is_namespaced(ref) or callable(ref)):
                    raise ValueError(f"callable reference {ref!r} is not a namespaced name")
                return cls(InitKind.CALLABLE, ref)
            if "form" in raw:
                form = raw["form"]
                if not isinstance(form, list) or not form or not is_namespaced(form[0]):
                    raise ValueError("form must be a non-empty list headed by a namespaced operator")
                return cls(InitKind.FORM, form)
        raise ValueError(f"unrecognized initializer {raw!r}")

    def to_raw(self) -> Any:
        if self.kind == InitKind.CALLABLE and isinstance(self.value, str):
            return {"ref": self.value}
        if self.kind == InitKind.FORM:
            return {"form": self.value}
        return self.value


@dataclass(frozen=True, eq=False)
class ModuleDefinition:
    """
    A validated module definition.

    Dependencies keep their declared order for traversal but compare as a
    set. `origin` records where the definition was discovered and does not
    take part in equality.
    """
    name: str
    dependencies: Tuple[str, ...] = ()
    schema: Optional[Ref] = None
    configure: Optional[Ref] = None
    inits: Tuple[Initializer, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    origin: Optional[str] = field(default=None, compare=False)

    __hash__ = None  # literal initializers are not hashable

    def _identity(self) -> Tuple[Any, ...]:
        return (
            self.name, frozenset(self.dependencies), self.schema,
            self.configure, self.inits, self.metadata,
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ModuleDefinition):
            return NotImplemented
        return self._identity() == other._identity()

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the raw record shape."""
        result: Dict[str, Any] = {"name": self.name}
        if self.dependencies:
            result["dependencies"] = list(self.dependencies)
        if self.schema is not None:
            result["schema"] = self.schema
        if self.configure is not None:
            result["configure"] = self.configure
        if self.inits:
            result["inits"] = [i.to_raw() for i in self.inits]
        result.update(self.metadata)
        return result

    @property
    def fingerprint(self) -> str:
        """Short structural hash, stable across processes."""
        payload = self.to_dict()
        if self.dependencies:
            payload["dependencies"] = sorted(self.dependencies)
        encoded = orjson.dumps(
            payload,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
            default=_ref_name,
        )
        return xxhash.xxh64(encoded).hexdigest()[:12]

    def __repr__(self) -> str:
        deps = ", ".join(self.dependencies)
        return f"ModuleDefinition({self.name!r}, deps=[{deps}])"


def validate_definition(raw: Any, origin: Optional[str] = None) -> ModuleDefinition:
    """
    Validate a raw record and build a ModuleDefinition.

    Collects every structural problem before failing, so one error reports
    them all.

    Args:
        raw: Mapping parsed from a resource file (or built inline)
        origin: Where the record came from, for diagnostics

    Returns:
        The validated definition

    Raises:
        InvalidDefinition: If the record does not conform
    """
    if isinstance(raw, ModuleDefinition):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidDefinition(None, raw, [f"definition must be a mapping, got {type(raw).__name__}"], origin)

    problems: List[str] = []
    name = raw.get("name")
    if not is_namespaced(name):
        problems.append(f"name {name!r} must be a namespaced name like `acme/core`")

    dependencies: Tuple[str, ...] = ()
    if "dependencies" in raw:
        deps = raw["dependencies"]
        if not isinstance(deps, (list, tuple)) or not deps:
            problems.append("dependencies must be a non-empty list")
        else:
            bad = [d for d in deps if not is_namespaced(d)]
            if bad:
                problems.append(f"dependencies {bad!r} are not namespaced names")
            elif len(set(deps)) != len(deps):
                problems.append("dependencies must be distinct")
            else:
                dependencies = tuple(deps)

    for key in ("schema", "configure"):
        ref = raw.get(key)
        if ref is not None and not (is_namespaced(ref) or callable(ref)):
            problems.append(f"{key} {ref!r} must be a namespaced registry key or a callable")

    inits: List[Initializer] = []
    if "inits" in raw:
        raw_inits = raw["inits"]
        if not isinstance(raw_inits, (list, tuple)) or not raw_inits:
            problems.append("inits must be a non-empty list")
        else:
            for index, raw_init in enumerate(raw_inits):
                try:
                    inits.append(Initializer.from_raw(raw_init))
                except ValueError as e:
                    problems.append(f"inits[{index}]: {e}")

    if problems:
        raise InvalidDefinition(name, raw, problems, origin)

    return ModuleDefinition(
        name=name,
        dependencies=dependencies,
        schema=raw.get("schema"),
        configure=raw.get("configure"),
        inits=tuple(inits),
        metadata={k: v for k, v in raw.items() if k not in KNOWN_KEYS},
        origin=origin,
    )
