"""
Errors: structured failures for module resolution and config builds

Every failure raised by the resolver or the build pipeline is a ModuleError
subclass. Each carries:
- The offending names/definitions as attributes (never just a string)
- The build stage it belongs to (for BuildResult reporting)
- A one-line message, a longer explanation and suggestions

Causes of initializer/configure failures are chained with `raise ... from`,
so the original exception stays reachable through `__cause__`.
"""

import pprint
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class Stage(Enum):
    """Build pipeline stages, in execution order."""
    DISCOVER = "discover"
    RESOLVE = "resolve"
    SORT = "sort"
    SCHEMA = "schema"
    INIT = "init"
    CONFIGURE = "configure"
    VALIDATE = "validate"
    DONE = "done"


def pprint_truncated(value: Any, max_lines: int = 5) -> str:
    """Pretty-print a value, keeping at most `max_lines` lines."""
    lines = pprint.pformat(value, width=72).splitlines()
    if len(lines) > max_lines:
        lines = lines[:max_lines] + ["..."]
    return "\n".join(lines)


class ModuleError(Exception):
    """
    Base class for all module resolution and build failures.

    Subclasses set `stage`, `explanation` and `suggestions`, and pass a
    formatted one-line message to __init__.
    """

    stage: Stage = Stage.DISCOVER
    explanation: str = ""
    suggestions: Sequence[str] = ()

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def data(self) -> Dict[str, Any]:
        """Structured payload for this error kind."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for reporting."""
        result = {
            "kind": type(self).__name__,
            "stage": self.stage.value,
            "message": self.message,
            "data": self.data(),
        }
        if self.__cause__ is not None:
            result["cause"] = repr(self.__cause__)
        return result

    def describe(self) -> str:
        """Build a multi-line human diagnostic."""
        lines = [self.message, ""]
        if self.explanation:
            lines.extend(["  " + line for line in self.explanation.splitlines()])
            lines.append("")
        if self.suggestions:
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")
        if self.__cause__ is not None:
            lines.extend(["", f"Caused by: {self.__cause__!r}"])
        return "\n".join(lines).rstrip()


# =============================================================================
# Discovery / definition errors
# =============================================================================

class DiscoveryError(ModuleError):
    """A module resource could not be read or parsed."""

    stage = Stage.DISCOVER
    suggestions = (
        "Check that the resource file is valid YAML.",
        "A resource must hold a single definition mapping or a list of them.",
    )

    def __init__(self, origin: str, reason: str):
        self.origin = origin
        self.reason = reason
        self.explanation = (
            f"While discovering module definitions, the resource `{origin}` "
            f"could not be loaded: {reason}"
        )
        super().__init__(f"Could not load module resource `{origin}`")

    def data(self) -> Dict[str, Any]:
        return {"origin": self.origin, "reason": self.reason}


class InvalidDefinition(ModuleError):
    """A raw module definition failed structural validation."""

    stage = Stage.DISCOVER
    suggestions = ("Ensure that the module definition is correct and has all the required parts.",)

    def __init__(self, name: Any, definition: Any, problems: List[str], origin: Optional[str] = None):
        self.name = name
        self.definition = definition
        self.problems = list(problems)
        self.origin = origin
        where = f" (found in `{origin}`)" if origin else ""
        self.explanation = (
            f"The module definition{where} for `{name}` is not well formed:\n"
            + "\n".join(f"- {p}" for p in self.problems)
        )
        super().__init__(f"Invalid module definition `{name}`")

    def data(self) -> Dict[str, Any]:
        return {"name": self.name, "problems": self.problems, "origin": self.origin}


class DuplicateDefinition(ModuleError):
    """Two structurally different definitions share a name."""

    stage = Stage.DISCOVER
    suggestions = (
        "Verify you have not accidentally included two different versions of the same module.",
        "Inspect the search paths to find why the same module name is defined twice.",
    )

    def __init__(self, name: str, definitions: List[Any]):
        self.name = name
        self.definitions = list(definitions)
        self.explanation = (
            f"Found {len(self.definitions)} definitions for module `{name}`, and the "
            "definitions were not the same. This can happen when two different "
            "versions of a module are both discoverable."
        )
        super().__init__(f"Duplicate module definition for `{name}`")

    def data(self) -> Dict[str, Any]:
        return {"name": self.name, "definitions": [getattr(d, "fingerprint", repr(d)) for d in self.definitions]}


# =============================================================================
# Root resolution errors
# =============================================================================

class ModuleAlreadyDeclared(ModuleError):
    """An inline root definition collides with a discovered module."""

    stage = Stage.RESOLVE
    suggestions = (
        "Choose a different name for the module.",
        "Pass just the name of the module and use the discovered definition instead.",
    )

    def __init__(self, name: str):
        self.name = name
        self.explanation = (
            f"A module definition named `{name}` was passed to the build, but a module "
            "with that name is already defined in a discovered resource. Merging the "
            "two is ambiguous, so this is not allowed."
        )
        super().__init__(f"Module named `{name}` already declared")

    def data(self) -> Dict[str, Any]:
        return {"name": self.name}


class ModuleNameNotFound(ModuleError):
    """The requested root module name has no discovered definition."""

    stage = Stage.RESOLVE
    suggestions = (
        "Make sure the resource file defining the module is on a search path.",
        "Make sure the module name is correct and typo-free.",
    )

    def __init__(self, name: str):
        self.name = name
        self.explanation = (
            f"The build was asked for module `{name}`, but no discovered resource "
            "defines a module with that name. The root module and its dependencies "
            "decide which modules are active."
        )
        super().__init__(f"Could not find module named `{name}`")

    def data(self) -> Dict[str, Any]:
        return {"name": self.name}


# =============================================================================
# Graph errors
# =============================================================================

class MissingModule(ModuleError):
    """A dependency name is absent from the candidate set."""

    stage = Stage.SORT
    suggestions = (
        "Make sure every dependency's resource file is on a search path.",
        "Make sure the module names are correct and typo-free.",
    )

    def __init__(self, module_name: str, module: Any, missing: Sequence[str]):
        self.module_name = module_name
        self.module = module
        self.missing = sorted(missing)
        missing_str = ", ".join(self.missing)
        self.explanation = (
            f"Module `{module_name}` declared a dependency on `{missing_str}`, "
            "but no definition with that name could be found."
        )
        super().__init__(f"Modules `{missing_str}` not found")

    def data(self) -> Dict[str, Any]:
        return {"module_name": self.module_name, "missing": self.missing}


class CircularDependency(ModuleError):
    """The active dependency graph contains a cycle."""

    stage = Stage.SORT
    explanation = (
        "Could not sort modules because module dependencies contain circular "
        "references. Module dependencies must form a directed acyclic graph."
    )
    suggestions = ("Remove one of the dependencies along the reported cycle.",)

    def __init__(self, definitions: List[Any], cycle: Sequence[str] = ()):
        self.definitions = list(definitions)
        self.cycle = list(cycle)
        if self.cycle:
            message = "Circular module dependencies: " + " -> ".join(self.cycle)
        else:
            message = "Circular module dependencies"
        super().__init__(message)

    @property
    def names(self) -> List[str]:
        return [getattr(d, "name", d) for d in self.definitions]

    def data(self) -> Dict[str, Any]:
        return {"names": self.names, "cycle": self.cycle}


# =============================================================================
# Phase errors
# =============================================================================

class SchemaError(ModuleError):
    """A schema function could not be resolved or raised."""

    stage = Stage.SCHEMA
    suggestions = ("Inspect this exception's cause to see the error raised while producing the schema.",)

    def __init__(self, module_name: str, definition: Any, ref: Any):
        self.module_name = module_name
        self.definition = definition
        self.ref = ref
        self.explanation = (
            f"While collecting schema for module `{module_name}`, the schema "
            f"function `{_ref_name(ref)}` failed."
        )
        super().__init__(f"Error collecting schema for module `{module_name}`")

    def data(self) -> Dict[str, Any]:
        return {"module_name": self.module_name, "ref": _ref_name(self.ref)}


class SchemaMergeError(ModuleError):
    """The backend could not install the collected schemas."""

    stage = Stage.SCHEMA
    suggestions = (
        "Inspect this exception's cause to see why the schemas could not be merged.",
        "Make sure modules declaring the same attribute declare it identically.",
    )

    def __init__(self, module_names: Sequence[str], attribute: Optional[str] = None):
        self.module_names = list(module_names)
        self.attribute = attribute
        names = ", ".join(self.module_names)
        if attribute is not None:
            self.explanation = (
                f"Modules `{names}` all declare attribute `{attribute}`, "
                "but their declarations differ."
            )
        else:
            self.explanation = f"The schemas contributed by modules `{names}` could not be installed."
        super().__init__(f"Error merging schemas of modules `{names}`")

    def data(self) -> Dict[str, Any]:
        return {"module_names": self.module_names, "attribute": self.attribute}


class InitializerError(ModuleError):
    """An initializer raised during the init phase."""

    stage = Stage.INIT
    suggestions = (
        "Inspect this exception's cause to see the actual error that occurred.",
        "Make sure the initializer script or data is correct and error-free.",
    )

    def __init__(self, module_name: str, definition: Any, initializer: Any):
        self.module_name = module_name
        self.definition = definition
        self.initializer = initializer
        self.initializer_str = pprint_truncated(getattr(initializer, "value", initializer))
        self.explanation = (
            "Every module has the opportunity to seed the configuration after the "
            "schema is installed and before the configure phase. While applying "
            f"the initializers of module `{module_name}`, an exception was raised.\n"
            "The initializer in question is:\n\n"
            + "\n".join("    " + line for line in self.initializer_str.splitlines())
        )
        super().__init__(f"Error initializing module `{module_name}`")

    def data(self) -> Dict[str, Any]:
        return {"module_name": self.module_name, "initializer": self.initializer_str}


class ConfigureError(ModuleError):
    """A configure function raised during the configure phase."""

    stage = Stage.CONFIGURE
    suggestions = ("Inspect the cause of this exception to see the original error.",)

    def __init__(self, module_name: str, definition: Any, fn: Any):
        self.module_name = module_name
        self.definition = definition
        self.fn = fn
        self.explanation = (
            "Modules can update the configuration in a configure phase, called in "
            f"reverse dependency order. The function `{_ref_name(fn)}` of module "
            f"`{module_name}` raised an exception."
        )
        super().__init__(f"Error in module configure phase for `{module_name}` module")

    def data(self) -> Dict[str, Any]:
        return {"module_name": self.module_name, "fn": _ref_name(self.fn)}


def _ref_name(ref: Any) -> str:
    """Readable name for a registry key or a callable."""
    if isinstance(ref, str):
        return ref
    module = getattr(ref, "__module__", None)
    qualname = getattr(ref, "__qualname__", None)
    if qualname:
        return f"{module}.{qualname}" if module else qualname
    return repr(ref)
