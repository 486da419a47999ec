"""
Discovery: find module definitions and collapse duplicates

Discovery is an injectable strategy with a single method:

    discover() -> Iterable[(origin, raw_record)]

- ResourceDiscovery scans search paths (and installed packages) for
  resource files named like `trellis.yaml`
- InMemoryDiscovery serves records held in memory (tests, embedding)

discover_definitions() validates every record and deduplicates by name:
identical definitions collapse, differing ones are a DuplicateDefinition.
"""

import logging
from abc import ABC, abstractmethod
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import yaml

from .definition import ModuleDefinition, validate_definition
from .errors import DiscoveryError, DuplicateDefinition


logger = logging.getLogger(__name__)

DEFAULT_RESOURCE_NAME = "trellis.yaml"

RawRecord = Tuple[str, Any]


class DiscoveryStrategy(ABC):
    """Source of raw module definition records."""

    @abstractmethod
    def discover(self) -> Iterable[RawRecord]:
        """Yield (origin, raw_record) pairs in a deterministic order."""


class InMemoryDiscovery(DiscoveryStrategy):
    """Serves a fixed sequence of raw records."""

    def __init__(self, records: Sequence[Any] = (), origin: str = "<memory>"):
        self.records = list(records)
        self.origin = origin

    def discover(self) -> Iterator[RawRecord]:
        for record in self.records:
            yield self.origin, record


class ResourceDiscovery(DiscoveryStrategy):
    """
    Scans the filesystem and installed packages for resource files.

    Each resource holds YAML: a single definition mapping, a list of them,
    or nothing. Files are visited in sorted path order so discovery order
    is reproducible.
    """

    def __init__(
        self,
        search_paths: Sequence[Path] = (Path("."),),
        resource_name: str = DEFAULT_RESOURCE_NAME,
        recursive: bool = True,
        packages: Sequence[str] = (),
    ):
        self.search_paths = [Path(p) for p in search_paths]
        self.resource_name = resource_name
        self.recursive = recursive
        self.packages = list(packages)

    def list_resources(self) -> List[Tuple[str, str]]:
        """Return (origin, text) for every resource found."""
        found: List[Tuple[str, str]] = []
        seen = set()

        for root in self.search_paths:
            if root.is_file():
                candidates = [root] if root.name == self.resource_name else []
            elif root.is_dir():
                pattern = root.rglob if self.recursive else root.glob
                candidates = sorted(pattern(self.resource_name))
            else:
                logger.debug("Search path %s does not exist, skipping", root)
                continue

            for path in candidates:
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                try:
                    found.append((str(path), path.read_text(encoding="utf-8")))
                except OSError as e:
                    raise DiscoveryError(str(path), str(e)) from e

        for package in self.packages:
            try:
                resource = resources.files(package) / self.resource_name
            except ModuleNotFoundError as e:
                raise DiscoveryError(package, f"package not importable: {e}") from e
            if resource.is_file():
                found.append((f"{package}:{self.resource_name}", resource.read_text(encoding="utf-8")))

        return found

    def discover(self) -> Iterator[RawRecord]:
        for origin, text in self.list_resources():
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise DiscoveryError(origin, f"invalid YAML: {e}") from e

            if data is None:
                continue
            if isinstance(data, dict):
                data = [data]
            if not isinstance(data, list):
                raise DiscoveryError(origin, f"expected a mapping or a list, got {type(data).__name__}")

            for record in data:
                yield origin, record


def check_duplicates(definitions: Iterable[ModuleDefinition]) -> List[ModuleDefinition]:
    """
    Collapse identical definitions and reject conflicting ones.

    Returns:
        Definitions with unique names, in first-seen order

    Raises:
        DuplicateDefinition: If two definitions share a name but differ
    """
    by_name: Dict[str, ModuleDefinition] = {}
    for definition in definitions:
        existing = by_name.get(definition.name)
        if existing is None:
            by_name[definition.name] = definition
        elif existing == definition:
            logger.warning(
                "Module %s defined more than once (%s, %s); definitions are identical",
                definition.name, existing.origin, definition.origin,
            )
        else:
            raise DuplicateDefinition(definition.name, [existing, definition])
    return list(by_name.values())


def discover_definitions(strategy: DiscoveryStrategy) -> List[ModuleDefinition]:
    """
    Discover, validate and deduplicate module definitions.

    Args:
        strategy: Where raw records come from

    Returns:
        Validated definitions with unique names, in discovery order

    Raises:
        DiscoveryError: A resource could not be loaded
        InvalidDefinition: A record failed validation
        DuplicateDefinition: Two different definitions share a name
    """
    validated = (validate_definition(raw, origin) for origin, raw in strategy.discover())
    definitions = check_duplicates(validated)
    logger.debug("Discovered %d module definitions", len(definitions))
    return definitions


def discovery_from_settings(settings: Any, base_dir: Optional[Path] = None) -> ResourceDiscovery:
    """Build a ResourceDiscovery from a DiscoveryConfig section."""
    base = Path(base_dir) if base_dir else Path.cwd()
    return ResourceDiscovery(
        search_paths=[base / p for p in settings.search_paths],
        resource_name=settings.resource_name,
        recursive=settings.recursive,
        packages=settings.packages,
    )
