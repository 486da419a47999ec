"""
Test Data Factory: module trees on disk for Trellis tests

Writes real `trellis.yaml` resource files under pytest's tmp_path and
registers recording callables, so tests exercise real discovery and can
assert the exact order hooks ran in.

Usage:
    def test_something(module_factory):
        module_factory.add_module("acme/core")
        module_factory.add_module("acme/app", dependencies=["acme/core"])
        builder = module_factory.create_builder()
        config = builder.build("acme/app")
        assert module_factory.calls == [...]
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from trellis.core.backend import Configuration, DictConfigBackend
from trellis.core.discovery import ResourceDiscovery
from trellis.core.pipeline import ModuleBuilder
from trellis.core.registry import CallableRegistry


class ModuleTestFactory:
    """
    Factory for creating test module trees.

    Each module gets its own directory holding a trellis.yaml. Hooks are
    registered in a private CallableRegistry and append
    (phase, module name) tuples to `calls`.
    """

    def __init__(self, tmp_path: Path):
        """
        Initialize factory with temporary directory.

        Args:
            tmp_path: pytest tmp_path fixture for isolated temp directory
        """
        self.tmp_path = tmp_path
        self.root = tmp_path / "modules"
        self.root.mkdir(parents=True, exist_ok=True)
        self.registry = CallableRegistry()
        self.calls: List[Tuple[str, str]] = []

    # =========================================================================
    # Module Creation
    # =========================================================================

    def add_module(
        self,
        name: str,
        dependencies: Optional[List[str]] = None,
        schema: bool = True,
        configure: bool = True,
        inits: Optional[List[Any]] = None,
        directory: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Write a module definition and register its hooks.

        Args:
            name: Namespaced module name
            dependencies: Dependency names
            schema: Register a schema hook declaring `<name>.marker`
            configure: Register a recording configure hook
            inits: Raw initializers (default: a recording callable ref)
            directory: Directory under the factory root (default: from name)

        Returns:
            The raw record written to disk
        """
        record: Dict[str, Any] = {"name": name}
        if dependencies:
            record["dependencies"] = list(dependencies)
        if schema:
            record["schema"] = self._register_schema(name)
        if configure:
            record["configure"] = self._register_configure(name)
        record["inits"] = inits if inits is not None else [{"ref": self._register_init(name)}]

        self.write_records(directory or name.replace("/", "_").replace(".", "_"), [record])
        return record

    def write_records(self, directory: str, records: Any) -> Path:
        """Write raw records (or any YAML payload) as a resource file."""
        module_dir = self.root / directory
        module_dir.mkdir(parents=True, exist_ok=True)
        path = module_dir / "trellis.yaml"
        path.write_text(yaml.safe_dump(records, sort_keys=False), encoding="utf-8")
        return path

    def write_script(self, relative: str, entities: List[Dict[str, Any]]) -> Path:
        """Write a YAML initializer script relative to the factory root."""
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(entities), encoding="utf-8")
        return path

    # =========================================================================
    # Hooks
    # =========================================================================

    def _register_schema(self, name: str) -> str:
        key = f"{name.replace('/', '.')}/schema"

        def schema():
            self.calls.append(("schema", name))
            return {f"{name}.marker": {"type": "string"}}

        self.registry.register(key, schema)
        return key

    def _register_init(self, name: str) -> str:
        key = f"{name.replace('/', '.')}/init"

        def init(config):
            self.calls.append(("init", name))
            config.add({f"{name}.marker": name})
            return config

        self.registry.register(key, init)
        return key

    def _register_configure(self, name: str) -> str:
        key = f"{name.replace('/', '.')}/configure"

        def configure(config):
            self.calls.append(("configure", name))
            return config

        self.registry.register(key, configure)
        return key

    def phase(self, phase: str) -> List[str]:
        """Module names recorded for one phase, in call order."""
        return [name for p, name in self.calls if p == phase]

    # =========================================================================
    # Builders
    # =========================================================================

    def create_discovery(self) -> ResourceDiscovery:
        return ResourceDiscovery(search_paths=[self.root])

    def create_backend(self) -> DictConfigBackend:
        return DictConfigBackend(self.registry, base_dir=self.root)

    def create_builder(self) -> ModuleBuilder:
        return ModuleBuilder(self.create_discovery(), self.create_backend(), self.registry)

    def blank(self) -> Configuration:
        return Configuration()
