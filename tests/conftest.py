"""
Shared pytest fixtures for Trellis test suite.

Provides the ModuleTestFactory for tests that need real resource files,
plus in-memory building blocks for pure resolver tests.

Usage in tests:
    def test_something(module_factory):
        module_factory.add_module("acme/core")
        builder = module_factory.create_builder()
        # ... build against real trellis.yaml files

    def test_pure(make_def):
        a = make_def("acme/a", deps=["acme/b"])
"""

import pytest

from tests.factories import ModuleTestFactory
from trellis.core.backend import DictConfigBackend
from trellis.core.definition import validate_definition
from trellis.core.registry import CallableRegistry, reset_registry


@pytest.fixture
def module_factory(tmp_path):
    """
    Create an empty ModuleTestFactory instance.

    Modules are written to tmp_path and cleaned up after each test.

    Example:
        def test_order(module_factory):
            module_factory.add_module("acme/b")
            module_factory.add_module("acme/a", dependencies=["acme/b"])
            module_factory.create_builder().build("acme/a")
            assert module_factory.phase("init") == ["acme/b", "acme/a"]
    """
    return ModuleTestFactory(tmp_path)


@pytest.fixture
def make_def():
    """Build a validated ModuleDefinition from keyword arguments."""
    def _make(name, deps=None, **fields):
        raw = {"name": name, **fields}
        if deps:
            raw["dependencies"] = list(deps)
        return validate_definition(raw)
    return _make


@pytest.fixture
def registry():
    """Fresh, empty callable registry."""
    return CallableRegistry()


@pytest.fixture
def backend(registry, tmp_path):
    """Reference backend bound to the test registry."""
    return DictConfigBackend(registry, base_dir=tmp_path)


@pytest.fixture(autouse=True)
def reset_global_registry():
    """Reset the process-wide registry around each test."""
    reset_registry()
    yield
    reset_registry()
