"""
Tests for Module Graph: reachability, dependency checks and ordering

These tests validate:
- Every dependency precedes its dependent
- Ties are broken by input order, so builds are reproducible
- Missing dependencies and cycles are never silently dropped
- The reachable set is exactly the root's dependency closure
"""

import pytest

from trellis.core.errors import CircularDependency, DuplicateDefinition, MissingModule, ModuleNameNotFound
from trellis.core.graph import (
    build_graph, find_cycle, reachable, topological_sort, validate_dependencies,
)


def names(definitions):
    return [d.name for d in definitions]


class TestBuildGraph:
    """Graph construction from definitions."""

    def test_edges_point_at_dependencies(self, make_def):
        """Each node's successors are its dependencies."""
        graph = build_graph([make_def("acme/a", deps=["acme/b"]), make_def("acme/b")])

        assert graph.nodes == ["acme/a", "acme/b"]
        assert graph.successors("acme/a") == ("acme/b",)
        assert graph.successors("acme/b") == ()
        assert "acme/a" in graph
        assert len(graph) == 2

    def test_unknown_dependencies_kept(self, make_def):
        """Edges to missing modules are not dropped."""
        graph = build_graph([make_def("acme/a", deps=["acme/missing"])])
        assert graph.successors("acme/a") == ("acme/missing",)
        assert "acme/missing" not in graph


class TestValidateDependencies:
    """Completeness checks over a candidate set."""

    def test_complete_set(self, make_def):
        """No error when every dependency is present."""
        validate_dependencies([make_def("acme/a", deps=["acme/b"]), make_def("acme/b")])

    def test_missing_dependency(self, make_def):
        """MissingModule names the dependent and the missing names."""
        a = make_def("acme/a", deps=["acme/b", "acme/c", "acme/d"])

        with pytest.raises(MissingModule) as exc:
            validate_dependencies([a, make_def("acme/b")])

        assert exc.value.module_name == "acme/a"
        assert exc.value.module is a
        assert exc.value.missing == ["acme/c", "acme/d"]

    def test_conflicting_duplicates(self, make_def):
        """Duplicate names are checked too."""
        with pytest.raises(DuplicateDefinition):
            validate_dependencies([make_def("acme/a"), make_def("acme/a", deps=["acme/a"])])


class TestReachable:
    """Transitive dependency closure."""

    def test_includes_root(self, make_def):
        """The root is always reachable from itself."""
        root = make_def("acme/app")
        assert names(reachable([root], root)) == ["acme/app"]

    def test_transitive_closure(self, make_def):
        """Indirect dependencies are included, unrelated modules are not."""
        defs = [
            make_def("acme/app", deps=["acme/web"]),
            make_def("acme/web", deps=["acme/core"]),
            make_def("acme/core"),
            make_def("acme/unrelated", deps=["acme/core"]),
        ]

        result = reachable(defs, defs[0])

        assert names(result) == ["acme/app", "acme/web", "acme/core"]

    def test_from_inner_node(self, make_def):
        """Dependents of the root are not reachable."""
        defs = [make_def("acme/app", deps=["acme/core"]), make_def("acme/core")]
        assert names(reachable(defs, defs[1])) == ["acme/core"]

    def test_skips_missing(self, make_def):
        """Missing dependencies are left for sorting to report."""
        app = make_def("acme/app", deps=["acme/ghost"])
        assert names(reachable([app], app)) == ["acme/app"]

    def test_tolerates_cycles(self, make_def):
        """Traversal terminates on cyclic graphs."""
        defs = [make_def("acme/a", deps=["acme/b"]), make_def("acme/b", deps=["acme/a"])]
        assert names(reachable(defs, defs[0])) == ["acme/a", "acme/b"]

    def test_unknown_root(self, make_def):
        """A root outside the set is reported."""
        with pytest.raises(ModuleNameNotFound):
            reachable([make_def("acme/a")], make_def("acme/b"))


class TestTopologicalSort:
    """Dependency-first ordering."""

    def test_simple_chain(self, make_def):
        """{A deps:[B]}, {B} sorts to [B, A]."""
        defs = [make_def("acme/a", deps=["acme/b"]), make_def("acme/b")]
        assert names(topological_sort(defs)) == ["acme/b", "acme/a"]

    def test_every_dependency_first(self, make_def):
        """Dependencies precede dependents throughout a diamond."""
        defs = [
            make_def("acme/app", deps=["acme/web", "acme/db"]),
            make_def("acme/web", deps=["acme/core"]),
            make_def("acme/db", deps=["acme/core"]),
            make_def("acme/core"),
        ]

        ordered = names(topological_sort(defs))

        position = {name: i for i, name in enumerate(ordered)}
        for d in defs:
            for dep in d.dependencies:
                assert position[dep] < position[d.name]

    def test_ties_follow_input_order(self, make_def):
        """Unconstrained modules keep input order."""
        defs = [make_def("acme/z"), make_def("acme/m"), make_def("acme/a")]
        assert names(topological_sort(defs)) == ["acme/z", "acme/m", "acme/a"]

    def test_ready_modules_by_input_order(self, make_def):
        """A released dependent waits behind earlier ready modules."""
        defs = [
            make_def("acme/x"),
            make_def("acme/top", deps=["acme/base"]),
            make_def("acme/y"),
            make_def("acme/base"),
        ]
        assert names(topological_sort(defs)) == ["acme/x", "acme/y", "acme/base", "acme/top"]

    def test_deterministic(self, make_def):
        """Same input, same order."""
        def build():
            return [
                make_def("acme/app", deps=["acme/b", "acme/a"]),
                make_def("acme/a"),
                make_def("acme/b"),
            ]
        assert names(topological_sort(build())) == names(topological_sort(build()))

    def test_two_cycle(self, make_def):
        """{A deps:[B]}, {B deps:[A]} is circular."""
        defs = [make_def("acme/a", deps=["acme/b"]), make_def("acme/b", deps=["acme/a"])]

        with pytest.raises(CircularDependency) as exc:
            topological_sort(defs)

        assert sorted(exc.value.names) == ["acme/a", "acme/b"]
        assert exc.value.cycle[0] == exc.value.cycle[-1]

    def test_longer_cycle_behind_acyclic_part(self, make_def):
        """Cycles are found even when some modules sort fine."""
        defs = [
            make_def("acme/ok"),
            make_def("acme/a", deps=["acme/ok", "acme/c"]),
            make_def("acme/b", deps=["acme/a"]),
            make_def("acme/c", deps=["acme/b"]),
        ]

        with pytest.raises(CircularDependency) as exc:
            topological_sort(defs)

        assert "acme/ok" not in exc.value.names
        assert set(exc.value.cycle) == {"acme/a", "acme/b", "acme/c"}

    def test_self_dependency(self, make_def):
        """A module depending on itself is a cycle."""
        with pytest.raises(CircularDependency):
            topological_sort([make_def("acme/a", deps=["acme/a"])])

    def test_missing_before_cycle_check(self, make_def):
        """Missing dependencies are reported as MissingModule."""
        with pytest.raises(MissingModule):
            topological_sort([make_def("acme/a", deps=["acme/b"])])

    def test_reverse_is_configure_order(self, make_def):
        """Reversing the order puts dependents first."""
        defs = [make_def("acme/a", deps=["acme/b"]), make_def("acme/b")]
        assert names(reversed(topological_sort(defs))) == ["acme/a", "acme/b"]


class TestFindCycle:
    """Cycle reporting."""

    def test_acyclic(self, make_def):
        """No cycle, no path."""
        assert find_cycle(build_graph([make_def("acme/a", deps=["acme/b"]), make_def("acme/b")])) is None

    def test_closed_path(self, make_def):
        """The path starts and ends on the same module."""
        graph = build_graph([
            make_def("acme/a", deps=["acme/b"]),
            make_def("acme/b", deps=["acme/c"]),
            make_def("acme/c", deps=["acme/a"]),
        ])
        assert find_cycle(graph) == ["acme/a", "acme/b", "acme/c", "acme/a"]
