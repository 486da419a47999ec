"""
Module Graph: dependency resolution over module definitions

Pure functions over a list of definitions:
- build_graph: name -> dependency names
- validate_dependencies: no duplicate names, no missing dependencies
- reachable: transitive dependency closure of a root module
- topological_sort: dependency-first order, or CircularDependency

Ordering is deterministic: when several modules are ready at once, the one
that comes first in the input (discovery order) is emitted first.
"""

import heapq
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .definition import ModuleDefinition
from .discovery import check_duplicates
from .errors import CircularDependency, MissingModule, ModuleNameNotFound


@dataclass
class ModuleGraph:
    """Directed graph of module names; edges point at dependencies."""
    nodes: List[str] = field(default_factory=list)
    edges: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def successors(self, name: str) -> Tuple[str, ...]:
        """Dependency names of a module (empty if unknown)."""
        return self.edges.get(name, ())

    def __contains__(self, name: str) -> bool:
        return name in self.edges

    def __len__(self) -> int:
        return len(self.nodes)


def build_graph(definitions: Sequence[ModuleDefinition]) -> ModuleGraph:
    """Convert module definitions to a graph, keeping input order."""
    graph = ModuleGraph()
    for definition in definitions:
        if definition.name not in graph.edges:
            graph.nodes.append(definition.name)
        graph.edges[definition.name] = tuple(definition.dependencies)
    return graph


def validate_dependencies(definitions: Sequence[ModuleDefinition]) -> None:
    """
    Check that names are unique and every dependency is present.

    Raises:
        DuplicateDefinition: Two different definitions share a name
        MissingModule: A dependency is not among the definitions
    """
    check_duplicates(definitions)
    names = {d.name for d in definitions}
    for definition in definitions:
        missing = set(definition.dependencies) - names
        if missing:
            raise MissingModule(definition.name, definition, missing)


def reachable(
    all_definitions: Sequence[ModuleDefinition],
    root: ModuleDefinition
) -> List[ModuleDefinition]:
    """
    Return the definitions reachable from root, root included.

    Dependencies absent from `all_definitions` are skipped here; they are
    reported by validate_dependencies during sorting.

    Raises:
        ModuleNameNotFound: If root is not among the definitions
    """
    graph = build_graph(all_definitions)
    if root.name not in graph:
        raise ModuleNameNotFound(root.name)

    visited = set()
    stack = [root.name]
    while stack:
        current = stack.pop()
        if current in visited or current not in graph:
            continue
        visited.add(current)
        stack.extend(reversed(graph.successors(current)))

    return [d for d in all_definitions if d.name in visited]


def topological_sort(definitions: Sequence[ModuleDefinition]) -> List[ModuleDefinition]:
    """
    Order definitions so every dependency comes before its dependents.

    Returns:
        Definitions in dependency order (leaves first)

    Raises:
        DuplicateDefinition: Two different definitions share a name
        MissingModule: A dependency is not among the definitions
        CircularDependency: The dependency graph has a cycle
    """
    validate_dependencies(definitions)
    definitions = check_duplicates(definitions)

    index = {d.name: i for i, d in enumerate(definitions)}
    pending = {d.name: len(d.dependencies) for d in definitions}
    dependents: Dict[str, List[str]] = {d.name: [] for d in definitions}
    for d in definitions:
        for dep in d.dependencies:
            dependents[dep].append(d.name)

    ready = [index[name] for name, count in pending.items() if count == 0]
    heapq.heapify(ready)

    ordered: List[ModuleDefinition] = []
    while ready:
        definition = definitions[heapq.heappop(ready)]
        ordered.append(definition)
        for dependent in dependents[definition.name]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, index[dependent])

    if len(ordered) != len(definitions):
        stuck = [d for d in definitions if pending[d.name] > 0]
        raise CircularDependency(stuck, find_cycle(build_graph(stuck)) or ())

    return ordered


def find_cycle(graph: ModuleGraph) -> Optional[List[str]]:
    """
    Find one cycle in the graph, as a closed path of names.

    Returns:
        e.g. ["a/x", "a/y", "a/x"], or None if the graph is acyclic
    """
    state: Dict[str, int] = {}  # 1 = on path, 2 = done
    for start in graph.nodes:
        if start in state:
            continue
        path = [start]
        iterators = [iter(graph.successors(start))]
        state[start] = 1
        while iterators:
            nxt = next(iterators[-1], None)
            if nxt is None:
                state[path.pop()] = 2
                iterators.pop()
                continue
            if nxt not in graph:
                continue
            if state.get(nxt) == 1:
                return path[path.index(nxt):] + [nxt]
            if nxt not in state:
                state[nxt] = 1
                path.append(nxt)
                iterators.append(iter(graph.successors(nxt)))
    return None
