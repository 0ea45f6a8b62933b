"""Dependency graph builder: dependency maps, ordering and slicing.

All functions are pure; they read the caller's nodes and edges and return new
structures. The dependency map is rebuilt for every execution.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, auto

from flowdag.kernel.domain.pipeline import Edge, Node
from flowdag.kernel.exceptions import (
    CircularDependencyError,
    DuplicateNodeError,
    MissingNodeError,
    ResourceNotFoundError,
)

DependencyMap = dict[str, tuple[str, ...]]


class Color(Enum):
    """Colors for DFS cycle detection algorithm."""

    WHITE = auto()  # Unvisited
    GRAY = auto()  # In the recursion stack
    BLACK = auto()  # Appended to the order


@dataclass(frozen=True, slots=True)
class GraphSlice:
    """Subset of a graph needed to produce a set of target nodes."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]


def build_dependency_map(nodes: Sequence[Node], edges: Iterable[Edge]) -> DependencyMap:
    """Map every node id to the ids it directly depends on.

    Nodes without incoming edges map to an empty tuple. Parallel edges between
    the same pair collapse to one dependency; otherwise edge order is kept.

    Raises
    ------
    DuplicateNodeError
        If two nodes share an id
    MissingNodeError
        If an edge references a node id that is not in ``nodes``

    Examples
    --------
    >>> a, b = Node(id="a", type="csv_input"), Node(id="b", type="filter")
    >>> build_dependency_map([a, b], [Edge(id="e1", source="a", target="b")])
    {'a': (), 'b': ('a',)}
    """
    deps: dict[str, dict[str, None]] = {}
    for node in nodes:
        if node.id in deps:
            raise DuplicateNodeError(node.id)
        deps[node.id] = {}

    for edge in edges:
        if edge.source not in deps:
            raise MissingNodeError(edge.id, edge.source)
        if edge.target not in deps:
            raise MissingNodeError(edge.id, edge.target)
        deps[edge.target][edge.source] = None

    return {node_id: tuple(sources) for node_id, sources in deps.items()}


def topological_sort(
    nodes: Sequence[Node], dependencies: Mapping[str, Sequence[str]]
) -> list[str]:
    """Order node ids so every dependency precedes its dependents.

    Depth-first traversal over ``nodes`` in input order: a node's dependencies
    are appended before the node itself. Independent nodes keep their input
    order, so the result is deterministic.

    Raises
    ------
    CircularDependencyError
        When the traversal re-enters a node that is still in progress. The
        error names that node and carries the cycle path.

    Examples
    --------
    >>> nodes = [Node(id=i, type="process") for i in ("c", "b", "a")]
    >>> topological_sort(nodes, {"a": (), "b": ("a",), "c": ("b",)})
    ['a', 'b', 'c']
    """
    colors = {node.id: Color.WHITE for node in nodes}
    order: list[str] = []
    path: list[str] = []

    def visit(node_id: str) -> None:
        if colors[node_id] is Color.BLACK:
            return
        if colors[node_id] is Color.GRAY:
            cycle = path[path.index(node_id) :] + [node_id]
            raise CircularDependencyError(node_id, cycle)

        colors[node_id] = Color.GRAY
        path.append(node_id)
        for dep in dependencies.get(node_id, ()):
            if dep in colors:
                visit(dep)
        path.pop()
        colors[node_id] = Color.BLACK
        order.append(node_id)

    for node in nodes:
        visit(node.id)

    return order


def execution_waves(
    nodes: Sequence[Node], dependencies: Mapping[str, Sequence[str]]
) -> list[list[str]]:
    """Group node ids into waves of mutually independent nodes.

    Wave ``n`` holds every node whose dependencies all sit in earlier waves.
    Within a wave, ids keep input order.

    Raises
    ------
    CircularDependencyError
        If some nodes can never become ready

    Examples
    --------
    Diamond A -> B, A -> C, B -> D, C -> D::

        [["A"], ["B", "C"], ["D"]]
    """
    remaining = [node.id for node in nodes]
    known = set(remaining)
    done: set[str] = set()
    waves: list[list[str]] = []

    while remaining:
        wave = [
            n
            for n in remaining
            if all(d in done or d not in known for d in dependencies.get(n, ()))
        ]
        if not wave:
            # Re-run the DFS to name a node on the cycle
            stuck = [node for node in nodes if node.id in remaining]
            topological_sort(stuck, dependencies)
            raise CircularDependencyError(remaining[0], remaining)
        waves.append(wave)
        done.update(wave)
        remaining = [n for n in remaining if n not in done]

    return waves


def get_dependents(node_id: str, dependencies: Mapping[str, Sequence[str]]) -> list[str]:
    """Ids of nodes that directly depend on ``node_id``."""
    return [target for target, deps in dependencies.items() if node_id in deps]


def get_pipeline_slice(
    nodes: Sequence[Node], edges: Sequence[Edge], target_node_ids: Iterable[str]
) -> GraphSlice:
    """Minimal node/edge subset needed to produce ``target_node_ids``.

    Walks dependencies transitively from each target. Included nodes keep input
    order; an edge is kept only when both endpoints are included. Slicing a
    slice by the same targets returns the same slice.

    Raises
    ------
    ResourceNotFoundError
        If a target id is not in ``nodes``
    """
    dependencies = build_dependency_map(nodes, edges)

    included: set[str] = set()
    stack: list[str] = []
    for target in target_node_ids:
        if target not in dependencies:
            raise ResourceNotFoundError("node", target, list(dependencies))
        stack.append(target)

    while stack:
        current = stack.pop()
        if current in included:
            continue
        included.add(current)
        stack.extend(dep for dep in dependencies[current] if dep not in included)

    return GraphSlice(
        nodes=tuple(node for node in nodes if node.id in included),
        edges=tuple(
            edge for edge in edges if edge.source in included and edge.target in included
        ),
    )
