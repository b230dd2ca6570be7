"""Build the dependency graph of scripts and the files they read and write."""

import copy
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Set

from .errors import CycleDetectedError, UnknownNodeError
from .records import ScriptRecord

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """What a graph node stands for."""
    SCRIPT = "script"
    ARTIFACT = "artifact"  # Output of some script (intermediate or final)
    EXTERNAL = "external"  # Declared only via external_in, never produced


@dataclass(frozen=True)
class Node:
    path: str
    kind: NodeKind
    stale: bool = False


@dataclass(frozen=True, order=True)
class Edge:
    """source must be available before target can run."""
    source: str
    target: str


class PipelineGraph:
    """Dependency graph over scripts, artifacts and external inputs.

    Nodes keep their registration order. Adjacency is stored in both directions:
    predecessors[node] is what node needs, successors[node] is what needs node.
    """

    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.successors: Dict[str, Set[str]] = defaultdict(set)
        self.predecessors: Dict[str, Set[str]] = defaultdict(set)
        self.records: Dict[str, ScriptRecord] = {}
        # Declared output path -> producing scripts, in declaration order
        self.producers: Dict[str, List[str]] = {}
        # Plain input path with no producer -> scripts that reference it
        self.unresolved_inputs: Dict[str, List[str]] = {}

    def add_node(self, path: str, kind: NodeKind) -> Node:
        node = self.nodes.get(path)
        if node is None:
            node = Node(path=path, kind=kind)
            self.nodes[path] = node
        return node

    def add_edge(self, source: str, target: str) -> None:
        self.successors[source].add(target)
        self.predecessors[target].add(source)

    def __contains__(self, path: str) -> bool:
        return path in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def edges(self) -> List[Edge]:
        """All edges, sorted for deterministic output."""
        return sorted(
            Edge(source, target)
            for source, targets in self.successors.items()
            for target in targets
        )

    def kind_of(self, path: str) -> NodeKind:
        if path not in self.nodes:
            raise UnknownNodeError(path)
        return self.nodes[path].kind

    def nodes_of_kind(self, kind: NodeKind) -> List[str]:
        """Paths of all nodes of the given kind, in registration order."""
        return [path for path, node in self.nodes.items() if node.kind is kind]

    @property
    def scripts(self) -> List[str]:
        return self.nodes_of_kind(NodeKind.SCRIPT)

    @property
    def artifacts(self) -> List[str]:
        return self.nodes_of_kind(NodeKind.ARTIFACT)

    @property
    def externals(self) -> List[str]:
        return self.nodes_of_kind(NodeKind.EXTERNAL)

    def get_dependencies(self, node: str) -> Set[str]:
        """Get direct dependencies of a node."""
        return self.predecessors.get(node, set())

    def get_dependents(self, node: str) -> Set[str]:
        """Get nodes that depend on this node (reverse edges)."""
        return self.successors.get(node, set())

    def get_producers(self, artifact: str) -> List[str]:
        """Scripts whose declared outputs include artifact."""
        return list(self.producers.get(artifact, []))

    def get_transitive_dependents(self, node: str) -> Set[str]:
        """Get all transitive dependents (what depends on this node, recursively)."""
        visited = set()
        stack = [node]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            for dependent in self.get_dependents(current):
                if dependent not in visited:
                    stack.append(dependent)

        visited.discard(node)  # Don't include the node itself
        return visited

    def get_dependency_path(self, from_node: str, to_node: str) -> List[str] | None:
        """Get a dependency path from from_node to to_node, or None if no path exists."""
        if from_node == to_node:
            return [from_node]

        queue = deque([(from_node, [from_node])])
        visited = {from_node}

        while queue:
            current, path = queue.popleft()

            for dependent in sorted(self.get_dependents(current)):
                if dependent == to_node:
                    return path + [dependent]

                if dependent not in visited:
                    visited.add(dependent)
                    queue.append((dependent, path + [dependent]))

        return None

    def with_staleness(self, stale: Iterable[str]) -> "PipelineGraph":
        """Return a copy of the graph whose nodes carry the given stale flags."""
        stale_set = set(stale)
        annotated = copy.copy(self)
        annotated.nodes = {
            path: replace(node, stale=path in stale_set)
            for path, node in self.nodes.items()
        }
        return annotated


def find_descendants(graph: PipelineGraph, node: str) -> List[str]:
    """All nodes reachable from node by following edges, sorted. Excludes node itself."""
    if node not in graph:
        raise UnknownNodeError(node)
    return sorted(graph.get_transitive_dependents(node))


def build_graph(records: Iterable[ScriptRecord]) -> PipelineGraph:
    """Build the graph from scanner records without validating it.

    Kinds are resolved in two passes because a script may consume a file before
    the script producing it has been seen. A plain input that no script outputs is
    not turned into a node; it is kept in graph.unresolved_inputs for validation.
    """
    records = list(records)
    graph = PipelineGraph()

    # Pass 1: collect what every path is declared as
    script_ids = {record.script for record in records}
    output_paths: Set[str] = set()
    for record in records:
        graph.records[record.script] = record
        output_paths.update(record.outputs)
        for output in record.outputs:
            graph.producers.setdefault(output, []).append(record.script)

    def resolve(path: str, external: bool) -> NodeKind | None:
        if path in script_ids:
            return NodeKind.SCRIPT if (external or path in output_paths) else None
        if path in output_paths:
            return NodeKind.ARTIFACT
        return NodeKind.EXTERNAL if external else None

    # Pass 2: nodes and edges
    for record in records:
        script = record.script
        graph.add_node(script, NodeKind.SCRIPT)

        for output in record.outputs:
            kind = NodeKind.SCRIPT if output in script_ids else NodeKind.ARTIFACT
            graph.add_node(output, kind)
            graph.add_edge(script, output)

        for inp in record.inputs:
            kind = resolve(inp, external=False)
            if kind is None:
                graph.unresolved_inputs.setdefault(inp, []).append(script)
                continue
            graph.add_node(inp, kind)
            graph.add_edge(inp, script)

        for ext in record.externals:
            kind = resolve(ext, external=True)
            graph.add_node(ext, kind)
            graph.add_edge(ext, script)

    logger.debug(
        "Built graph: %d scripts, %d artifacts, %d externals, %d edges",
        len(graph.scripts), len(graph.artifacts), len(graph.externals), sum(len(t) for t in graph.successors.values()),
    )
    return graph


_UNVISITED = 0
_VISITING = 1  # On the current DFS path
_VISITED = 2


def detect_cycle(graph: PipelineGraph) -> None:
    """Raise CycleDetectedError if the graph contains a directed cycle.

    Three-colour depth-first search with an explicit stack. Every node is used as
    a start point (in registration order) so disconnected components are covered.
    """
    state = {node: _UNVISITED for node in graph.nodes}

    for start in graph.nodes:
        if state[start] != _UNVISITED:
            continue

        state[start] = _VISITING
        path = [start]
        stack = [iter(sorted(graph.get_dependents(start)))]

        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                state[path.pop()] = _VISITED
                stack.pop()
                continue

            if state[neighbor] == _VISITING:
                # Back edge: the cycle runs from neighbor down the current path
                cycle = path[path.index(neighbor):]
                raise CycleDetectedError(neighbor, cycle)

            if state[neighbor] == _UNVISITED:
                state[neighbor] = _VISITING
                path.append(neighbor)
                stack.append(iter(sorted(graph.get_dependents(neighbor))))


def topological_sort(graph: PipelineGraph, scripts_only: bool = False) -> List[str]:
    """Order nodes so that every edge points forward (Kahn's algorithm).

    Ties between nodes that become ready at the same time are broken
    lexicographically: the initial zero in-degree nodes are queued in sorted
    order, and so are the successors released by each dequeued node.

    With scripts_only=True only Script nodes are returned, in the same relative
    order; this is the execution order.
    """
    if not graph.nodes:
        return []

    in_degree = {node: len(graph.get_dependencies(node)) for node in graph.nodes}
    queue = deque(sorted(node for node, degree in in_degree.items() if degree == 0))
    result: List[str] = []

    while queue:
        current = queue.popleft()
        result.append(current)
        for neighbor in sorted(graph.get_dependents(current)):
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(result) != len(graph.nodes):
        unsorted = sorted(set(graph.nodes) - set(result))
        raise CycleDetectedError(unsorted[0], unsorted=unsorted)

    if scripts_only:
        return [node for node in result if graph.nodes[node].kind is NodeKind.SCRIPT]
    return result


def build_pipeline(records: Iterable[ScriptRecord]) -> PipelineGraph:
    """Build, validate and cycle-check the graph. Raises on any configuration error."""
    from .validation import validate_graph

    graph = build_graph(records)
    validate_graph(graph)
    detect_cycle(graph)
    return graph
