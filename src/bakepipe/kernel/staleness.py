"""Compute which nodes are stale relative to the last successful run.

Staleness definition (deterministic predicate):

Stage A (leaf staleness) - a file-backed node is leaf-stale if:
1. It has never been fingerprinted (NEW_FILE)
2. It was fingerprinted but no longer exists (DELETED)
3. Its checksum differs from the stored one (MODIFIED)

Stage B (propagation), evaluated over the Stage A flags only:
- A leaf-stale artifact makes its producing script stale (LINEAGE_BREAK): the
  file may have been edited by hand, so its producer must re-assert it.
  The artifact and everything downstream of it are stale.
- A leaf-stale script or external input makes itself and everything
  downstream stale.
- Anything reached only through propagation is UPSTREAM_STALE.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Set

from .fingerprint import FileState, FingerprintStore
from .graph import NodeKind, PipelineGraph

logger = logging.getLogger(__name__)


class StaleReason(str, Enum):
    NEW_FILE = "NEW_FILE"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    LINEAGE_BREAK = "LINEAGE_BREAK"
    UPSTREAM_STALE = "UPSTREAM_STALE"


_LEAF_REASONS = {
    FileState.NEW: StaleReason.NEW_FILE,
    FileState.MODIFIED: StaleReason.MODIFIED,
    FileState.DELETED: StaleReason.DELETED,
}

REASON_PRIORITY = {
    StaleReason.DELETED: 100,
    StaleReason.MODIFIED: 90,
    StaleReason.NEW_FILE: 80,
    StaleReason.LINEAGE_BREAK: 50,
    StaleReason.UPSTREAM_STALE: 10,
}


@dataclass
class StalenessResult:
    """Result of staleness analysis."""
    stale: frozenset[str]  # Every stale node path
    leaf_states: Dict[str, FileState]  # Stage A state of every node
    reasons: Dict[str, StaleReason] = field(default_factory=dict)  # For each stale node, the winning reason
    causes: Dict[str, str] = field(default_factory=dict)  # For each stale node, the leaf-stale node that triggered it

    def is_stale(self, path: str) -> bool:
        return path in self.stale

    def stale_scripts(self, order: Iterable[str]) -> List[str]:
        """Filter an execution order down to the scripts that must run."""
        return [script for script in order if script in self.stale]

    @property
    def fresh(self) -> frozenset[str]:
        return frozenset(path for path in self.leaf_states if path not in self.stale)


def compute_leaf_states(graph: PipelineGraph, store: FingerprintStore) -> Dict[str, FileState]:
    """Stage A: compare every file-backed node with the fingerprint store."""
    return {path: store.check(path) for path in graph.nodes}


def _mark_new(graph: PipelineGraph, start: str, marked: Set[str]) -> List[str]:
    """Add start and its forward descendants to marked; return the nodes newly added."""
    added = []
    stack = [start]
    while stack:
        current = stack.pop()
        if current in marked:
            continue
        marked.add(current)
        added.append(current)
        stack.extend(
            dependent for dependent in graph.get_dependents(current)
            if dependent not in marked
        )
    return added


def mark_reachable(graph: PipelineGraph, start: str, marked: Set[str]) -> Set[str]:
    """Add start and all of its forward descendants to marked and return it.

    Nodes already in marked are not walked again, so repeated calls from
    overlapping triggers stay linear overall.
    """
    _mark_new(graph, start, marked)
    return marked


def compute_staleness(graph: PipelineGraph, store: FingerprintStore) -> StalenessResult:
    """Compute the full stale set for a validated, acyclic graph."""
    leaf_states = compute_leaf_states(graph, store)
    reasons: Dict[str, StaleReason] = {}
    causes: Dict[str, str] = {}

    def _set_reason(path: str, reason: StaleReason, cause: str) -> None:
        current = reasons.get(path)
        if current is not None and REASON_PRIORITY[reason] <= REASON_PRIORITY[current]:
            return
        reasons[path] = reason
        causes[path] = cause

    # Producers of a changed artifact are stale without their descendants;
    # reached stays closed under descendants
    reached: Set[str] = set()
    lineage: Set[str] = set()
    for path, node in graph.nodes.items():
        state = leaf_states[path]
        if not state.is_stale:
            continue

        if node.kind is NodeKind.ARTIFACT:
            for producer in sorted(graph.get_dependencies(path)):
                if graph.nodes[producer].kind is NodeKind.SCRIPT:
                    lineage.add(producer)
                    _set_reason(producer, StaleReason.LINEAGE_BREAK, path)
        elif node.kind is NodeKind.SCRIPT or node.kind is NodeKind.EXTERNAL:
            pass
        else:
            raise ValueError(f"Unhandled node kind: {node.kind!r}")

        # The trigger keeps its leaf reason; nodes first reached from it are upstream-stale
        _set_reason(path, _LEAF_REASONS[state], path)
        added = _mark_new(graph, path, reached)
        for descendant in added:
            if descendant != path:
                _set_reason(descendant, StaleReason.UPSTREAM_STALE, path)
        logger.debug("%s '%s' is %s; %d node(s) newly marked stale", node.kind.value, path, state.value, len(added))

    return StalenessResult(
        stale=frozenset(reached | lineage),
        leaf_states=leaf_states,
        reasons=reasons,
        causes=causes,
    )
