"""
CANOPY TREE INVARIANTS - Checking the Store Against Its Own Rules

The store maintains its indexes incrementally. This module re-derives the
rules from scratch and reports any drift, which makes it the oracle for
tests and for callers that edit nodes in place.

Invariants Checked:
1. Id Index:       every key maps to a node carrying that id
2. Item List:      the flat list holds exactly the indexed nodes, once each
3. Children Index: each parent key lists exactly the nodes naming it as
                   parent, without duplicates or stale entries
4. Parent Refs:    every parent_id resolves (WARNING only: construction may
                   keep orphans on purpose)
5. Acyclicity:     no node is its own ancestor, checked on a rustworkx
                   PyDiGraph of parent -> child edges
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import rustworkx as rx

from core.schemas import NodeId

if TYPE_CHECKING:
    from core.tree_store import TreeStore


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # Index corruption
    WARNING = "warning"  # Allowed, but worth a look


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str
    severity: InvariantSeverity
    message: str
    nodes_involved: List[NodeId] = field(default_factory=list)


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]


CheckResult = Tuple[bool, Optional[InvariantViolation]]


# =============================================================================
# GRAPH VIEW
# =============================================================================

def build_parent_graph(store: "TreeStore") -> Tuple[rx.PyDiGraph, Dict[NodeId, int]]:
    """
    Build a rustworkx graph with one parent -> child edge per resolvable link.

    Node payloads are the store's TreeNode objects.

    Returns:
        (graph, id_to_index)
    """
    graph = rx.PyDiGraph()
    id_to_index: Dict[NodeId, int] = {}

    for node in store.get_all():
        id_to_index[node.id] = graph.add_node(node)

    for node in store.get_all():
        parent_idx = id_to_index.get(node.parent_id) if node.parent_id is not None else None
        if parent_idx is not None:
            graph.add_edge(parent_idx, id_to_index[node.id], None)

    return graph, id_to_index


# =============================================================================
# TREE INVARIANTS
# =============================================================================

class TreeInvariants:
    """
    Invariant validators over a TreeStore.

    All methods are static. They read the store's private indexes directly
    because the whole point is to compare them with each other.
    """

    @staticmethod
    def validate_id_index(store: "TreeStore") -> CheckResult:
        """Every id-index key maps to a node with that id."""
        bad = [key for key, node in store._node_map.items() if node.id != key]
        if bad:
            return False, InvariantViolation(
                invariant="id_index",
                severity=InvariantSeverity.ERROR,
                message=f"{len(bad)} id-index keys map to a node with a different id",
                nodes_involved=bad,
            )
        return True, None

    @staticmethod
    def validate_item_list(store: "TreeStore") -> CheckResult:
        """The flat list holds each indexed node exactly once, and nothing else."""
        seen = set()
        problems: List[NodeId] = []

        for node in store._items:
            if node.id in seen or store._node_map.get(node.id) is not node:
                problems.append(node.id)
            seen.add(node.id)

        problems.extend(key for key in store._node_map if key not in seen)

        if problems:
            return False, InvariantViolation(
                invariant="item_list",
                severity=InvariantSeverity.ERROR,
                message="Item list and id index disagree (ghosts, omissions or duplicates)",
                nodes_involved=problems,
            )
        return True, None

    @staticmethod
    def validate_children_index(store: "TreeStore") -> CheckResult:
        """Each children list is exactly the set of nodes naming that parent."""
        problems: List[NodeId] = []

        for parent_id, children in store._children_map.items():
            listed = set()
            for child in children:
                stale = (
                    child.parent_id != parent_id
                    or store._node_map.get(child.id) is not child
                    or child.id in listed
                )
                if stale:
                    problems.append(child.id)
                listed.add(child.id)

        for node in store._items:
            if node.parent_id is None:
                continue
            siblings = store._children_map.get(node.parent_id, [])
            if not any(child is node for child in siblings):
                problems.append(node.id)

        if problems:
            return False, InvariantViolation(
                invariant="children_index",
                severity=InvariantSeverity.ERROR,
                message=f"{len(problems)} stale, duplicate or missing children entries",
                nodes_involved=problems,
            )
        return True, None

    @staticmethod
    def validate_parent_references(store: "TreeStore") -> CheckResult:
        """Every parent_id names a node in the store."""
        orphans = [
            node.id for node in store._items
            if node.parent_id is not None and node.parent_id not in store._node_map
        ]
        if orphans:
            return False, InvariantViolation(
                invariant="parent_references",
                severity=InvariantSeverity.WARNING,
                message=f"{len(orphans)} nodes reference a parent that is not in the store",
                nodes_involved=orphans,
            )
        return True, None

    @staticmethod
    def validate_acyclicity(store: "TreeStore") -> CheckResult:
        """No node is its own ancestor."""
        graph, _ = build_parent_graph(store)
        if rx.is_directed_acyclic_graph(graph):
            return True, None

        return False, InvariantViolation(
            invariant="acyclicity",
            severity=InvariantSeverity.ERROR,
            message="Parent links form a cycle",
            nodes_involved=TreeInvariants._find_cycle_nodes(graph),
        )

    @staticmethod
    def _find_cycle_nodes(graph: rx.PyDiGraph) -> List[NodeId]:
        """Ids of nodes lying on a cycle (non-trivial SCCs and self-loops)."""
        cycle_nodes: List[NodeId] = []
        for component in rx.strongly_connected_components(graph):
            if len(component) > 1 or graph.has_edge(component[0], component[0]):
                cycle_nodes.extend(graph[idx].id for idx in component)
        return cycle_nodes

    @staticmethod
    def validate_all(store: "TreeStore") -> InvariantReport:
        """
        Run every check and return a report.

        The report is valid when there are no ERROR-level violations.
        """
        checks = [
            TreeInvariants.validate_id_index,
            TreeInvariants.validate_item_list,
            TreeInvariants.validate_children_index,
            TreeInvariants.validate_parent_references,
            TreeInvariants.validate_acyclicity,
        ]

        violations = []
        for check in checks:
            _, violation = check(store)
            if violation:
                violations.append(violation)

        graph, _ = build_parent_graph(store)
        metrics = {
            "node_count": graph.num_nodes(),
            "edge_count": graph.num_edges(),
            "root_count": len(store.get_roots()),
            "parent_count": len(store._children_map),
            "weakly_connected_components": rx.number_weakly_connected_components(graph),
        }

        valid = not any(v.severity == InvariantSeverity.ERROR for v in violations)
        return InvariantReport(valid=valid, violations=violations, metrics=metrics)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_store(store: "TreeStore") -> InvariantReport:
    """Convenience function to validate a store."""
    return TreeInvariants.validate_all(store)


def is_consistent(store: "TreeStore") -> bool:
    """True when the store has no ERROR-level violations."""
    return validate_store(store).valid
