"""
CANOPY ANALYTICS - Shape of the Forest

Read-only metrics over a TreeStore. These answer questions like:
- How deep does the forest go?
- Which subtree is the largest?
- Are there orphans (nodes whose parent is missing)?

All functions observe the store and never modify it.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

import polars as pl

from core.schemas import NodeId, TreeNode

if TYPE_CHECKING:
    from core.tree_store import TreeStore


# =============================================================================
# DATA CLASSES FOR RESULTS
# =============================================================================

@dataclass
class TreeHealthReport:
    """Overall shape metrics for a store."""
    total_nodes: int
    root_count: int
    leaf_count: int
    orphan_count: int
    max_depth: int
    largest_subtree_root: Optional[NodeId]
    largest_subtree_size: int


# =============================================================================
# DEPTH
# =============================================================================

def _tops(store: "TreeStore") -> List[TreeNode]:
    """Roots plus orphans: every node with no parent in the store."""
    return [
        node for node in store.get_all()
        if node.parent_id is None or not store.has_item(node.parent_id)
    ]


def compute_depths(store: "TreeStore") -> Dict[NodeId, int]:
    """
    Depth of every node: 0 for roots and orphans, parent depth + 1 otherwise.

    Computed top-down from the roots in one breadth-first pass per root;
    orphan subtrees are measured from the orphan.
    """
    depths: Dict[NodeId, int] = {}
    for top in _tops(store):
        depths[top.id] = 0
        for node in store.get_all_children(top.id):
            depths[node.id] = depths[node.parent_id] + 1
    return depths


# =============================================================================
# HEALTH
# =============================================================================

def compute_tree_health(store: "TreeStore") -> TreeHealthReport:
    """Compute node, root, leaf and orphan counts plus depth and subtree size."""
    nodes = store.get_all()
    depths = compute_depths(store)

    largest_root: Optional[NodeId] = None
    largest_size = 0
    # Orphan subtrees compete with root subtrees, as in compute_depths
    for top in _tops(store):
        size = len(store.get_all_children(top.id)) + 1
        if size > largest_size:
            largest_root, largest_size = top.id, size

    return TreeHealthReport(
        total_nodes=len(nodes),
        root_count=len(store.get_roots()),
        leaf_count=sum(1 for node in nodes if not store.get_children(node.id)),
        orphan_count=sum(
            1 for node in nodes
            if node.parent_id is not None and not store.has_item(node.parent_id)
        ),
        max_depth=max(depths.values(), default=-1),
        largest_subtree_root=largest_root,
        largest_subtree_size=largest_size,
    )


# =============================================================================
# DATAFRAME VIEW
# =============================================================================

def to_polars_nodes(store: "TreeStore") -> pl.DataFrame:
    """
    One row per node, in insertion order.

    Ids are rendered with str() so integer and string ids share a column.
    Nodes caught in a cycle have a null depth.
    """
    depths = compute_depths(store)
    nodes = store.get_all()
    return pl.DataFrame(
        {
            "id": [str(node.id) for node in nodes],
            "parent_id": [
                None if node.parent_id is None else str(node.parent_id) for node in nodes
            ],
            "label": [node.label for node in nodes],
            "depth": [depths.get(node.id) for node in nodes],
            "child_count": [len(store.get_children(node.id)) for node in nodes],
        },
        schema={
            "id": pl.Utf8,
            "parent_id": pl.Utf8,
            "label": pl.Utf8,
            "depth": pl.Int64,
            "child_count": pl.Int64,
        },
    )
