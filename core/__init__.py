"""
CANOPY CORE - Central exports for the tree store.

This module provides access to:
- The store itself (TreeStore) and its exception hierarchy
- Node records (TreeNode, NodeUpdate) and mutation results
- The breadth-first work queue (FifoQueue)
"""

from core.queue import FifoQueue
from core.schemas import (
    MutationResult,
    NodeId,
    NodeUpdate,
    RejectionReason,
    TreeNode,
)
from core.tree_store import (
    TreeStore,
    TreeStoreError,
    DuplicateNodeError,
    ParentNotFoundError,
    NodeNotFoundError,
    CircularReferenceError,
)

__all__ = [
    # Queue
    "FifoQueue",
    # Records
    "MutationResult",
    "NodeId",
    "NodeUpdate",
    "RejectionReason",
    "TreeNode",
    # Store
    "TreeStore",
    "TreeStoreError",
    "DuplicateNodeError",
    "ParentNotFoundError",
    "NodeNotFoundError",
    "CircularReferenceError",
]
