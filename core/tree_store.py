"""
CANOPY TREE STORE - The Forest in Memory

This is the heart of the package. It keeps a forest of labeled nodes in
three synchronized structures:
- _items: the flat node list, in insertion order
- _node_map: Dict[NodeId, TreeNode]           (id -> node, O(1) lookup)
- _children_map: Dict[NodeId, List[TreeNode]] (parent id -> children)

Every mutating call moves the triple from one consistent state to the next
synchronously, or refuses and leaves it untouched.

Usage:
    store = TreeStore([
        TreeNode(id=1, label="Root"),
        TreeNode(id=2, parent_id=1, label="Child"),
    ])

    store.get_all_children(1)     # breadth-first descendants
    store.get_all_parents(2)      # [node 2, node 1]

    result = store.update_item(NodeUpdate(id=2, parent_id=None))
    if not result:
        print(result.reason, result.message)

Error Model:
    Rejected mutations log a warning, record a REJECTED mutation event and
    return a falsy MutationResult. With StoreConfig(strict=True) the same
    rejections raise a TreeStoreError subclass instead.

Aliasing:
    Queries return the store's own TreeNode objects, not copies.

Thread Safety:
    NOT thread-safe. Mutations update the indexes in several steps; use
    external locking if the store is shared.
"""
import copy
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Union

import msgspec

from core.queue import FifoQueue
from core.schemas import MutationResult, NodeId, NodeUpdate, RejectionReason, TreeNode
from infrastructure.config import StoreConfig
from infrastructure.logger import LoggerConfig, MutationLogger

logger = logging.getLogger(__name__)

NodeInput = Union[TreeNode, Mapping[str, Any]]
UpdateInput = Union[NodeUpdate, TreeNode, Mapping[str, Any]]


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class TreeStoreError(Exception):
    """Base exception for rejected tree mutations (raised in strict mode)."""
    reason: RejectionReason

    def __init__(self, message: str, node_id: Optional[NodeId] = None):
        self.node_id = node_id
        super().__init__(message)


class DuplicateNodeError(TreeStoreError):
    """Raised when inserting a node whose id already exists."""
    reason = RejectionReason.DUPLICATE_ID

    def __init__(self, node_id: NodeId):
        super().__init__(f"Item with id {node_id} already exists", node_id)


class ParentNotFoundError(TreeStoreError):
    """Raised when a referenced parent id is not in the store."""
    reason = RejectionReason.MISSING_PARENT

    def __init__(self, parent_id: NodeId, node_id: Optional[NodeId] = None):
        self.parent_id = parent_id
        super().__init__(f"Parent item with id {parent_id} does not exist", node_id)


class NodeNotFoundError(TreeStoreError):
    """Raised when removing or updating an id that is not in the store."""
    reason = RejectionReason.UNKNOWN_TARGET

    def __init__(self, node_id: NodeId):
        super().__init__(f"Item with id {node_id} does not exist", node_id)


class CircularReferenceError(TreeStoreError):
    """Raised when a move would make a node its own ancestor."""
    reason = RejectionReason.CIRCULAR_REFERENCE

    def __init__(self, node_id: NodeId, parent_id: Optional[NodeId]):
        self.parent_id = parent_id
        super().__init__(
            f"Circular reference detected: cannot place {node_id} under {parent_id}",
            node_id,
        )


# =============================================================================
# TREE STORE
# =============================================================================

class TreeStore:
    """
    In-memory forest with O(1) id lookup and a parent -> children index.

    Construction copies the input nodes, so the caller's list and node
    objects stay independent of the store. Nodes inserted later through
    add_item() are owned by the store as-is.
    """

    def __init__(
        self,
        initial_items: Iterable[NodeInput] = (),
        config: Optional[StoreConfig] = None,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        """
        Build a store and both indexes in one pass.

        Args:
            initial_items: TreeNodes or plain mappings (see TreeNode.from_mapping).
            config: Store behaviour. Defaults to StoreConfig().
            mutation_logger: Where mutation events go. Defaults to a private
                             logger sized from the config.

        Raises:
            DuplicateNodeError / ParentNotFoundError / CircularReferenceError:
                Only in strict mode, for input the store would otherwise drop.
        """
        self.config = config or StoreConfig()
        if mutation_logger is None:
            mutation_logger = MutationLogger(
                LoggerConfig(
                    enabled=self.config.log_mutations,
                    buffer_size=self.config.event_buffer_size,
                )
            )
        self._mutation_log = mutation_logger

        self._items: List[TreeNode] = []
        self._node_map: Dict[NodeId, TreeNode] = {}
        self._children_map: Dict[NodeId, List[TreeNode]] = {}

        nodes = [copy.deepcopy(self._coerce(item)) for item in initial_items]
        self._build_index(nodes)

    @staticmethod
    def _coerce(item: NodeInput) -> TreeNode:
        if isinstance(item, TreeNode):
            return item
        if isinstance(item, Mapping):
            return TreeNode.from_mapping(item)
        raise TypeError(f"Expected TreeNode or mapping, got {type(item).__name__}")

    def _build_index(self, nodes: List[TreeNode]) -> None:
        unreachable = self._find_unrooted(nodes) if self.config.validate_on_build else {}

        for node in nodes:
            if node.id in self._node_map:
                self._reject(DuplicateNodeError(node.id))
                continue

            if node.id in unreachable:
                self._reject(unreachable[node.id])
                continue

            self._items.append(node)
            self._node_map[node.id] = node
            if node.parent_id is not None:
                self._attach(node)

        logger.debug(f"Indexed {len(self._items)} nodes, {len(self._children_map)} parents")

    @staticmethod
    def _find_unrooted(nodes: List[TreeNode]) -> Dict[NodeId, TreeStoreError]:
        """
        Find input nodes whose ancestor chain never reaches a root.

        A chain ending at an unknown id is a missing parent; a chain that
        revisits a node is a cycle. Only the first occurrence of an id counts.
        """
        by_id: Dict[NodeId, TreeNode] = {}
        for node in nodes:
            by_id.setdefault(node.id, node)

        verdicts: Dict[NodeId, Optional[RejectionReason]] = {}
        for start_id in by_id:
            chain: List[NodeId] = []
            on_chain: Set[NodeId] = set()
            current: Optional[NodeId] = start_id
            verdict: Optional[RejectionReason] = None

            while current is not None:
                if current in verdicts:
                    verdict = verdicts[current]
                    break
                if current in on_chain:
                    verdict = RejectionReason.CIRCULAR_REFERENCE
                    break
                node = by_id.get(current)
                if node is None:
                    verdict = RejectionReason.MISSING_PARENT
                    break
                chain.append(current)
                on_chain.add(current)
                current = node.parent_id

            for node_id in chain:
                verdicts[node_id] = verdict

        errors: Dict[NodeId, TreeStoreError] = {}
        for node_id, verdict in verdicts.items():
            parent_id = by_id[node_id].parent_id
            if verdict is RejectionReason.MISSING_PARENT:
                errors[node_id] = ParentNotFoundError(parent_id, node_id)
            elif verdict is RejectionReason.CIRCULAR_REFERENCE:
                errors[node_id] = CircularReferenceError(node_id, parent_id)
        return errors

    # =========================================================================
    # INDEX MAINTENANCE
    # =========================================================================

    def _attach(self, node: TreeNode) -> None:
        """Append node to its parent's children list, creating it on first use."""
        self._children_map.setdefault(node.parent_id, []).append(node)

    def remove_item_from_children(self, parent_id: Optional[NodeId], node_id: NodeId) -> None:
        """
        Remove one entry from one parent's children list.

        Silently does nothing when the parent has no children list or the
        child is not in it. Empty lists are dropped from the index.
        """
        children = self._children_map.get(parent_id)
        if not children:
            return
        for i, child in enumerate(children):
            if child.id == node_id:
                del children[i]
                break
        if not children:
            del self._children_map[parent_id]

    def _reject(self, error: TreeStoreError) -> MutationResult:
        message = str(error)
        logger.warning(message)
        self._mutation_log.log_rejected(error.node_id, error.reason.value, message)
        if self.config.strict:
            raise error
        return MutationResult.rejected(error.reason, message, error.node_id)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_all(self) -> List[TreeNode]:
        """All nodes in insertion order (not tree order)."""
        return list(self._items)

    def get_item(self, node_id: NodeId) -> Optional[TreeNode]:
        return self._node_map.get(node_id)

    def has_item(self, node_id: NodeId) -> bool:
        return node_id in self._node_map

    def get_children(self, node_id: Optional[NodeId]) -> List[TreeNode]:
        """Direct children in attach order. Empty for leaves, unknown ids and None."""
        return list(self._children_map.get(node_id, ()))

    def get_all_children(self, node_id: NodeId) -> List[TreeNode]:
        """
        All descendants of node_id, breadth-first.

        Level by level, and within a level in attach order. Empty for leaves
        and unknown ids.
        """
        result: List[TreeNode] = []
        pending = FifoQueue(self._children_map.get(node_id, ()))
        seen: Set[NodeId] = {node_id}

        while not pending.is_empty():
            current = pending.dequeue()
            # Cycles can only come from unvalidated construction input
            if current is None or current.id in seen:
                continue
            seen.add(current.id)
            result.append(current)

            children = self._children_map.get(current.id)
            if children:
                pending.enqueue_many(children)

        return result

    def get_parent(self, node_id: NodeId) -> Optional[TreeNode]:
        """Parent node, or None for roots, orphans and unknown ids."""
        node = self._node_map.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self._node_map.get(node.parent_id)

    def get_all_parents(self, node_id: NodeId) -> List[TreeNode]:
        """
        Ancestor chain starting with the node itself and ending at a root.

        Returns [] only when node_id is unknown.
        """
        node = self._node_map.get(node_id)
        if node is None:
            return []

        result = [node]
        seen = {node.id}
        parent = self.get_parent(node.id)
        while parent is not None and parent.id not in seen:
            result.append(parent)
            seen.add(parent.id)
            parent = self.get_parent(parent.id)
        return result

    def get_roots(self) -> List[TreeNode]:
        """Nodes with parent_id None, insertion order."""
        return [node for node in self._items if node.parent_id is None]

    def get_depth(self, node_id: NodeId) -> int:
        """Distance from the top of the node's ancestor chain; -1 if unknown."""
        return len(self.get_all_parents(node_id)) - 1

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(self, item: NodeInput) -> MutationResult:
        """
        Insert a node. The store takes ownership of the object.

        Rejects:
            DuplicateId if the id exists; MissingParent if parent_id is set
            and unknown.
        """
        node = self._coerce(item)

        if node.id in self._node_map:
            return self._reject(DuplicateNodeError(node.id))

        if node.parent_id is not None and node.parent_id not in self._node_map:
            return self._reject(ParentNotFoundError(node.parent_id, node.id))

        self._items.append(node)
        self._node_map[node.id] = node
        if node.parent_id is not None:
            self._attach(node)

        self._mutation_log.log_node_created(node.id, node.parent_id)
        return MutationResult.success(node.id)

    def remove_item(self, node_id: NodeId) -> MutationResult:
        """
        Remove a node together with its whole subtree.

        Rejects:
            UnknownTarget if node_id is not in the store.
        """
        node = self._node_map.get(node_id)
        if node is None:
            return self._reject(NodeNotFoundError(node_id))

        descendants = self.get_all_children(node_id)
        doomed = {node_id}
        doomed.update(child.id for child in descendants)

        self._items = [item for item in self._items if item.id not in doomed]
        self.remove_item_from_children(node.parent_id, node_id)
        for doomed_id in doomed:
            del self._node_map[doomed_id]
            self._children_map.pop(doomed_id, None)

        self._mutation_log.log_node_deleted(node_id, node.parent_id, len(descendants))
        return MutationResult.success(node_id)

    def update_item(self, update: UpdateInput) -> MutationResult:
        """
        Merge fields onto an existing node in place, moving it if parent_id changes.

        A full TreeNode counts as supplying every field. A plain mapping is a
        partial update (see NodeUpdate.from_mapping). The node object keeps
        its identity. A move appends the node at the end of the new parent's
        children; parent_id None moves it to the top level.

        Rejects:
            UnknownTarget if the id is not in the store; MissingParent if the
            new parent is unknown; CircularReference if the new parent is the
            node itself or one of its descendants.
        """
        update = self._coerce_update(update)

        existing = self._node_map.get(update.id)
        if existing is None:
            return self._reject(NodeNotFoundError(update.id))

        old_parent_id = existing.parent_id
        new_parent_id = update.parent_id
        moving = update.sets_parent and new_parent_id != old_parent_id

        if moving:
            if new_parent_id is not None and new_parent_id not in self._node_map:
                return self._reject(ParentNotFoundError(new_parent_id, update.id))
            if new_parent_id == update.id or any(
                child.id == new_parent_id for child in self.get_all_children(update.id)
            ):
                return self._reject(CircularReferenceError(update.id, new_parent_id))

        self._merge(existing, update)

        if moving:
            self.remove_item_from_children(old_parent_id, existing.id)
            if new_parent_id is not None:
                self._attach(existing)
            self._mutation_log.log_node_moved(existing.id, old_parent_id, new_parent_id)
        else:
            self._mutation_log.log_node_updated(existing.id)

        return MutationResult.success(existing.id)

    @staticmethod
    def _coerce_update(update: UpdateInput) -> NodeUpdate:
        if isinstance(update, NodeUpdate):
            return update
        if isinstance(update, TreeNode):
            return NodeUpdate.from_node(update)
        if isinstance(update, Mapping):
            return NodeUpdate.from_mapping(update)
        raise TypeError(f"Expected NodeUpdate, TreeNode or mapping, got {type(update).__name__}")

    @staticmethod
    def _merge(node: TreeNode, update: NodeUpdate) -> None:
        if update.sets_parent:
            node.parent_id = update.parent_id
        if update.label is not msgspec.UNSET:
            node.label = update.label
        if update.data is not msgspec.UNSET:
            node.data.update(update.data)

    # =========================================================================
    # VALIDATION & INTROSPECTION
    # =========================================================================

    def validate(self):
        """Run the invariant validator. Returns an InvariantReport."""
        from core.tree_invariants import validate_store
        return validate_store(self)

    @property
    def mutation_log(self) -> MutationLogger:
        return self._mutation_log

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, node_id: NodeId) -> bool:
        return node_id in self._node_map

    def __iter__(self) -> Iterator[TreeNode]:
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"TreeStore(nodes={len(self._items)}, roots={len(self.get_roots())})"
