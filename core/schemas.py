"""
CANOPY SCHEMAS - The Records That Live in the Tree

This module defines the data structures that flow through the tree store:
- TreeNode: the record stored for every node
- NodeUpdate: an explicit partial update (unset fields are left alone)
- MutationResult: the structured outcome of every mutating call
- RejectionReason: why a mutation was refused

Design Principles:
1. msgspec.Struct for nodes: low memory, O(1) attribute access during traversal
2. KW_ONLY: keyword arguments prevent id/parent_id positional mix-ups
3. MUTABLE NODES: the store hands out live references, updates happen in place
4. EXPLICIT ABSENCE: roots are parent_id None, never a falsy id
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import msgspec

NodeId = Union[str, int]

# Keys a plain mapping may use for the parent reference
_PARENT_KEYS = ("parent_id", "parentId")


def _pop_parent(fields: Dict[str, Any]) -> Any:
    """
    Remove the parent reference from a mutable mapping copy.

    Returns msgspec.UNSET when neither spelling is present. Both spellings
    may appear only if they agree.

    Raises:
        msgspec.ValidationError: If parent_id and parentId disagree
    """
    present = [fields.pop(key) for key in _PARENT_KEYS if key in fields]
    if not present:
        return msgspec.UNSET
    if any(value != present[0] for value in present[1:]):
        raise msgspec.ValidationError(
            f"Conflicting parent keys: parent_id={present[0]!r}, parentId={present[1]!r}"
        )
    return present[0]


# =============================================================================
# REJECTION TAXONOMY
# =============================================================================

class RejectionReason(str, Enum):
    """Why a mutation was refused. Values are the taxonomy names."""
    DUPLICATE_ID = "DuplicateId"
    MISSING_PARENT = "MissingParent"
    UNKNOWN_TARGET = "UnknownTarget"
    CIRCULAR_REFERENCE = "CircularReference"


# =============================================================================
# TREE NODE
# =============================================================================

class TreeNode(msgspec.Struct, kw_only=True, frozen=False):
    """
    A labeled node of the forest.

    `data` holds caller-defined extra fields; the store never looks inside
    it. Once a node is inserted the store owns it and returns this same
    object from every query, so in-place changes are visible to the store.
    Change `parent_id` through TreeStore.update_item(), never directly,
    or the children index goes stale.
    """
    id: NodeId
    parent_id: Optional[NodeId] = None
    label: str = ""
    data: Dict[str, Any] = msgspec.field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "TreeNode":
        """
        Build a node from a plain mapping.

        Recognizes `id`, `parent_id` (or `parentId`) and `label`; every
        other key is kept in `data`. Types are checked by msgspec.

        Raises:
            msgspec.ValidationError: If id/parent_id/label have the wrong type,
                or parent_id and parentId are both given with different values
        """
        fields = dict(record)
        parent_id = _pop_parent(fields)
        if parent_id is msgspec.UNSET:
            parent_id = None
        payload = {
            "id": fields.pop("id", None),
            "parent_id": parent_id,
            "label": fields.pop("label", ""),
            "data": {**fields.pop("data", {}), **fields},
        }
        return msgspec.convert(payload, type=cls)


# =============================================================================
# PARTIAL UPDATE
# =============================================================================

class NodeUpdate(msgspec.Struct, kw_only=True):
    """
    Partial update for an existing node.

    Only fields that are set are applied. `parent_id=None` is a real value
    (move to root), distinct from leaving parent_id UNSET. `data` is merged
    key by key onto the node's existing data.
    """
    id: NodeId
    parent_id: Union[NodeId, None, msgspec.UnsetType] = msgspec.UNSET
    label: Union[str, msgspec.UnsetType] = msgspec.UNSET
    data: Union[Dict[str, Any], msgspec.UnsetType] = msgspec.UNSET

    @classmethod
    def from_node(cls, node: TreeNode) -> "NodeUpdate":
        """Treat a full node as an update supplying every field."""
        return cls(
            id=node.id,
            parent_id=node.parent_id,
            label=node.label,
            data=dict(node.data),
        )

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "NodeUpdate":
        """
        Build a partial update from a plain mapping.

        Same keys as TreeNode.from_mapping, but a key that is absent stays
        UNSET: {"id": 2, "label": "x"} relabels node 2 without moving it.
        Extra keys are merged into `data`.

        Raises:
            msgspec.ValidationError: On wrong types or conflicting parent keys
        """
        fields = dict(record)
        payload: Dict[str, Any] = {"id": fields.pop("id", None)}

        parent_id = _pop_parent(fields)
        if parent_id is not msgspec.UNSET:
            payload["parent_id"] = parent_id
        if "label" in fields:
            payload["label"] = fields.pop("label")
        if "data" in fields or fields:
            payload["data"] = {**fields.pop("data", {}), **fields}

        return msgspec.convert(payload, type=cls)

    @property
    def sets_parent(self) -> bool:
        return self.parent_id is not msgspec.UNSET


# =============================================================================
# MUTATION RESULT
# =============================================================================

class MutationResult(msgspec.Struct, kw_only=True, frozen=True):
    """
    Outcome of a mutating store call.

    Truthy on success, so `if store.add_item(node):` reads naturally.
    """
    ok: bool
    node_id: Optional[NodeId] = None
    reason: Optional[str] = None       # RejectionReason value
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, node_id: NodeId) -> "MutationResult":
        return cls(ok=True, node_id=node_id)

    @classmethod
    def rejected(
        cls,
        reason: RejectionReason,
        message: str,
        node_id: Optional[NodeId] = None,
    ) -> "MutationResult":
        return cls(ok=False, node_id=node_id, reason=reason.value, message=message)
