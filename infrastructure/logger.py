"""
CANOPY MUTATION LOGGER - The Tree's Flight Recorder

Records every tree mutation (and every rejected one) as a structured event,
so a caller can replay what happened to a node.

Architecture:
- MutationLogger: Core logging interface
- EventBuffer: In-memory ring buffer for recent events
- Subscribers: Callbacks invoked for each event

Usage:
    logger = MutationLogger()
    logger.log_node_created(7, parent_id=1)
    logger.log_node_moved(7, old_parent_id=1, new_parent_id=2)

    for event in logger.get_events_for_node(7):
        print(f"{event.sequence}: {event.mutation_type}")

Human-readable warnings go through the stdlib `logging` module; this module
keeps the machine-readable trail.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import msgspec

logger = logging.getLogger(__name__)

EventNodeId = Union[str, int]


# =============================================================================
# EVENT TYPES
# =============================================================================

class MutationType(str, Enum):
    """Types of tree mutations for event tracking."""
    NODE_CREATED = "NODE_CREATED"
    NODE_UPDATED = "NODE_UPDATED"
    NODE_MOVED = "NODE_MOVED"
    NODE_DELETED = "NODE_DELETED"
    REJECTED = "REJECTED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """Individual mutation event."""
    timestamp: str
    sequence: int
    mutation_type: str                         # MutationType value
    node_id: Optional[EventNodeId] = None
    parent_id: Optional[EventNodeId] = None    # Parent at creation/deletion
    old_parent_id: Optional[EventNodeId] = None
    new_parent_id: Optional[EventNodeId] = None
    reason: Optional[str] = None               # RejectionReason value
    message: str = ""
    cascade_size: int = 0                      # Descendants removed with the node


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enabled: bool = True                # Record events at all
    buffer_size: int = 10000            # In-memory buffer size


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Thread-safe ring buffer for recent mutation events.

    O(1) append, O(n) filtering queries.
    """

    def __init__(self, max_size: int = 10000):
        self._buffer: Deque[MutationEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0

    def append(self, event: MutationEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def get_since(self, timestamp: str) -> List[MutationEvent]:
        """Get all events since a timestamp."""
        with self._lock:
            return [e for e in self._buffer if e.timestamp >= timestamp]

    def get_last(self, n: int) -> List[MutationEvent]:
        """Get the last n events."""
        with self._lock:
            items = list(self._buffer)
            return items[-n:] if n > 0 else []

    def get_by_node(self, node_id: EventNodeId) -> List[MutationEvent]:
        with self._lock:
            return [e for e in self._buffer if e.node_id == node_id]

    def get_by_type(self, mutation_type: str) -> List[MutationEvent]:
        with self._lock:
            return [e for e in self._buffer if e.mutation_type == mutation_type]

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def clear(self) -> None:
        """Clear the buffer. Sequence numbers keep increasing."""
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for tree mutations.

    Every log_* method returns the recorded event, or None when the logger
    is disabled. Subscriber failures are logged and swallowed so that a
    broken listener can never abort a store operation.
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()
        self._buffer = EventBuffer(self.config.buffer_size)
        self._subscribers: List[Callable[[MutationEvent], None]] = []

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _record(self, mutation_type: MutationType, **fields: Any) -> Optional[MutationEvent]:
        if not self.config.enabled:
            return None
        event = MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=mutation_type.value,
            **fields,
        )
        self._emit(event)
        return event

    def _emit(self, event: MutationEvent) -> None:
        self._buffer.append(event)

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Mutation subscriber failed on event %s", event.sequence)

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_created(
        self,
        node_id: EventNodeId,
        parent_id: Optional[EventNodeId] = None,
    ) -> Optional[MutationEvent]:
        """Log a node insertion."""
        return self._record(MutationType.NODE_CREATED, node_id=node_id, parent_id=parent_id)

    def log_node_updated(self, node_id: EventNodeId) -> Optional[MutationEvent]:
        """Log an in-place field update that kept the parent."""
        return self._record(MutationType.NODE_UPDATED, node_id=node_id)

    def log_node_moved(
        self,
        node_id: EventNodeId,
        old_parent_id: Optional[EventNodeId],
        new_parent_id: Optional[EventNodeId],
    ) -> Optional[MutationEvent]:
        """Log a reparenting."""
        return self._record(
            MutationType.NODE_MOVED,
            node_id=node_id,
            old_parent_id=old_parent_id,
            new_parent_id=new_parent_id,
        )

    def log_node_deleted(
        self,
        node_id: EventNodeId,
        parent_id: Optional[EventNodeId] = None,
        cascade_size: int = 0,
    ) -> Optional[MutationEvent]:
        """Log a cascading removal rooted at node_id."""
        return self._record(
            MutationType.NODE_DELETED,
            node_id=node_id,
            parent_id=parent_id,
            cascade_size=cascade_size,
        )

    def log_rejected(
        self,
        node_id: Optional[EventNodeId],
        reason: str,
        message: str,
    ) -> Optional[MutationEvent]:
        """Log a mutation that was refused."""
        return self._record(
            MutationType.REJECTED,
            node_id=node_id,
            reason=reason,
            message=message,
        )

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._buffer.get_last(n)

    def get_events_since(self, timestamp: str) -> List[MutationEvent]:
        return self._buffer.get_since(timestamp)

    def get_events_for_node(self, node_id: EventNodeId) -> List[MutationEvent]:
        return self._buffer.get_by_node(node_id)

    def get_events_by_type(self, mutation_type: Union[str, MutationType]) -> List[MutationEvent]:
        if isinstance(mutation_type, MutationType):
            mutation_type = mutation_type.value
        return self._buffer.get_by_type(mutation_type)

    def get_node_timeline(self, node_id: EventNodeId) -> List[Dict[str, Any]]:
        """
        Get a timeline of mutations for a node.

        Returns a simplified list of mutations for debugging.
        """
        return [
            {
                "sequence": e.sequence,
                "time": e.timestamp,
                "type": e.mutation_type,
                "old_parent": e.old_parent_id,
                "new_parent": e.new_parent_id,
                "reason": e.reason,
            }
            for e in self.get_events_for_node(node_id)
        ]

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Subscribe to mutation events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Unsubscribe from mutation events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)
