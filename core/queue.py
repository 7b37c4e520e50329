"""
CANOPY QUEUE - The Breadth-First Work Buffer

A small FIFO queue used by the tree store to collect descendants level by
level. Backed by collections.deque so dequeue is O(1) instead of the O(n)
front-removal of a plain list.

Usage:
    queue = FifoQueue([a, b])
    queue.enqueue(c)
    queue.enqueue_many([d, e])

    while not queue.is_empty():
        item = queue.dequeue()

Design:
- Owns its storage: the initial items are copied, never shared
- Never raises: dequeue on an empty queue returns None
"""
from collections import deque
from typing import Deque, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class FifoQueue(Generic[T]):
    """
    First-in, first-out queue.

    None is the "no element" signal of dequeue() and peek(), so None
    should not be enqueued as an item.
    """

    def __init__(self, items: Iterable[T] = ()):
        self._items: Deque[T] = deque(items)

    def enqueue(self, item: T) -> None:
        """Append a single item to the back."""
        self._items.append(item)

    def enqueue_many(self, items: Iterable[T]) -> None:
        """Append a batch to the back, keeping the batch's order."""
        self._items.extend(items)

    def dequeue(self) -> Optional[T]:
        """Remove and return the front item, or None if the queue is empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> Optional[T]:
        """Return the front item without removing it."""
        if not self._items:
            return None
        return self._items[0]

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"FifoQueue(size={len(self._items)})"
