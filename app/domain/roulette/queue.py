# app/domain/roulette/queue.py
from __future__ import annotations

from threading import RLock
from typing import Iterable, Iterator, List

from app.domain.common.errors import QueueFull
from app.domain.roulette.properties import validate_number


class PendingQueue:
    """
    Numbers waiting to become spin outcomes, oldest first.

    Shared between the coordinator and the admin command layer. Every
    method is synchronous and holds the lock for its whole body, so on the
    event loop each call is atomic with respect to other coroutines.
    """

    def __init__(self, max_size: int = 100) -> None:
        self.max_size = max_size
        self._items: List[int] = []
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"PendingQueue({self.snapshot()!r})"

    def snapshot(self) -> List[int]:
        with self._lock:
            return list(self._items)

    def is_full(self) -> bool:
        with self._lock:
            return len(self._items) >= self.max_size

    def enqueue(self, n: int) -> int:
        """Append to the tail. Returns the 1-based position."""
        validate_number(n)
        with self._lock:
            if len(self._items) >= self.max_size:
                raise QueueFull(len(self._items), self.max_size)
            self._items.append(n)
            return len(self._items)

    def push_front(self, n: int) -> None:
        """Priority insert: n becomes the next number drawn."""
        validate_number(n)
        with self._lock:
            if len(self._items) >= self.max_size:
                raise QueueFull(len(self._items), self.max_size)
            self._items.insert(0, n)

    def remove_value(self, n: int) -> int:
        """Remove every occurrence of n. Returns how many were removed."""
        with self._lock:
            before = len(self._items)
            self._items = [x for x in self._items if x != n]
            return before - len(self._items)

    def clear(self) -> List[int]:
        with self._lock:
            removed = self._items
            self._items = []
            return removed

    def drain(self) -> List[int]:
        """Take the whole queue as one batch, leaving it empty."""
        return self.clear()

    def restore_front(self, items: Iterable[int]) -> None:
        """
        Put items back at the head in their given order, ahead of anything
        queued since they were drained. Not bounded by max_size: these
        numbers were already admitted once.
        """
        items = list(items)
        if not items:
            return
        with self._lock:
            self._items[0:0] = items
