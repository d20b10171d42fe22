"""A simple last-in, first-out pool of reusable objects."""

from __future__ import annotations

from typing import Any, List, Optional

__all__ = ["Freelist"]


class Freelist:
    """A pool of reusable objects. Not safe for concurrent access."""

    def __init__(self) -> None:
        self._items: List[Any] = []

    def get(self) -> Optional[Any]:
        """Take the most recently returned item, or None if the pool is empty."""
        if not self._items:
            return None
        return self._items.pop()

    def put(self, item: Any) -> None:
        """Return an item to the pool."""
        self._items.append(item)

    def __len__(self) -> int:
        return len(self._items)