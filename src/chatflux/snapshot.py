"""LIFO stack of deep-copied state snapshots."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from chatflux.errors import EmptySnapshotStackError


class StateStack:
    """Checkpoint store used for speculative execution and rollback.

    ``project`` narrows what gets copied (for example a few attributes of a
    service); by default the whole value is deep-copied.
    """

    def __init__(self, project: Callable[[Any], Any] | None = None) -> None:
        self._project = project
        self._items: list[Any] = []

    def push(self, value: Any) -> int:
        snapshot = self._project(value) if self._project is not None else value
        self._items.append(copy.deepcopy(snapshot))
        return len(self._items)

    def pop(self) -> Any:
        if not self._items:
            raise EmptySnapshotStackError("No state snapshot to restore.")
        return self._items.pop()

    def __len__(self) -> int:
        return len(self._items)
