"""Bounded undo/redo history of geometry snapshots for one edit session."""

import logging
from typing import List, Optional

from BC_Libs.constants import HISTORY_CAPACITY
from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot

logger = logging.getLogger(__name__)


class HistoryStack:
    """
    Single-pointer undo/redo log of GeometrySnapshots.

    Entries before the pointer are undoable, entries after it are redoable.
    Pushing a snapshot equal to the current entry is a no-op, so every drag
    frame can be pushed without flooding the history. Once ``capacity`` is
    reached the oldest entry is evicted.
    """

    def __init__(self, initial: GeometrySnapshot, capacity: int = HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: List[GeometrySnapshot] = []
        self._pointer = 0
        self.reset(initial)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def current(self) -> GeometrySnapshot:
        return self._entries[self._pointer]

    def can_undo(self) -> bool:
        return self._pointer > 0

    def can_redo(self) -> bool:
        return self._pointer < len(self._entries) - 1

    def reset(self, snapshot: GeometrySnapshot) -> None:
        """Start over with ``snapshot`` as the only (and earliest) entry."""
        self._entries = [snapshot]
        self._pointer = 0

    def push(self, snapshot: GeometrySnapshot) -> bool:
        """
        Record a confirmed snapshot.

        Discards any redo branch after the pointer, appends, and evicts the
        oldest entry when over capacity.

        Returns:
            False if the snapshot equals the current entry (nothing recorded)
        """
        if snapshot == self.current:
            return False

        del self._entries[self._pointer + 1:]
        self._entries.append(snapshot)

        if len(self._entries) > self.capacity:
            self._entries.pop(0)
            logger.debug("History full, evicted oldest snapshot")

        self._pointer = len(self._entries) - 1
        return True

    def undo(self) -> Optional[GeometrySnapshot]:
        """Step back one entry; returns None at the session's starting geometry."""
        if not self.can_undo():
            return None
        self._pointer -= 1
        return self._entries[self._pointer]

    def redo(self) -> Optional[GeometrySnapshot]:
        """Step forward one entry; returns None when nothing was undone."""
        if not self.can_redo():
            return None
        self._pointer += 1
        return self._entries[self._pointer]
