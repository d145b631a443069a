from collections import deque

from sheet_engine.grid import Grid


class History:
    """Bounded undo/redo stacks of whole-grid snapshots.

    Each stack keeps at most `capacity` entries; pushing past it silently drops
    the oldest one.
    """

    def __init__(self, capacity: int = 20):
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.undo_stack: deque[Grid] = deque(maxlen=capacity)
        self.redo_stack: deque[Grid] = deque(maxlen=capacity)

    @property
    def can_undo(self) -> bool:
        return len(self.undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        return len(self.redo_stack) > 0

    def record(self, grid: Grid) -> None:
        """Snapshot the grid before it is mutated. Invalidates redo."""
        self.undo_stack.append(grid.copy())
        self.redo_stack.clear()

    def undo(self, current: Grid) -> Grid | None:
        """Return the grid to restore, or None if there is nothing to undo."""
        if not self.undo_stack:
            return None
        self.redo_stack.append(current.copy())
        return self.undo_stack.pop()

    def redo(self, current: Grid) -> Grid | None:
        if not self.redo_stack:
            return None
        self.undo_stack.append(current.copy())
        return self.redo_stack.pop()

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()
