from sheet_engine.grid import Grid
from sheet_engine.types import CellValue
from sheet_engine.utils import CellAddress, GridRange


class Clipboard:
    """Rectangular block of raw cell values, held for the editing session."""

    def __init__(self) -> None:
        self.buffer: list[list[CellValue]] | None = None

    @property
    def is_empty(self) -> bool:
        return self.buffer is None

    @property
    def shape(self) -> tuple[int, int]:
        if self.buffer is None:
            return (0, 0)
        return (len(self.buffer), max((len(row) for row in self.buffer), default=0))

    def copy(self, grid: Grid, area: GridRange | None) -> bool:
        """Capture the raw values of a range. Without a range nothing happens."""
        if area is None:
            return False
        self.buffer = grid.region(area)
        return True

    def cut(self, grid: Grid, area: GridRange | None) -> bool:
        if not self.copy(grid, area):
            return False
        assert area is not None
        grid.clear_region(area)
        return True

    def paste(self, grid: Grid, at: CellAddress) -> GridRange | None:
        """Write the buffer with its top-left corner at `at`.

        Returns the area actually written, which is truncated at the grid's
        edges, or None when there is nothing to paste.
        """
        if self.buffer is None:
            return None
        grid.write_region(at.row, at.col, self.buffer)
        rows, cols = self.shape
        if rows == 0 or cols == 0:
            return None
        end = grid.clamp(CellAddress(at.row + rows - 1, at.col + cols - 1))
        return GridRange(at, end)

    def clear(self) -> None:
        self.buffer = None
