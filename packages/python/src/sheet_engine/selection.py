"""Active cell, range selection and in-cell editing.

The selection never writes to the grid. Operations that finish an edit return a
Commit describing the value to store, and the caller applies it.
"""

from enum import Enum, auto
from typing import NamedTuple

from sheet_engine.config import EnterPolicy
from sheet_engine.errors import GridBoundsError
from sheet_engine.grid import Grid
from sheet_engine.types import CellValue, coerce_to_text, parse_input
from sheet_engine.utils import CellAddress, GridRange


class EditMode(Enum):
    IDLE = auto()
    RANGE_SELECTING = auto()
    EDITING = auto()


class Commit(NamedTuple):
    address: CellAddress
    value: CellValue


def raw_text(value: CellValue) -> str:
    """Editable text of a stored value (formulas stay unevaluated)."""
    return coerce_to_text(value)


class Selection:
    def __init__(self, grid: Grid, enter_policy: EnterPolicy = EnterPolicy.COMMIT_ONLY):
        self.grid = grid
        self.enter_policy = enter_policy
        self.active_cell = CellAddress(0, 0)
        self.range: GridRange | None = None
        # Cell active when a shift sequence began
        self.anchor: CellAddress | None = None
        self.editing_cell: CellAddress | None = None
        self.draft_text = ""
        self.formula_bar_text = ""
        self.sync()

    @property
    def mode(self) -> EditMode:
        if self.editing_cell is not None:
            return EditMode.EDITING
        if self.range is not None:
            return EditMode.RANGE_SELECTING
        return EditMode.IDLE

    @property
    def is_editing(self) -> bool:
        return self.editing_cell is not None

    def attach(self, grid: Grid) -> None:
        """Follow a replaced or resized grid, keeping the selection inside it."""
        self.grid = grid
        if grid.rows == 0 or grid.cols == 0:
            self.active_cell = CellAddress(0, 0)
            self.range = None
            self.anchor = None
            self.editing_cell = None
            self.draft_text = self.formula_bar_text = ""
            return
        self.active_cell = grid.clamp(self.active_cell)
        if self.editing_cell is not None:
            self.editing_cell = self.active_cell
        if self.range is not None:
            self.range = GridRange(
                grid.clamp(self.range.start), grid.clamp(self.range.end)
            )
        if self.anchor is not None:
            self.anchor = grid.clamp(self.anchor)
        self.sync()

    def sync(self) -> None:
        """Mirror the active cell's raw value into the formula bar.

        The draft follows too, unless an edit is in progress.
        """
        if self.is_editing:
            return
        if self.grid.in_bounds(*self.active_cell):
            text = raw_text(self.grid.get(*self.active_cell))
        else:
            text = ""
        self.formula_bar_text = text
        self.draft_text = text

    def selected_range(self) -> GridRange:
        """The range if there is one, else the active cell alone."""
        if self.range is not None:
            return self.range
        return GridRange(self.active_cell, self.active_cell)

    # Navigation

    def move(self, drow: int, dcol: int, shift: bool = False) -> None:
        """Move the active cell, clamped to the grid. Ignored while editing."""
        if self.is_editing:
            return
        target = self.grid.clamp(
            CellAddress(self.active_cell.row + drow, self.active_cell.col + dcol)
        )
        if shift:
            if self.anchor is None:
                self.anchor = self.active_cell
            self.active_cell = target
            self.range = GridRange(self.anchor, target)
        else:
            self.active_cell = target
            self.range = None
            self.anchor = None
        self.sync()

    def click(self, address: CellAddress, shift: bool = False) -> Commit | None:
        """Select a cell. Clicking away from a cell being edited commits it first."""
        if not self.grid.in_bounds(*address):
            raise GridBoundsError(f"Cannot select {address} in a {self.grid!r}")

        commit = None
        if self.is_editing:
            if address == self.editing_cell and not shift:
                return None
            commit = self.commit()

        if shift:
            if self.anchor is None:
                self.anchor = self.active_cell
            self.range = GridRange(self.anchor, address)
        else:
            self.range = None
            self.anchor = None
        self.active_cell = address
        self.sync()
        return commit

    def select_range(self, area: GridRange) -> None:
        """Select a rectangle, with the active cell at its end corner."""
        self.click(area.start)
        self.click(area.end, shift=True)

    # Editing

    def begin_edit(self, initial: str | None = None) -> None:
        """Start editing the active cell, seeded with its raw value by default."""
        self.range = None
        self.anchor = None
        self.editing_cell = self.active_cell
        if initial is None:
            initial = raw_text(self.grid.get(*self.active_cell))
        self.draft_text = initial
        self.formula_bar_text = initial

    def type_character(self, char: str) -> None:
        """A typed character starts an edit that replaces the cell's content."""
        if not self.is_editing:
            self.begin_edit(char)
        else:
            self.set_draft(self.draft_text + char)

    def set_draft(self, text: str) -> None:
        """The in-cell editor changed; the formula bar follows."""
        if not self.is_editing:
            self.begin_edit(text)
            return
        self.draft_text = text
        self.formula_bar_text = text

    def set_formula_bar(self, text: str) -> None:
        """The formula bar changed; an in-progress cell edit follows."""
        self.formula_bar_text = text
        if self.is_editing:
            self.draft_text = text

    def commit(self) -> Commit | None:
        """Finish the in-cell edit, if any."""
        if self.editing_cell is None:
            return None
        commit = Commit(self.editing_cell, parse_input(self.draft_text))
        self.editing_cell = None
        self.draft_text = ""
        return commit

    def commit_formula_bar(self) -> Commit:
        """Store the formula bar text into the active cell."""
        commit = Commit(self.active_cell, parse_input(self.formula_bar_text))
        self.editing_cell = None
        self.draft_text = ""
        return commit

    def cancel(self) -> None:
        """Drop the draft and show the stored value again."""
        self.editing_cell = None
        self.sync()

    # Keys

    def enter(self) -> Commit | None:
        if not self.is_editing:
            self.begin_edit()
            return None
        commit = self.commit()
        if self.enter_policy == EnterPolicy.COMMIT_AND_MOVE:
            self.move(1, 0)
        return commit

    def tab(self) -> Commit | None:
        """Commit any edit, then move one column right."""
        commit = self.commit()
        self.move(0, 1)
        return commit

    def escape(self) -> None:
        if self.is_editing:
            self.cancel()
        else:
            self.range = None
            self.anchor = None
