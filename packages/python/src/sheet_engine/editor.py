"""Editing session over one spreadsheet.

SheetEditor wires the grid, the selection, the undo history, the clipboard and
the autosave together, and evaluates formulas for display.
"""

import logging
import re
import threading
from typing import Callable

from sheet_engine.autosave import AutosaveScheduler, TimerFactory
from sheet_engine.clipboard import Clipboard
from sheet_engine.config import DEFAULT_SETTINGS, EditorSettings
from sheet_engine.dependencies import DependencyGraph, resolve_grid
from sheet_engine.grid import Grid
from sheet_engine.history import History
from sheet_engine.interpreter import FormulaEvaluator
from sheet_engine.persistence import SpreadsheetStore
from sheet_engine.selection import Commit, Selection, raw_text
from sheet_engine.types import CellValue, FormulaValue, is_formula
from sheet_engine.utils import CellAddress, cell_id, parse_cell_id

ARROWS = {
    "ArrowUp": (-1, 0),
    "ArrowDown": (1, 0),
    "ArrowLeft": (0, -1),
    "ArrowRight": (0, 1),
}

# Function name being typed at the end of a formula draft
TRAILING_NAME_REGEX = re.compile(r"([A-Za-z][A-Za-z0-9]*)$")


class SheetEditor:
    def __init__(
        self,
        grid: Grid,
        spreadsheet_id: str = "local",
        store: SpreadsheetStore | None = None,
        settings: EditorSettings = DEFAULT_SETTINGS,
        evaluator: FormulaEvaluator | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.grid = grid
        self.spreadsheet_id = spreadsheet_id
        self.store = store
        self.settings = settings
        self.evaluator = evaluator if evaluator is not None else FormulaEvaluator()
        self.selection = Selection(grid, enter_policy=settings.enter_policy)
        self.history = History(settings.history_capacity)
        self.clipboard = Clipboard()
        self.autosave = (
            AutosaveScheduler(
                store.save,
                spreadsheet_id,
                delay=settings.autosave_delay,
                timer_factory=timer_factory,
            )
            if store is not None
            else None
        )
        self._context: dict[str, FormulaValue] | None = None

    @classmethod
    def open(
        cls,
        store: SpreadsheetStore,
        spreadsheet_id: str,
        settings: EditorSettings = DEFAULT_SETTINGS,
        **kwargs,
    ) -> "SheetEditor":
        """Load a spreadsheet, or start an empty default-sized one."""
        grid = store.load(spreadsheet_id)
        if grid is None:
            logging.info("Spreadsheet %s not found, starting empty", spreadsheet_id)
            grid = Grid.empty(settings.default_rows, settings.default_cols)
        return cls(grid, spreadsheet_id, store=store, settings=settings, **kwargs)

    # Grid changes

    def _changed(self) -> None:
        self._context = None
        if self.autosave is not None:
            self.autosave.schedule(self.grid)

    def _replace_grid(self, grid: Grid) -> None:
        self.grid = grid
        self.selection.attach(grid)
        self._changed()

    def _apply(self, commit: Commit | None) -> bool:
        if commit is None:
            return False
        row, col = commit.address
        current = self.grid.get(row, col)
        if current == commit.value and type(current) is type(commit.value):
            self.selection.sync()
            return False
        self.history.record(self.grid)
        self.grid.set(row, col, commit.value)
        self.selection.sync()
        self._changed()
        return True

    def set_cell(self, row: int, col: int, value: CellValue) -> bool:
        """Store a value as a committed edit (undoable, autosaved)."""
        return self._apply(Commit(CellAddress(row, col), value))

    # Pointer

    def click(self, row: int, col: int, shift: bool = False) -> None:
        self._apply(self.selection.click(CellAddress(row, col), shift=shift))

    def double_click(self, row: int, col: int) -> None:
        self.click(row, col)
        if not self.selection.is_editing:
            self.selection.begin_edit()

    # Keyboard

    def key_down(self, key: str, shift: bool = False, ctrl: bool = False) -> bool:
        """Handle a key press. Returns False for keys the editor does not use."""
        if ctrl:
            match key.lower():
                case "c":
                    self.copy()
                case "x":
                    self.cut()
                case "v":
                    self.paste()
                case "z":
                    if shift:
                        self.redo()
                    else:
                        self.undo()
                case "y":
                    self.redo()
                case "s":
                    self.save_now()
                case _:
                    return False
            return True

        if key in ARROWS:
            drow, dcol = ARROWS[key]
            self.selection.move(drow, dcol, shift=shift)
            return True

        match key:
            case "Enter":
                self._apply(self.selection.enter())
            case "F2":
                if not self.selection.is_editing:
                    self.selection.begin_edit()
            case "Tab":
                self._apply(self.selection.tab())
            case "Escape":
                self.selection.escape()
            case "Delete" | "Backspace":
                if self.selection.is_editing:
                    return False
                self.clear_selection()
            case _:
                if len(key) == 1:
                    self.type_character(key)
                else:
                    return False
        return True

    def type_character(self, char: str) -> None:
        self.selection.type_character(char)

    def set_draft(self, text: str) -> None:
        self.selection.set_draft(text)

    def set_formula_bar(self, text: str) -> None:
        self.selection.set_formula_bar(text)

    def commit_formula_bar(self) -> bool:
        return self._apply(self.selection.commit_formula_bar())

    def commit(self) -> bool:
        return self._apply(self.selection.commit())

    def cancel(self) -> None:
        self.selection.cancel()

    def clear_selection(self) -> bool:
        """Empty every cell of the selected range (or the active cell)."""
        area = self.selection.selected_range()
        if all(value is None for row in self.grid.region(area) for value in row):
            return False
        self.history.record(self.grid)
        self.grid.clear_region(area)
        self.selection.sync()
        self._changed()
        return True

    # Clipboard

    def copy(self) -> bool:
        return self.clipboard.copy(self.grid, self.selection.range)

    def cut(self) -> bool:
        if self.selection.range is None:
            return False
        self.history.record(self.grid)
        self.clipboard.cut(self.grid, self.selection.range)
        self.selection.sync()
        self._changed()
        return True

    def paste(self) -> bool:
        if self.clipboard.is_empty:
            return False
        self.history.record(self.grid)
        self.clipboard.paste(self.grid, self.selection.active_cell)
        self.selection.sync()
        self._changed()
        return True

    # History

    def undo(self) -> bool:
        previous = self.history.undo(self.grid)
        if previous is None:
            return False
        self._replace_grid(previous)
        return True

    def redo(self) -> bool:
        following = self.history.redo(self.grid)
        if following is None:
            return False
        self._replace_grid(following)
        return True

    # Rows and columns

    def _reshape(self, change: Callable[[], object]) -> None:
        before = self.grid.copy()
        change()
        self.history.record(before)
        self._replace_grid(self.grid)

    def insert_row(self, index: int | None = None) -> None:
        self._reshape(lambda: self.grid.insert_row(index))

    def delete_row(self, index: int) -> None:
        self._reshape(lambda: self.grid.delete_row(index))

    def add_column(self, name: str | None = None) -> None:
        self._reshape(lambda: self.grid.add_column(name))

    def delete_column(self, index: int) -> None:
        self._reshape(lambda: self.grid.delete_column(index))

    # Persistence

    def save_now(self) -> bool:
        if self.autosave is None:
            return False
        return self.autosave.save_now(self.grid)

    def close(self) -> None:
        """End the session; a save still waiting for its quiet window is dropped."""
        if self.autosave is not None:
            self.autosave.close()

    # Display

    def context(self) -> dict[str, FormulaValue]:
        """Resolved value of every non-empty cell, recomputed after each change."""
        if self._context is None:
            self._context = resolve_grid(self.grid, self.evaluator)
        return self._context

    def display_value(self, row: int, col: int) -> FormulaValue:
        raw = self.grid.get(row, col)
        if not is_formula(raw):
            return raw
        return self.context().get(cell_id(row, col))

    def display_text(self, row: int, col: int) -> str:
        value = self.display_value(row, col)
        if isinstance(value, list):
            return ", ".join(raw_text(v) for v in value)  # type: ignore[arg-type]
        return raw_text(value)

    def cells_to_rerender(self, ref: str) -> list[str]:
        """The edited cell followed by every formula cell depending on it."""
        ref = parse_cell_id(ref).id()
        return [ref] + [
            key for key in DependencyGraph.from_grid(self.grid).affected({ref}) if key != ref
        ]

    def suggestions(self, text: str | None = None, limit: int = 5) -> list[str]:
        """Completions for the draft being typed.

        Formulas complete function names; plain text completes from values
        already present in the active column.
        """
        if text is None:
            text = self.selection.draft_text
        if is_formula(text):
            match = TRAILING_NAME_REGEX.search(text)
            if match is None:
                return []
            prefix = match.group(1).upper()
            return sorted(
                name for name in self.evaluator.functions if name.startswith(prefix)
            )[:limit]

        if not text:
            return []
        needle = text.lower()
        col = self.selection.active_cell.col
        found: list[str] = []
        for row in range(self.grid.rows):
            value = self.grid.get(row, col)
            if not isinstance(value, str) or is_formula(value):
                continue
            if needle in value.lower() and value not in found:
                found.append(value)
                if len(found) == limit:
                    break
        return found
