import logging
from typing import Protocol

from sheet_engine.errors import SaveError
from sheet_engine.grid import Grid


class SpreadsheetStore(Protocol):
    """Where spreadsheets live between editing sessions."""

    def save(self, spreadsheet_id: str, grid: Grid, columns: list[str]) -> None:
        """Persist the raw grid. Raises SaveError on failure."""
        ...

    def load(self, spreadsheet_id: str) -> Grid | None:
        """Return the stored grid, or None if the spreadsheet does not exist."""
        ...


class InMemoryStore:
    def __init__(self) -> None:
        self.sheets: dict[str, Grid] = {}
        self.save_count = 0
        # When set, the next saves raise SaveError with this message
        self.fail_with: str | None = None

    def save(self, spreadsheet_id: str, grid: Grid, columns: list[str]) -> None:
        if self.fail_with is not None:
            raise SaveError(self.fail_with)
        stored = grid.copy()
        stored.columns = list(columns)
        self.sheets[spreadsheet_id] = stored
        self.save_count += 1
        logging.info("Saved spreadsheet %s (%dx%d)", spreadsheet_id, grid.rows, grid.cols)

    def load(self, spreadsheet_id: str) -> Grid | None:
        grid = self.sheets.get(spreadsheet_id)
        return grid.copy() if grid is not None else None
