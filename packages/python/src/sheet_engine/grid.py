import logging
from typing import Iterator, Sequence

import pandas as pd
from rapidfuzz import fuzz, process
from typing_extensions import Self

from sheet_engine.errors import GridBoundsError
from sheet_engine.types import CellValue
from sheet_engine.utils import (
    CellAddress,
    GridRange,
    cell_id,
    column_index,
    column_label,
    parse_cell_id,
)

__all__ = [
    "Grid",
    "cell_id",
    "column_index",
    "column_label",
    "parse_cell_id",
]

DEFAULT_ROWS = 20
DEFAULT_COLS = 10


class Grid:
    """A fixed-size 2-D store of raw cell values with a header per column.

    Cells hold raw values: formulas are kept as their "=..." text. The grid
    never grows on its own; reading or writing outside of it raises
    GridBoundsError.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        columns: Sequence[str] | None = None,
        data: Sequence[Sequence[CellValue]] | None = None,
    ) -> None:
        if rows < 0 or cols < 0:
            raise ValueError(f"Grid size must be non-negative, got {rows}x{cols}")
        self.rows = rows
        self.cols = cols

        if columns is None:
            columns = [column_label(i) for i in range(cols)]
        if len(columns) != cols:
            raise ValueError(f"Expected {cols} column headers, got {len(columns)}")
        self.columns: list[str] = list(columns)

        # Rows shorter than the grid are padded with empty cells
        self.data: list[list[CellValue]] = [[None] * cols for _ in range(rows)]
        for r, row in enumerate(data or []):
            if r >= rows:
                break
            for c, value in enumerate(row[:cols]):
                self.data[r][c] = value

    @classmethod
    def empty(cls, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> Self:
        return cls(rows, cols)

    @classmethod
    def from_rows(
        cls, data: Sequence[Sequence[CellValue]], columns: Sequence[str] | None = None
    ) -> Self:
        """Grid sized to fit the given rows (and headers, if any)."""
        cols = max([len(row) for row in data], default=0)
        if columns is not None:
            cols = max(cols, len(columns))
            columns = list(columns) + [
                column_label(i) for i in range(len(columns), cols)
            ]
        return cls(len(data), cols, columns=columns, data=data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (
            self.rows == other.rows
            and self.cols == other.cols
            and self.columns == other.columns
            and self.data == other.data
        )

    def __repr__(self) -> str:
        return f"Grid(rows={self.rows}, cols={self.cols})"

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def _check(self, row: int, col: int) -> None:
        if not self.in_bounds(row, col):
            raise GridBoundsError(
                f"Cell ({row}, {col}) is outside of a {self.rows}x{self.cols} grid"
            )

    def get(self, row: int, col: int) -> CellValue:
        self._check(row, col)
        return self.data[row][col]

    def set(self, row: int, col: int, value: CellValue) -> Self:
        """Store a raw value and return the grid itself."""
        self._check(row, col)
        self.data[row][col] = value
        return self

    def get_by_id(self, ref: str) -> CellValue:
        row, col = parse_cell_id(ref)
        return self.get(row, col)

    def set_by_id(self, ref: str, value: CellValue) -> Self:
        row, col = parse_cell_id(ref)
        return self.set(row, col, value)

    def copy(self) -> Self:
        return type(self)(self.rows, self.cols, columns=self.columns, data=self.data)

    def to_rows(self) -> list[list[CellValue]]:
        return [list(row) for row in self.data]

    def items(self) -> Iterator[tuple[CellAddress, CellValue]]:
        """Every non-empty cell with its address, row-major."""
        for r, row in enumerate(self.data):
            for c, value in enumerate(row):
                if value is not None:
                    yield CellAddress(r, c), value

    def cell_ids(self) -> list[str]:
        return [address.id() for address, _ in self.items()]

    # Rectangular regions

    def clamp(self, address: CellAddress) -> CellAddress:
        return CellAddress(
            min(max(address.row, 0), self.rows - 1),
            min(max(address.col, 0), self.cols - 1),
        )

    def region(self, area: GridRange) -> list[list[CellValue]]:
        """Raw values of a rectangle, which must lie inside the grid."""
        min_row, max_row, min_col, max_col = area.bounds()
        self._check(min_row, min_col)
        self._check(max_row, max_col)
        return [
            list(self.data[r][min_col : max_col + 1])
            for r in range(min_row, max_row + 1)
        ]

    def clear_region(self, area: GridRange) -> Self:
        min_row, max_row, min_col, max_col = area.bounds()
        self._check(min_row, min_col)
        self._check(max_row, max_col)
        for r in range(min_row, max_row + 1):
            for c in range(min_col, max_col + 1):
                self.data[r][c] = None
        return self

    def write_region(
        self, top: int, left: int, values: Sequence[Sequence[CellValue]]
    ) -> int:
        """Write a block with its top-left corner at (top, left).

        Values falling outside of the grid are dropped. Returns the number of
        cells written.
        """
        self._check(top, left)
        written = 0
        for dr, row in enumerate(values):
            r = top + dr
            if r >= self.rows:
                break
            for dc, value in enumerate(row):
                c = left + dc
                if c >= self.cols:
                    break
                self.data[r][c] = value
                written += 1
        dropped = sum(len(row) for row in values) - written
        if dropped:
            logging.warning("Paste truncated at grid bounds: %d cells dropped", dropped)
        return written

    # Rows and columns

    def insert_row(self, index: int | None = None) -> Self:
        """Insert an empty row before index (at the end by default)."""
        if index is None:
            index = self.rows
        if not 0 <= index <= self.rows:
            raise GridBoundsError(f"Cannot insert a row at {index}")
        self.data.insert(index, [None] * self.cols)
        self.rows += 1
        return self

    def delete_row(self, index: int) -> Self:
        if not 0 <= index < self.rows:
            raise GridBoundsError(f"Row {index} does not exist")
        del self.data[index]
        self.rows -= 1
        return self

    def add_column(self, name: str | None = None) -> Self:
        """Append an empty column, named after its letter by default."""
        self.columns.append(name if name is not None else column_label(self.cols))
        for row in self.data:
            row.append(None)
        self.cols += 1
        return self

    def delete_column(self, index: int) -> Self:
        if not 0 <= index < self.cols:
            raise GridBoundsError(f"Column {index} does not exist")
        del self.columns[index]
        for row in self.data:
            del row[index]
        self.cols -= 1
        return self

    def find_column(self, label: str, similarity: float = 0.9) -> int | None:
        """Index of the column whose header best matches label, if close enough."""
        if label in self.columns:
            return self.columns.index(label)
        match = process.extractOne(
            label, self.columns, scorer=fuzz.ratio, score_cutoff=similarity * 100
        )
        if match is None:
            return None
        return match[2]

    # pandas

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.to_rows(), columns=self.columns, dtype=object)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> Self:
        values = df.astype(object).where(df.notna(), None)
        return cls(
            len(df.index),
            len(df.columns),
            columns=[str(c) for c in df.columns],
            data=values.values.tolist(),
        )
