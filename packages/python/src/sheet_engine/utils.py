import re
from typing import NamedTuple

from openpyxl.utils import column_index_from_string, get_column_letter

# Constants
CELL_ID_REGEX = re.compile(r"([A-Z]+)([1-9]\d*)$")


class CellAddress(NamedTuple):
    row: int
    col: int

    def id(self) -> str:
        return cell_id(self.row, self.col)


class GridRange(NamedTuple):
    """Rectangle between two corners, in any order."""

    start: CellAddress
    end: CellAddress

    def bounds(self) -> tuple[int, int, int, int]:
        """Return (min_row, max_row, min_col, max_col)."""
        return (
            min(self.start.row, self.end.row),
            max(self.start.row, self.end.row),
            min(self.start.col, self.end.col),
            max(self.start.col, self.end.col),
        )

    @property
    def shape(self) -> tuple[int, int]:
        min_row, max_row, min_col, max_col = self.bounds()
        return (max_row - min_row + 1, max_col - min_col + 1)

    def contains(self, row: int, col: int) -> bool:
        min_row, max_row, min_col, max_col = self.bounds()
        return min_row <= row <= max_row and min_col <= col <= max_col

    def addresses(self) -> list[CellAddress]:
        """Every address in the rectangle, row-major."""
        min_row, max_row, min_col, max_col = self.bounds()
        return [
            CellAddress(row, col)
            for row in range(min_row, max_row + 1)
            for col in range(min_col, max_col + 1)
        ]


def column_label(index: int) -> str:
    """0 -> "A", 25 -> "Z", 26 -> "AA".

    Labels stop at "ZZZ" (index 18277); larger indices raise ValueError.
    """
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}")
    return get_column_letter(index + 1)


def column_index(label: str) -> int:
    """"A" -> 0, "Z" -> 25, "AA" -> 26.

    Labels longer than three letters raise ValueError.
    """
    return column_index_from_string(label.upper()) - 1


def cell_id(row: int, col: int) -> str:
    if row < 0:
        raise ValueError(f"Row index must be non-negative, got {row}")
    return f"{column_label(col)}{row + 1}"


def parse_cell_id(ref: str) -> CellAddress:
    """Parse "B3" (or "$B$3") into CellAddress(row=2, col=1)."""
    match = CELL_ID_REGEX.match(ref.replace("$", "").strip().upper())
    if not match:
        raise ValueError(f"Invalid cell id: {ref}")
    col, row = match.groups()
    return CellAddress(int(row) - 1, column_index(col))

