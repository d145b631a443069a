import csv
import logging

import pandas as pd
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.formula.translate import Translator
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from sheet_engine.dependencies import resolve_grid
from sheet_engine.grid import Grid
from sheet_engine.interpreter import FormulaEvaluator
from sheet_engine.types import CellValue, coerce_to_text, is_formula


def grid_to_csv(grid: Grid, include_columns: bool = False) -> str:
    """Serialize the raw grid (formulas unevaluated) to CSV.

    Every value is quoted, embedded quotes are doubled and rows are joined by
    "\\n", without a trailing newline.
    """
    df = pd.DataFrame(
        [[coerce_to_text(value) for value in row] for row in grid.data],
        columns=grid.columns,
        dtype=object,
    )
    text = df.to_csv(
        index=False,
        header=include_columns,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    return text[:-1] if text.endswith("\n") else text


def evaluated_dataframe(
    grid: Grid, evaluator: FormulaEvaluator | None = None
) -> pd.DataFrame:
    """DataFrame of displayed values: formulas are replaced by their results."""
    context = resolve_grid(grid, evaluator)
    df = grid.to_dataframe()
    for address, value in grid.items():
        if is_formula(value):
            result = context[address.id()]
            df.iat[address.row, address.col] = (
                ", ".join(coerce_to_text(v) for v in result)  # type: ignore[arg-type]
                if isinstance(result, list)
                else result
            )
    return df


def _excel_value(value: CellValue) -> CellValue:
    if isinstance(value, str):
        # openpyxl refuses control characters in cells
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def grid_to_workbook(
    grid: Grid, title: str = "Sheet1", include_columns: bool = False
) -> Workbook:
    """Copy the raw grid into a new workbook.

    Formulas are written as their text. With include_columns, headers take the
    first row and relative references in formulas are shifted down to match.
    """
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = title

    offset = 0
    if include_columns:
        offset = 1
        for col, name in enumerate(grid.columns, start=1):
            cell = ws.cell(1, col, _excel_value(name))
            cell.font = Font(bold=True)

    for address, value in grid.items():
        row, col = address.row + 1 + offset, address.col + 1
        if offset and is_formula(value):
            origin = f"{get_column_letter(col)}{row - offset}"
            target = f"{get_column_letter(col)}{row}"
            value = Translator(value, origin=origin).translate_formula(target)
        ws.cell(row, col, _excel_value(value))

    logging.debug("Wrote %dx%d grid to worksheet %s", grid.rows, grid.cols, title)
    return wb
