import io
import logging
from datetime import date, datetime
from typing import Sequence

import pandas as pd
from openpyxl.formula.translate import Translator, TranslatorError
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.formula import ArrayFormula
from openpyxl.worksheet.worksheet import Worksheet

from sheet_engine.grid import Grid
from sheet_engine.types import CellValue, is_formula, parse_input
from sheet_engine.utils import column_label


def grid_from_csv(
    text: str,
    columns: Sequence[str] | None = None,
    header: bool = False,
    empty_as_none: bool = True,
    typed: bool = False,
) -> Grid:
    """Load a grid written by grid_to_csv.

    Values come back as the text that was exported. With typed, they are read
    the way typed input is, which restores numbers, booleans and formulas
    exactly. Text that itself reads as a number (such as "12") cannot be told
    apart from the number and loads as one. Empty fields load as None unless
    empty_as_none is False.
    """
    if not text:
        return Grid(0, len(columns or []), columns=columns)

    df = pd.read_csv(
        io.StringIO(text),
        header=0 if header else None,
        dtype=str,
        keep_default_na=False,
        na_filter=False,
    )
    if header and columns is None:
        columns = [str(c) for c in df.columns]

    rows: list[list[CellValue]] = []
    for row in df.values.tolist():
        values: list[CellValue] = []
        for value in row:
            if typed:
                value = parse_input(value)
            elif value == "" and empty_as_none:
                value = None
            values.append(value)
        rows.append(values)

    cols = len(df.columns)
    if columns is not None and len(columns) != cols:
        logging.warning(
            "CSV has %d columns but %d headers were given", cols, len(columns)
        )
        columns = list(columns)[:cols] + [
            column_label(i) for i in range(len(columns), cols)
        ]
    return Grid(len(rows), cols, columns=columns, data=rows)


def _cell_value(value: object) -> CellValue:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, ArrayFormula):
        return value.text
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def grid_from_worksheet(ws: Worksheet, header: bool = False) -> Grid:
    """Read a worksheet's raw values (formulas as text) into a grid.

    With header, the first row names the columns and formula references are
    shifted up by one row, undoing grid_to_workbook(include_columns=True).
    """
    rows = [
        [_cell_value(value) for value in row]
        for row in ws.iter_rows(values_only=True)
    ]
    columns = None
    if header and rows:
        columns = [
            str(name) if name is not None else column_label(i)
            for i, name in enumerate(rows.pop(0))
        ]

    if header:
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if not is_formula(value):
                    continue
                origin = f"{get_column_letter(c + 1)}{r + 2}"
                target = f"{get_column_letter(c + 1)}{r + 1}"
                try:
                    row[c] = Translator(value, origin=origin).translate_formula(target)
                except TranslatorError:
                    logging.warning("Formula %r refers to the header row", value)

    if not rows:
        return Grid(0, len(columns or []), columns=columns)
    return Grid.from_rows(rows, columns=columns)
