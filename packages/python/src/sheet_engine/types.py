import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, Union

from openpyxl.utils.datetime import WINDOWS_EPOCH, from_excel, from_ISO8601

from sheet_engine.errors import CoercionError

# Sentinels written in place of a value. They are the only failures a user
# ever sees in a cell.
ERROR = "#ERROR!"
CYCLE = "#CYCLE!"
ERROR_VALUES = frozenset({ERROR, CYCLE})


CellValue = None | int | float | str | bool
FormulaValue = Union[CellValue, "list[FormulaValue]"]


def is_formula(value: object) -> bool:
    return isinstance(value, str) and value.startswith("=")


def is_error(value: object) -> bool:
    """Return True if the value is one of the engine's error sentinels."""
    return isinstance(value, str) and value in ERROR_VALUES


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(val: str) -> int | float:
    val = val.strip()
    is_float = ("." in val) or ("e" in val) or ("E" in val)
    number = float(val) if is_float else int(val)
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError(f"Not a finite number: {val}")
    return number


def try_parse_number(val: CellValue) -> int | float | None:
    """Return the numeric reading of a value, or None if it has none."""
    if is_number(val):
        return val  # type: ignore[return-value]
    if isinstance(val, str) and val.strip():
        try:
            return parse_number(val)
        except ValueError:
            return None
    return None


def coerce_to_number(val: FormulaValue) -> int | float:
    """Convert a value to a number following spreadsheet semantics."""
    if val is None:
        return 0
    if isinstance(val, bool):
        return int(val)
    if isinstance(val, (int, float)):
        return val
    if isinstance(val, str):
        if not val.strip():
            return 0
        try:
            return parse_number(val)
        except ValueError:
            raise CoercionError(f"Cannot convert text '{val}' to number")
    if isinstance(val, list):
        raise CoercionError("Cannot convert a range to a number")
    raise CoercionError(f"Cannot convert {val!r} to number")


def coerce_to_bool(value: FormulaValue) -> bool:
    """Convert a value to boolean following spreadsheet semantics."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        if value.upper() in ("TRUE", "FALSE"):
            return value.upper() == "TRUE"
        if not value:
            return False
        raise CoercionError(f"Cannot convert text '{value}' to boolean")
    if isinstance(value, list):
        raise CoercionError("Cannot convert a range to boolean")
    raise CoercionError(f"Cannot convert {value!r} to boolean")


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


def coerce_to_text(value: FormulaValue) -> str:
    """Convert a value to text following spreadsheet semantics."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        raise CoercionError("Cannot convert a range to text")
    raise CoercionError(f"Cannot convert {value!r} to text")


def coerce_to_date(value: FormulaValue) -> date:
    """Read an ISO-8601 string or a serial day number as a date."""
    if isinstance(value, bool) or value is None:
        raise CoercionError(f"Cannot convert {value!r} to date")
    if isinstance(value, (int, float)):
        return from_excel(float(value), epoch=WINDOWS_EPOCH)
    if isinstance(value, str):
        try:
            parsed = from_ISO8601(value.strip())
        except ValueError:
            raise CoercionError(f"Cannot convert text '{value}' to date")
        if isinstance(parsed, (datetime, date)):
            return parsed
        # Times and durations carry no calendar date
        if isinstance(parsed, (time, timedelta)) or parsed is None:
            raise CoercionError(f"Text '{value}' has no date part")
    raise CoercionError(f"Cannot convert {value!r} to date")


# Aggregation helpers, which try to coerce and ignore invalid or empty values
def aggregate_numbers(
    values: Iterable[FormulaValue], skip_empty=True
) -> list[int | float]:
    result: list[int | float] = []
    for val in values:
        is_empty = val is None or (isinstance(val, str) and len(val) == 0)
        if skip_empty and is_empty:
            continue
        try:
            result.append(coerce_to_number(val))
        except CoercionError:
            continue
    return result


def aggregate_booleans(values: Iterable[FormulaValue], skip_empty=True) -> list[bool]:
    result: list[bool] = []
    for val in values:
        is_empty = val is None or (isinstance(val, str) and len(val) == 0)
        if skip_empty and is_empty:
            continue
        try:
            result.append(coerce_to_bool(val))
        except CoercionError:
            continue
    return result


def parse_input(text: str) -> CellValue:
    """Turn text typed or imported by a user into the raw value to store."""
    if text == "":
        return None
    if is_formula(text):
        return text
    if text.upper() in ("TRUE", "FALSE"):
        return text.upper() == "TRUE"
    number = try_parse_number(text)
    # Only text that reads back unchanged is a number, so "007" stays text
    if number is not None and format_number(number) == text:
        return number
    return text
