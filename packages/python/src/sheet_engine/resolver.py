"""Resolution of A1-style references against an evaluation context.

The context maps canonical cell ids ("B3") to already-resolved, non-formula
values. A single reference resolves to its literal value, with absent cells
reading as 0. A range resolves to the numeric values inside its normalized
rectangle; anything absent or non-numeric is left out.
"""

import re
from typing import Mapping

from sheet_engine.types import CellValue, coerce_to_text, try_parse_number
from sheet_engine.utils import CellAddress, GridRange, parse_cell_id

Context = Mapping[str, CellValue]

# Ranges above this many cells are listed by their two corners only
MAX_EXPANDED_CELLS = 10_000

_BEFORE = r"(?<![A-Za-z0-9_$])"
_AFTER = r"(?![A-Za-z0-9_$(])"
_CELL = r"\$?[A-Z]+\$?[1-9]\d*"

# String literals are matched first so that references inside them are skipped
TOKEN_REGEX = re.compile(
    rf'(?P<string>"(?:[^"]|"")*")'
    rf"|(?P<range>{_BEFORE}(?P<start>{_CELL})\s*:\s*(?P<end>{_CELL}){_AFTER})"
    rf"|(?P<cell>{_BEFORE}{_CELL}{_AFTER})"
)


def resolve_reference(ref: str, context: Context) -> CellValue:
    """Value of a single cell; absent or empty cells read as 0."""
    address = parse_cell_id(ref)
    value = context.get(address.id())
    if value is None:
        return 0
    return value


def resolve_range(start: str, end: str, context: Context) -> list[int | float]:
    """Numeric values of the rectangle between two corners, row-major.

    A rectangle larger than the context is not walked: the context ids are
    filtered to the ones inside it instead.
    """
    values: list[int | float] = []
    for address in _addresses_in(range_of(start, end), context):
        number = try_parse_number(context.get(address.id()))
        if number is not None:
            values.append(number)
    return values


def _addresses_in(rect: GridRange, context: Context) -> list[CellAddress]:
    rows, cols = rect.shape
    if rows * cols <= len(context):
        return rect.addresses()
    inside: list[CellAddress] = []
    for ref in context:
        try:
            address = parse_cell_id(ref)
        except ValueError:
            continue
        if rect.contains(address.row, address.col):
            inside.append(address)
    return sorted(inside)


def range_of(start: str, end: str) -> GridRange:
    return GridRange(parse_cell_id(start), parse_cell_id(end))


def format_literal(value: CellValue) -> str:
    """Formula-text rendering of a resolved value."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return coerce_to_text(value)
    return '"' + coerce_to_text(value).replace('"', '""') + '"'


def substitute_references(formula: str, context: Context) -> str:
    """Rewrite a formula with every reference replaced by its resolved value.

    Ranges become bracketed lists ("[1, 2, 3]"), single cells become literals.
    Useful to show a user what a formula actually computed with.
    """

    def replace(match: re.Match) -> str:
        if match.group("string"):
            return match.group("string")
        try:
            if match.group("range"):
                numbers = resolve_range(match.group("start"), match.group("end"), context)
                return "[" + ", ".join(format_literal(n) for n in numbers) + "]"
            return format_literal(resolve_reference(match.group("cell"), context))
        except ValueError:
            # Column past the addressable range: leave the token as written
            return match.group(0)

    return TOKEN_REGEX.sub(replace, formula)


def iter_references(formula: str) -> list[CellAddress]:
    """Every cell a formula mentions, ranges expanded, in order of appearance.

    A range of more than MAX_EXPANDED_CELLS cells contributes its two corners.
    Tokens that do not address a valid cell are skipped.
    """
    addresses: list[CellAddress] = []
    for match in TOKEN_REGEX.finditer(formula):
        try:
            if match.group("range"):
                rect = range_of(match.group("start"), match.group("end"))
                rows, cols = rect.shape
                if rows * cols > MAX_EXPANDED_CELLS:
                    addresses.extend((rect.start, rect.end))
                else:
                    addresses.extend(rect.addresses())
            elif match.group("cell"):
                addresses.append(parse_cell_id(match.group("cell")))
        except ValueError:
            continue
    return addresses
