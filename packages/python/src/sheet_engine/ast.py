"""Syntax tree of a parsed formula.

Nodes are immutable tuples and FormulaEvaluator dispatches on their type.
References hold the 0-based address they point at; the `$` markers are kept
only so a tree can be written back as the text it came from.
"""

from typing import NamedTuple

from sheet_engine.utils import CellAddress


class FunctionCall(NamedTuple):
    name: str
    arguments: "tuple[ASTNode, ...]"


class BinaryOp(NamedTuple):
    left: "ASTNode"
    operator: str
    right: "ASTNode"


class UnaryOp(NamedTuple):
    operator: str
    operand: "ASTNode"


class CellRef(NamedTuple):
    address: CellAddress
    absolute_col: bool = False
    absolute_row: bool = False

    @property
    def id(self) -> str:
        return self.address.id()


class RangeRef(NamedTuple):
    start: CellRef
    end: CellRef


class Literal(NamedTuple):
    value: int | float | str | bool


class ErrorLiteral(NamedTuple):
    """A sentinel such as #CYCLE! written directly into a formula."""

    value: str


class Name(NamedTuple):
    name: str


ASTNode = (
    FunctionCall
    | BinaryOp
    | UnaryOp
    | CellRef
    | RangeRef
    | Literal
    | ErrorLiteral
    | Name
)
