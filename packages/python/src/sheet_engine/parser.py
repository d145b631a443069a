"""Formula text to syntax tree, and back.

Binary operators are parsed by precedence climbing over BINARY_PRECEDENCE, all
left-associative. Unary signs bind tighter than any binary operator, so
"-2^2" is (-2)^2.
"""

import re

from sheet_engine.ast import (
    ASTNode,
    BinaryOp,
    CellRef,
    ErrorLiteral,
    FunctionCall,
    Literal,
    Name,
    RangeRef,
    UnaryOp,
)
from sheet_engine.errors import ParseError
from sheet_engine.tokenizer import FormulaTokenizer, Token, TokenType
from sheet_engine.types import parse_number
from sheet_engine.utils import CellAddress, column_index, column_label

BINARY_PRECEDENCE = {
    "=": 1,
    "<>": 1,
    "<": 1,
    ">": 1,
    "<=": 1,
    ">=": 1,
    "&": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}

UNARY_OPERATORS = {"+", "-"}

CELL_PARTS_REGEX = re.compile(r"(\$?)([A-Z]+)(\$?)(\d+)")


def parse_formula(formula: str) -> ASTNode:
    tokens = FormulaTokenizer(formula).tokenize()
    return FormulaParser(tokens).parse()


def cell_ref(text: str) -> CellRef:
    """Build a reference node from CELL token text such as "$B3"."""
    match = CELL_PARTS_REGEX.fullmatch(text)
    if match is None:
        raise ParseError(f"Invalid cell reference: {text}")
    col_marker, column, row_marker, row = match.groups()
    return CellRef(
        CellAddress(int(row) - 1, column_index(column)),
        absolute_col=bool(col_marker),
        absolute_row=bool(row_marker),
    )


class FormulaParser:
    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.current = 0

    def parse(self) -> ASTNode:
        self.current = 0
        first = self.peek()
        if first is not None and first.type == TokenType.OPERATOR and first.value == "=":
            self.current = 1

        node = self.parse_expression()
        if (leftover := self.peek()) is not None:
            raise ParseError(
                f"Unexpected token: {leftover.type.name} at position {leftover.position}"
            )
        return node

    def peek(self) -> Token | None:
        if self.current >= len(self.tokens):
            return None
        return self.tokens[self.current]

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("Unexpected end of formula")
        self.current += 1
        return token

    def accept(self, type: TokenType) -> Token | None:
        token = self.peek()
        if token is not None and token.type == type:
            self.current += 1
            return token
        return None

    def parse_expression(self, min_precedence: int = 1) -> ASTNode:
        left = self.parse_prefix()
        while (token := self.peek()) is not None and token.type == TokenType.OPERATOR:
            precedence = BINARY_PRECEDENCE[token.value]
            if precedence < min_precedence:
                break
            self.advance()
            right = self.parse_expression(precedence + 1)
            left = BinaryOp(left, token.value, right)
        return left

    def parse_prefix(self) -> ASTNode:
        token = self.advance()

        match token.type:
            case TokenType.NUMBER:
                return Literal(parse_number(token.value))
            case TokenType.STRING:
                return Literal(token.value)
            case TokenType.BOOLEAN:
                return Literal(token.value == "TRUE")
            case TokenType.ERROR:
                return ErrorLiteral(token.value)
            case TokenType.CELL:
                return self.parse_reference(token)
            case TokenType.FUNCTION:
                self.advance()  # "("
                return self.parse_arguments(token.value)
            case TokenType.NAME:
                following = self.peek()
                if following is not None and following.type == TokenType.COLON:
                    raise ParseError(f"Invalid cell reference: {token.value}")
                return Name(token.value)
            case TokenType.OPERATOR if token.value in UNARY_OPERATORS:
                return UnaryOp(token.value, self.parse_prefix())
            case TokenType.LPAREN:
                inner = self.parse_expression()
                if not self.accept(TokenType.RPAREN):
                    raise ParseError("Expected closing parenthesis ')'")
                return inner

        raise ParseError(f"Unexpected token: {token.type.name} at position {token.position}")

    def parse_reference(self, token: Token) -> CellRef | RangeRef:
        start = cell_ref(token.value)
        if not self.accept(TokenType.COLON):
            return start

        end = self.advance()
        if end.type == TokenType.NAME:
            raise ParseError(f"Invalid cell reference: {end.value}")
        if end.type != TokenType.CELL:
            raise ParseError(
                f"Expected cell reference for end of range, got {end.type.name}"
            )
        return RangeRef(start, cell_ref(end.value))

    def parse_arguments(self, name: str) -> FunctionCall:
        if self.accept(TokenType.RPAREN):
            return FunctionCall(name, ())

        args = [self.parse_expression()]
        while not self.accept(TokenType.RPAREN):
            separator = self.peek()
            if separator is None:
                raise ParseError(f"Unexpected end of formula in call to {name}")
            if separator.type != TokenType.COMMA:
                raise ParseError(
                    f"Expected ',' or ')' in call to {name}, got {separator.type.name}"
                )
            self.advance()
            args.append(self.parse_expression())
        return FunctionCall(name, tuple(args))


def format_formula(node: ASTNode) -> str:
    """Formula text of a tree (without the leading "="), fully parenthesized."""
    match node:
        case FunctionCall(name, arguments):
            return f"{name}({', '.join(format_formula(arg) for arg in arguments)})"
        case BinaryOp(left, operator, right):
            return f"({format_formula(left)} {operator} {format_formula(right)})"
        case UnaryOp(operator, operand):
            return f"{operator}{format_formula(operand)}"
        case CellRef(address, absolute_col, absolute_row):
            return (
                f"{'$' if absolute_col else ''}{column_label(address.col)}"
                f"{'$' if absolute_row else ''}{address.row + 1}"
            )
        case RangeRef(start, end):
            return f"{format_formula(start)}:{format_formula(end)}"
        case Literal(value) if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        case Literal(value) if isinstance(value, str):
            return '"' + value.replace('"', '""') + '"'
        case Literal(value):
            return str(value)
        case ErrorLiteral(value) | Name(value):
            return value
    raise TypeError(f"Not a formula node: {node!r}")
