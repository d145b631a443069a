"""Lexer for formula text.

Each token kind has its own compiled pattern, tried at the current position.
Cell references, function names and other names are told apart here, so the
parser never re-reads identifier text.
"""

import re
from enum import Enum, auto
from typing import NamedTuple

from sheet_engine.errors import TokenizerError
from sheet_engine.types import ERROR_VALUES


class TokenType(Enum):
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    ERROR = auto()
    CELL = auto()
    FUNCTION = auto()
    NAME = auto()
    OPERATOR = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    COLON = auto()


class Token(NamedTuple):
    type: TokenType
    value: str
    position: int


WHITESPACE_REGEX = re.compile(r"\s+")
NUMBER_REGEX = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
STRING_REGEX = re.compile(r'"((?:[^"]|"")*)"')
OPERATOR_REGEX = re.compile(r"<>|<=|>=|[-+*/=<>&^]")
# A name directly followed by "(" (spaces allowed) calls a function
FUNCTION_REGEX = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*(?=\()")
CELL_REGEX = re.compile(r"\$?[A-Z]+\$?[1-9]\d*(?![A-Za-z0-9_$])")
NAME_REGEX = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
}


class FormulaTokenizer:
    def __init__(self, formula: str):
        self.formula = formula.strip()
        self.pos = 0

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while self.pos < len(self.formula):
            if space := WHITESPACE_REGEX.match(self.formula, self.pos):
                self.pos = space.end()
                continue
            tokens.append(self._next_token())
        return tokens

    def _emit(self, type: TokenType, value: str, end: int) -> Token:
        token = Token(type, value, self.pos)
        self.pos = end
        return token

    def _next_token(self) -> Token:
        char = self.formula[self.pos]

        if char in PUNCTUATION:
            return self._emit(PUNCTUATION[char], char, self.pos + 1)
        if char == '"':
            return self._string()
        if char == "#":
            return self._error()
        if char.isdigit() or char == ".":
            return self._number()
        if match := OPERATOR_REGEX.match(self.formula, self.pos):
            return self._emit(TokenType.OPERATOR, match.group(), match.end())
        if match := FUNCTION_REGEX.match(self.formula, self.pos):
            return self._emit(TokenType.FUNCTION, match.group(1), match.end())
        if match := CELL_REGEX.match(self.formula, self.pos):
            return self._emit(TokenType.CELL, match.group(), match.end())
        if match := NAME_REGEX.match(self.formula, self.pos):
            value = match.group()
            if value.upper() in ("TRUE", "FALSE"):
                return self._emit(TokenType.BOOLEAN, value.upper(), match.end())
            return self._emit(TokenType.NAME, value, match.end())

        raise TokenizerError(f"Unexpected character: {char} at position {self.pos}")

    def _number(self) -> Token:
        start = self.pos
        match = NUMBER_REGEX.match(self.formula, start)
        if match is None:
            raise TokenizerError(f"Invalid number format at position {start}: no digits")

        end = match.end()
        following = self.formula[end : end + 1]
        if following == ".":
            raise TokenizerError(
                f"Invalid number format at position {start}: multiple decimal points"
            )
        if following in ("e", "E"):
            raise TokenizerError(
                f"Invalid scientific notation at position {start}: missing exponent"
            )
        return self._emit(TokenType.NUMBER, match.group(), end)

    def _string(self) -> Token:
        """Double-quoted literal; a doubled quote inside stands for one quote."""
        match = STRING_REGEX.match(self.formula, self.pos)
        if match is None:
            raise TokenizerError(
                f"Unterminated string literal starting at position {self.pos}"
            )
        return self._emit(
            TokenType.STRING, match.group(1).replace('""', '"'), match.end()
        )

    def _error(self) -> Token:
        for error in ERROR_VALUES:
            if self.formula.startswith(error, self.pos):
                return self._emit(TokenType.ERROR, error, self.pos + len(error))
        raise TokenizerError(f"Invalid error value at position {self.pos}")
