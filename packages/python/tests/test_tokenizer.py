import pytest
from sheet_engine.errors import TokenizerError
from sheet_engine.tokenizer import FormulaTokenizer, Token, TokenType


def tokenize(formula: str) -> list[Token]:
    """Helper function to tokenize a formula."""
    tokenizer = FormulaTokenizer(formula)
    return tokenizer.tokenize()


def assert_tokens(formula: str, expected: list[tuple[TokenType, str]]):
    """Helper function to assert tokens match expected types and values."""
    tokens = tokenize(formula)
    assert len(tokens) == len(expected), (
        f"Expected {len(expected)} tokens, got {len(tokens)}\n"
        f"Expected: {expected}\n"
        f"Got: {[(t.type, t.value) for t in tokens]}"
    )
    for token, (exp_type, exp_value) in zip(tokens, expected):
        assert token.type == exp_type, f"Expected {exp_type}, got {token.type}"
        assert token.value == exp_value, f"Expected {exp_value}, got {token.value}"


class TestFormulaTokenizer:
    def test_simple_arithmetic(self):
        assert_tokens(
            "1 + 2",
            [
                (TokenType.NUMBER, "1"),
                (TokenType.OPERATOR, "+"),
                (TokenType.NUMBER, "2"),
            ],
        )
        assert_tokens(
            "=2*3",
            [
                (TokenType.OPERATOR, "="),
                (TokenType.NUMBER, "2"),
                (TokenType.OPERATOR, "*"),
                (TokenType.NUMBER, "3"),
            ],
        )

    def test_decimal_numbers(self):
        assert_tokens(
            "1.5 + .75",
            [
                (TokenType.NUMBER, "1.5"),
                (TokenType.OPERATOR, "+"),
                (TokenType.NUMBER, ".75"),
            ],
        )

        invalid_decimals = [
            ("1.2.3", "multiple decimal points"),
            (".", "no digits"),
        ]
        for formula, reason in invalid_decimals:
            with pytest.raises(TokenizerError, match=reason):
                tokenize(formula)

    def test_scientific_notation(self):
        assert_tokens("1.5e3", [(TokenType.NUMBER, "1.5e3")])
        assert_tokens("2E-4", [(TokenType.NUMBER, "2E-4")])
        with pytest.raises(TokenizerError, match="missing exponent"):
            tokenize("1e+")

    def test_comparison_operators(self):
        for op in ["=", "<>", "<", ">", "<=", ">="]:
            assert_tokens(
                f"A1{op}B1",
                [
                    (TokenType.CELL, "A1"),
                    (TokenType.OPERATOR, op),
                    (TokenType.CELL, "B1"),
                ],
            )

    def test_concatenation_and_power(self):
        assert_tokens(
            '"a" & 2 ^ 3',
            [
                (TokenType.STRING, "a"),
                (TokenType.OPERATOR, "&"),
                (TokenType.NUMBER, "2"),
                (TokenType.OPERATOR, "^"),
                (TokenType.NUMBER, "3"),
            ],
        )

    def test_function_call_with_range(self):
        assert_tokens(
            "SUM(A1:A10, 5)",
            [
                (TokenType.FUNCTION, "SUM"),
                (TokenType.LPAREN, "("),
                (TokenType.CELL, "A1"),
                (TokenType.COLON, ":"),
                (TokenType.CELL, "A10"),
                (TokenType.COMMA, ","),
                (TokenType.NUMBER, "5"),
                (TokenType.RPAREN, ")"),
            ],
        )

    def test_identifiers_with_digits(self):
        assert_tokens(
            "LOG10($B$2)",
            [
                (TokenType.FUNCTION, "LOG10"),
                (TokenType.LPAREN, "("),
                (TokenType.CELL, "$B$2"),
                (TokenType.RPAREN, ")"),
            ],
        )

    def test_booleans(self):
        assert_tokens(
            "true = FALSE",
            [
                (TokenType.BOOLEAN, "TRUE"),
                (TokenType.OPERATOR, "="),
                (TokenType.BOOLEAN, "FALSE"),
            ],
        )

    def test_strings(self):
        assert_tokens('"hello"', [(TokenType.STRING, "hello")])
        assert_tokens('""', [(TokenType.STRING, "")])
        # Doubled quotes are an escaped quote
        assert_tokens('"say ""hi"""', [(TokenType.STRING, 'say "hi"')])
        # Strings keep spaces and other special characters
        assert_tokens('"A1 + (x)"', [(TokenType.STRING, "A1 + (x)")])

    def test_unterminated_string(self):
        with pytest.raises(TokenizerError, match="Unterminated string"):
            tokenize('"abc')
        with pytest.raises(TokenizerError, match="Unterminated string"):
            tokenize('"abc""')

    def test_error_values(self):
        assert_tokens("#ERROR!", [(TokenType.ERROR, "#ERROR!")])
        assert_tokens(
            "IFERROR(#CYCLE!, 0)",
            [
                (TokenType.FUNCTION, "IFERROR"),
                (TokenType.LPAREN, "("),
                (TokenType.ERROR, "#CYCLE!"),
                (TokenType.COMMA, ","),
                (TokenType.NUMBER, "0"),
                (TokenType.RPAREN, ")"),
            ],
        )
        with pytest.raises(TokenizerError, match="Invalid error value"):
            tokenize("#N/A")

    def test_unexpected_character(self):
        with pytest.raises(TokenizerError, match="Unexpected character"):
            tokenize("1 % 2")
        with pytest.raises(TokenizerError, match="Unexpected character"):
            tokenize("{1, 2}")

    def test_positions(self):
        tokens = tokenize("SUM(A1)")
        assert [t.position for t in tokens] == [0, 3, 4, 6]

    def test_whitespace_is_ignored(self):
        spaced = [(t.type, t.value) for t in tokenize("  1 +   2  ")]
        compact = [(t.type, t.value) for t in tokenize("1+2")]
        assert spaced == compact
        assert tokenize("") == []

    def test_functions_cells_and_names(self):
        assert_tokens(
            "round (Total, B2)",
            [
                (TokenType.FUNCTION, "round"),
                (TokenType.LPAREN, "("),
                (TokenType.NAME, "Total"),
                (TokenType.COMMA, ","),
                (TokenType.CELL, "B2"),
                (TokenType.RPAREN, ")"),
            ],
        )
        # Row 0 and lowercase letters do not address a cell
        assert_tokens("A0", [(TokenType.NAME, "A0")])
        assert_tokens("a1", [(TokenType.NAME, "a1")])
        assert_tokens("A1B", [(TokenType.NAME, "A1B")])
