import math
import re

import pytest
from sheet_engine.errors import CoercionError, FunctionError
from sheet_engine.functions import SheetFunctions, build_function_table, flatten_args
from sheet_engine.interpreter import evaluate
from sheet_engine.types import CYCLE, ERROR


class TestFlattenArgs:
    def test_nested_lists(self):
        assert flatten_args(1, [2, [3, 4]], 5) == [1, 2, 3, 4, 5]
        assert flatten_args() == []


class TestFunctionTable:
    def test_contains_every_function(self):
        table = build_function_table()
        for name in ["SUM", "AVERAGE", "COUNT", "COUNTA", "ROUND", "MID", "NOW", "IF"]:
            assert name in table
        assert "build_function_table" not in table

    def test_entries_are_plain_callables(self):
        table = build_function_table()
        assert table["ABS"](-3) == 3


class TestMathFunctions:
    def test_aggregates(self):
        assert SheetFunctions.SUM(1, [2, 3], None, "4") == 10
        assert SheetFunctions.SUM() == 0
        assert SheetFunctions.AVERAGE() == 0
        assert SheetFunctions.MAX() == 0
        assert SheetFunctions.MIN() == 0
        assert SheetFunctions.MAX(3, [7, "x"], -1) == 7
        assert SheetFunctions.MIN(3, [7, "x"], -1) == -1

    def test_count(self):
        assert SheetFunctions.COUNT(1, "2", "x", None, "") == 2
        assert SheetFunctions.COUNTA(1, "2", "x", None, "") == 3

    def test_aggregates_propagate_errors(self):
        assert SheetFunctions.SUM(1, ERROR) == ERROR
        assert SheetFunctions.AVERAGE([1, ERROR]) == ERROR

    def test_median_and_stdev(self):
        assert SheetFunctions.MEDIAN(1, 3, 2, 10) == 2.5
        assert SheetFunctions.STDEV(2, 4, 4, 4, 5, 5, 7, 9) == pytest.approx(2.13809, rel=1e-4)
        with pytest.raises(FunctionError):
            SheetFunctions.STDEV(1)
        with pytest.raises(FunctionError):
            SheetFunctions.MEDIAN()

    def test_power_and_roots(self):
        assert evaluate("=POWER(2, 10)") == 1024
        assert evaluate("=POWER(10, POWER(10, 10))") == ERROR
        assert evaluate("=SQRT(16)") == 4
        assert evaluate("=SQRT(-1)") == ERROR
        assert evaluate("=ABS(-3.5)") == 3.5

    def test_round(self):
        assert evaluate("=ROUND(2.5)") == 3
        assert evaluate("=ROUND(-2.5)") == -3
        assert evaluate("=ROUND(1.005, 2)") == 1.01
        assert evaluate("=ROUND(1234, -2)") == 1200
        assert isinstance(evaluate("=ROUND(2.4)"), int)

    def test_ceiling_and_floor(self):
        assert evaluate("=CEILING(4.3)") == 5
        assert evaluate("=CEILING(4.3, 0.5)") == 4.5
        assert evaluate("=FLOOR(4.7)") == 4
        assert evaluate("=FLOOR(-4.2)") == -5
        assert evaluate("=CEILING(0, 5)") == 0
        assert evaluate("=CEILING(3, 0)") == ERROR
        assert evaluate("=FLOOR(3, -1)") == ERROR

    def test_mod_sign_follows_divisor(self):
        assert evaluate("=MOD(7, 3)") == 1
        assert evaluate("=MOD(-7, 3)") == 2
        assert evaluate("=MOD(7, -3)") == -2
        assert evaluate("=MOD(7, 0)") == ERROR

    def test_trigonometry(self):
        assert evaluate("=SIN(0)") == 0
        assert evaluate("=COS(0)") == 1
        assert evaluate("=TAN(PI() / 4)") == pytest.approx(1)
        assert evaluate("=ASIN(1)") == pytest.approx(math.pi / 2)
        assert evaluate("=ACOS(1)") == 0
        assert evaluate("=ATAN(1)") == pytest.approx(math.pi / 4)
        assert evaluate("=ASIN(2)") == ERROR

    def test_logarithms(self):
        assert evaluate("=LOG(100, 10)") == pytest.approx(2)
        assert evaluate("=LOG(E())") == pytest.approx(1)
        assert evaluate("=LOG10(1000)") == pytest.approx(3)
        assert evaluate("=EXP(0)") == 1
        assert evaluate("=LOG(0)") == ERROR
        assert evaluate("=LOG(10, 1)") == ERROR
        assert evaluate("=LOG10(-1)") == ERROR

    def test_random(self):
        for _ in range(20):
            value = evaluate("=RANDOM()")
            assert 0 <= value < 1
            assert evaluate("=RANDBETWEEN(1, 3)") in {1, 2, 3}
        assert evaluate("=RANDBETWEEN(5, 5)") == 5
        assert evaluate("=RANDBETWEEN(5, 1)") == ERROR


class TestTextFunctions:
    def test_concatenate(self):
        assert evaluate('=CONCATENATE("a", 1, TRUE)') == "a1TRUE"
        assert evaluate("=CONCATENATE(A1:A2)", {"A1": 1, "A2": 2}) == "12"

    def test_substrings(self):
        assert evaluate('=LEFT("hello", 2)') == "he"
        assert evaluate('=LEFT("hello")') == "h"
        assert evaluate('=RIGHT("hello", 3)') == "llo"
        assert evaluate('=RIGHT("hi", 5)') == "hi"
        assert evaluate('=MID("hello", 2, 3)') == "ell"
        assert evaluate('=MID("hello", 10, 3)') == ""
        assert evaluate('=MID("hello", 0, 1)') == ERROR
        assert evaluate('=LEFT("hello", -1)') == ERROR

    def test_case_and_length(self):
        assert evaluate('=LEN("hello")') == 5
        assert evaluate("=LEN(1234)") == 4
        assert evaluate('=UPPER("Mixed")') == "MIXED"
        assert evaluate('=LOWER("Mixed")') == "mixed"
        assert evaluate('=TRIM("  a   b ")') == "a b"

    def test_errors_are_not_text(self):
        assert evaluate("=LEN(1/0)") == ERROR
        assert evaluate('=CONCATENATE("a", 1/0)') == ERROR
        assert evaluate('=LEFT(A1, 2)', {"A1": CYCLE}) == CYCLE
        assert evaluate('=MID("hello", 1/0, 2)') == ERROR


class TestDateFunctions:
    def test_today_and_now(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", evaluate("=TODAY()"))
        assert re.fullmatch(
            r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", evaluate("=NOW()")
        )

    def test_date_parts_from_text(self):
        assert evaluate('=YEAR("2024-03-15")') == 2024
        assert evaluate('=MONTH("2024-03-15")') == 3
        assert evaluate('=DAY("2024-03-15T10:30:00")') == 15

    def test_date_parts_from_serial_numbers(self):
        assert evaluate("=YEAR(45366)") == 2024
        assert evaluate("=MONTH(45366)") == 3
        assert evaluate("=DAY(45366)") == 15

    def test_invalid_dates(self):
        assert evaluate('=YEAR("not a date")') == ERROR
        assert evaluate("=YEAR(TRUE)") == ERROR


class TestLogicalFunctions:
    def test_if(self):
        assert evaluate('=IF(1 < 2, "yes", "no")') == "yes"
        assert evaluate('=IF(1 > 2, "yes", "no")') == "no"
        assert evaluate('=IF(1 > 2, "yes")') is False
        assert evaluate('=IF("TRUE", 1, 2)') == 1
        assert evaluate('=IF("maybe", 1, 2)') == ERROR
        assert evaluate("=IF(#ERROR!, 1, 2)") == ERROR

    def test_and_or_not(self):
        assert evaluate("=AND(TRUE, 1)") is True
        assert evaluate("=AND(TRUE, 0)") is False
        assert evaluate("=OR(FALSE, 0)") is False
        assert evaluate("=OR(FALSE, 2)") is True
        assert evaluate("=NOT(TRUE)") is False
        assert evaluate("=NOT(0)") is True
        assert evaluate("=AND(TRUE, #ERROR!)") == ERROR

    def test_iferror(self):
        assert SheetFunctions.IFERROR(ERROR, 0) == 0
        assert SheetFunctions.IFERROR("#CYCLE!", 0) == 0
        assert SheetFunctions.IFERROR("#N/A", 0) == "#N/A"


class TestCoercion:
    def test_text_that_is_not_a_number(self):
        with pytest.raises(CoercionError):
            SheetFunctions.ABS("abc")
        assert evaluate('=ABS("abc")') == ERROR

    def test_ranges_are_rejected_as_scalars(self):
        with pytest.raises(CoercionError):
            SheetFunctions.SQRT([4])
