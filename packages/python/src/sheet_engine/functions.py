import math
import random
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Callable, Mapping

import numpy as np

from sheet_engine.errors import FunctionError
from sheet_engine.operators import power
from sheet_engine.types import (
    FormulaValue,
    aggregate_booleans,
    aggregate_numbers,
    coerce_to_bool,
    coerce_to_date,
    coerce_to_number,
    coerce_to_text,
    is_error,
)

FunctionTable = Mapping[str, Callable[..., FormulaValue]]


def flatten_args(*args: FormulaValue) -> list[FormulaValue]:
    """Flatten multiple function arguments into a single list of non-array values."""
    result: list[FormulaValue] = []
    for arg in args:
        if isinstance(arg, list):
            result.extend(flatten_args(*arg))
        else:
            result.append(arg)
    return result


def first_error(values: list[FormulaValue]) -> FormulaValue:
    """Return the first error sentinel among the values, if any."""
    for value in values:
        if is_error(value):
            return value
    return None


def _numbers(*args: FormulaValue) -> list[int | float]:
    return aggregate_numbers(flatten_args(*args))


def _whole(value: FormulaValue, what: str) -> int:
    num = coerce_to_number(value)
    if num != int(num):
        num = math.floor(num)
    if num < 0:
        raise FunctionError(f"{what} must be non-negative, got {value}")
    return int(num)


class SheetFunctions:
    """Collection of spreadsheet function implementations."""

    # Math

    @staticmethod
    def SUM(*args: FormulaValue) -> FormulaValue:
        """Sum of arguments, handling ranges."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        return sum(aggregate_numbers(values))

    @staticmethod
    def AVERAGE(*args: FormulaValue) -> FormulaValue:
        """Average of the numeric arguments, ignoring empty cells."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        nums = aggregate_numbers(values)
        return (sum(nums) / len(nums)) if nums else 0

    @staticmethod
    def COUNT(*args: FormulaValue) -> FormulaValue:
        """Count the arguments that can be read as numbers."""
        return len(_numbers(*args))

    @staticmethod
    def COUNTA(*args: FormulaValue) -> FormulaValue:
        """Count the non-empty arguments, whatever their type."""
        return sum(1 for value in flatten_args(*args) if value is not None and value != "")

    @staticmethod
    def MAX(*args: FormulaValue) -> FormulaValue:
        """Return the maximum value, ignoring empty cells."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        nums = aggregate_numbers(values)
        return max(nums) if nums else 0

    @staticmethod
    def MIN(*args: FormulaValue) -> FormulaValue:
        """Return the minimum value, ignoring empty cells."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        nums = aggregate_numbers(values)
        return min(nums) if nums else 0

    @staticmethod
    def MEDIAN(*args: FormulaValue) -> FormulaValue:
        nums = _numbers(*args)
        if not nums:
            raise FunctionError("MEDIAN requires at least one number")
        return float(np.median(nums))

    @staticmethod
    def STDEV(*args: FormulaValue) -> FormulaValue:
        """Sample standard deviation."""
        nums = _numbers(*args)
        if len(nums) < 2:
            raise FunctionError("STDEV requires at least two numbers")
        return float(np.std(nums, ddof=1))

    @staticmethod
    def POWER(base: FormulaValue, exponent: FormulaValue) -> FormulaValue:
        """POWER function that matches ^ operator behavior."""
        return power(base, exponent)

    @staticmethod
    def SQRT(x: FormulaValue) -> FormulaValue:
        num = coerce_to_number(x)
        if num < 0:
            raise FunctionError("SQRT requires a non-negative input")
        return math.sqrt(num)

    @staticmethod
    def ABS(x: FormulaValue) -> FormulaValue:
        return abs(coerce_to_number(x))

    @staticmethod
    def ROUND(value: FormulaValue, digits: FormulaValue = 0) -> FormulaValue:
        """Round half away from zero to the given number of digits."""
        num = coerce_to_number(value)
        places = int(coerce_to_number(digits))
        quantum = Decimal(1).scaleb(-places)
        rounded = Decimal(str(num)).quantize(quantum, rounding=ROUND_HALF_UP)
        return float(rounded) if places > 0 else int(rounded)

    @staticmethod
    def CEILING(number: FormulaValue, significance: FormulaValue = 1) -> FormulaValue:
        """Round up to the nearest multiple of significance."""
        num = coerce_to_number(number)
        sig = coerce_to_number(significance)

        if num == 0:
            return 0
        if sig == 0:
            raise FunctionError("Significance cannot be zero")
        if num > 0 and sig < 0:
            raise FunctionError(
                "Positive number with negative significance is not allowed"
            )
        return math.ceil(num / sig) * sig

    @staticmethod
    def FLOOR(number: FormulaValue, significance: FormulaValue = 1) -> FormulaValue:
        """Round down to the nearest multiple of significance."""
        num = coerce_to_number(number)
        sig = coerce_to_number(significance)

        if num == 0:
            return 0
        if sig == 0:
            raise FunctionError("Significance cannot be zero")
        if num > 0 and sig < 0:
            raise FunctionError(
                "Positive number with negative significance is not allowed"
            )
        return math.floor(num / sig) * sig

    @staticmethod
    def MOD(number: FormulaValue, divisor: FormulaValue) -> FormulaValue:
        """Remainder with the sign of the divisor."""
        d = coerce_to_number(divisor)
        if d == 0:
            raise FunctionError("MOD divisor cannot be zero")
        return coerce_to_number(number) % d

    @staticmethod
    def PI() -> FormulaValue:
        return math.pi

    @staticmethod
    def E() -> FormulaValue:
        return math.e

    @staticmethod
    def SIN(x: FormulaValue) -> FormulaValue:
        return math.sin(coerce_to_number(x))

    @staticmethod
    def COS(x: FormulaValue) -> FormulaValue:
        return math.cos(coerce_to_number(x))

    @staticmethod
    def TAN(x: FormulaValue) -> FormulaValue:
        return math.tan(coerce_to_number(x))

    @staticmethod
    def ASIN(x: FormulaValue) -> FormulaValue:
        return math.asin(coerce_to_number(x))

    @staticmethod
    def ACOS(x: FormulaValue) -> FormulaValue:
        return math.acos(coerce_to_number(x))

    @staticmethod
    def ATAN(x: FormulaValue) -> FormulaValue:
        return math.atan(coerce_to_number(x))

    @staticmethod
    def LOG(value: FormulaValue, base: FormulaValue = math.e) -> FormulaValue:
        """Logarithm of value in the given base (natural log by default)."""
        num = coerce_to_number(value)
        b = coerce_to_number(base)
        if num <= 0 or b <= 0 or b == 1:
            raise FunctionError(f"LOG is undefined for value={num}, base={b}")
        return math.log(num, b)

    @staticmethod
    def LOG10(value: FormulaValue) -> FormulaValue:
        num = coerce_to_number(value)
        if num <= 0:
            raise FunctionError("LOG10 requires positive input")
        return math.log10(num)

    @staticmethod
    def EXP(x: FormulaValue) -> FormulaValue:
        """Return e raised to the power of x."""
        return math.exp(coerce_to_number(x))

    @staticmethod
    def RANDOM() -> FormulaValue:
        """Uniform random number in [0, 1)."""
        return random.random()

    @staticmethod
    def RANDBETWEEN(low: FormulaValue, high: FormulaValue) -> FormulaValue:
        """Random integer between low and high, both included."""
        lo = math.ceil(coerce_to_number(low))
        hi = math.floor(coerce_to_number(high))
        if lo > hi:
            raise FunctionError(f"RANDBETWEEN bounds are inverted: {low} > {high}")
        return random.randint(lo, hi)

    # Text

    @staticmethod
    def CONCATENATE(*args: FormulaValue) -> FormulaValue:
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        return "".join(coerce_to_text(val) for val in values)

    @staticmethod
    def LEFT(text: FormulaValue, num_chars: FormulaValue = 1) -> FormulaValue:
        if err := first_error([text, num_chars]):
            return err
        return coerce_to_text(text)[: _whole(num_chars, "LEFT length")]

    @staticmethod
    def RIGHT(text: FormulaValue, num_chars: FormulaValue = 1) -> FormulaValue:
        if err := first_error([text, num_chars]):
            return err
        s = coerce_to_text(text)
        n = _whole(num_chars, "RIGHT length")
        return s[max(len(s) - n, 0) :]

    @staticmethod
    def MID(text: FormulaValue, start: FormulaValue, num_chars: FormulaValue) -> FormulaValue:
        """Substring of num_chars characters starting at the 1-based start."""
        if err := first_error([text, start, num_chars]):
            return err
        s = coerce_to_text(text)
        begin = int(coerce_to_number(start))
        if begin < 1:
            raise FunctionError(f"MID start must be at least 1, got {start}")
        n = _whole(num_chars, "MID length")
        return s[begin - 1 : begin - 1 + n]

    @staticmethod
    def LEN(text: FormulaValue) -> FormulaValue:
        if is_error(text):
            return text
        return len(coerce_to_text(text))

    @staticmethod
    def UPPER(text: FormulaValue) -> FormulaValue:
        if is_error(text):
            return text
        return coerce_to_text(text).upper()

    @staticmethod
    def LOWER(text: FormulaValue) -> FormulaValue:
        if is_error(text):
            return text
        return coerce_to_text(text).lower()

    @staticmethod
    def TRIM(text: FormulaValue) -> FormulaValue:
        """Strip the text and collapse runs of whitespace to single spaces."""
        if is_error(text):
            return text
        return " ".join(coerce_to_text(text).split())

    # Date

    @staticmethod
    def TODAY() -> FormulaValue:
        """Current UTC date as YYYY-MM-DD."""
        return datetime.now(timezone.utc).date().isoformat()

    @staticmethod
    def NOW() -> FormulaValue:
        """Current UTC timestamp, e.g. 2024-05-01T09:30:00.000Z."""
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    @staticmethod
    def YEAR(date_value: FormulaValue) -> FormulaValue:
        return coerce_to_date(date_value).year

    @staticmethod
    def MONTH(date_value: FormulaValue) -> FormulaValue:
        return coerce_to_date(date_value).month

    @staticmethod
    def DAY(date_value: FormulaValue) -> FormulaValue:
        return coerce_to_date(date_value).day

    # Logical

    @staticmethod
    def IF(
        condition: FormulaValue,
        true_value: FormulaValue,
        false_value: FormulaValue = False,
    ) -> FormulaValue:
        """Return true_value if condition is True, false_value otherwise."""
        if is_error(condition):
            return condition
        return true_value if coerce_to_bool(condition) else false_value

    @staticmethod
    def IFERROR(value: FormulaValue, error_value: FormulaValue) -> FormulaValue:
        """Return error_value if value is an error, value otherwise."""
        return error_value if is_error(value) else value

    @staticmethod
    def AND(*args: FormulaValue) -> FormulaValue:
        """Return True if all arguments are True."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        return all(aggregate_booleans(values))

    @staticmethod
    def OR(*args: FormulaValue) -> FormulaValue:
        """Return True if any argument is True."""
        values = flatten_args(*args)
        if err := first_error(values):
            return err
        return any(aggregate_booleans(values))

    @staticmethod
    def NOT(value: FormulaValue) -> FormulaValue:
        if is_error(value):
            return value
        return not coerce_to_bool(value)


def build_function_table() -> FunctionTable:
    """Return a read-only name -> callable table of every SheetFunctions member."""
    table: dict[str, Callable[..., FormulaValue]] = {}
    for name, member in vars(SheetFunctions).items():
        if name.startswith("_") or not isinstance(member, staticmethod):
            continue
        table[name] = member.__func__
    return MappingProxyType(table)
