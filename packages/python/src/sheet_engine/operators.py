import logging
import math
import operator
from typing import Any, Callable

from sheet_engine.errors import CoercionError
from sheet_engine.types import (
    ERROR,
    FormulaValue,
    coerce_to_number,
    coerce_to_text,
    is_error,
    is_number,
)


def _scalar(value: FormulaValue) -> FormulaValue:
    if isinstance(value, list):
        raise CoercionError("Ranges cannot be used as operands")
    return value


def arithmetic(
    op: Callable[[Any, Any], Any], left: FormulaValue, right: FormulaValue
) -> FormulaValue:
    """Apply a numeric operator, propagating error sentinels."""
    left, right = _scalar(left), _scalar(right)
    # Propagate errors
    if is_error(left):
        return left
    if is_error(right):
        return right

    # Fast case
    if is_number(left) and is_number(right):
        return op(left, right)

    return op(coerce_to_number(left), coerce_to_number(right))


def add(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return arithmetic(operator.add, left, right)


def subtract(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return arithmetic(operator.sub, left, right)


def multiply(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return arithmetic(operator.mul, left, right)


def divide(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    try:
        result = arithmetic(operator.truediv, left, right)
    except ZeroDivisionError:
        logging.debug("Division by zero: %r / %r", left, right)
        return ERROR
    # Keep whole quotients of integers as integers so 10/2 reads back as 5
    if (
        isinstance(result, float)
        and result.is_integer()
        and type(left) is int
        and type(right) is int
    ):
        return int(result)
    return result


def _float_pow(base: int | float, exponent: int | float) -> int | float:
    if base == 0 and exponent < 0:
        raise ZeroDivisionError("0 raised to a negative power")
    try:
        result = math.pow(base, exponent)
    except ValueError:
        raise CoercionError(
            f"Power of a negative number is not real: {base}^{exponent}"
        ) from None
    # Whole results of whole operands stay int while a float holds them exactly
    if (
        isinstance(base, int)
        and isinstance(exponent, int)
        and result.is_integer()
        and abs(result) < 2**53
    ):
        return int(result)
    return result


def power(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    try:
        return arithmetic(_float_pow, left, right)
    except ZeroDivisionError:
        return ERROR
    except OverflowError:
        logging.debug("Power out of range: %r^%r", left, right)
        return ERROR


def concatenate(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    left, right = _scalar(left), _scalar(right)
    if is_error(left):
        return left
    if is_error(right):
        return right
    return coerce_to_text(left) + coerce_to_text(right)


def _comparable(value: FormulaValue) -> tuple[int, Any]:
    # Spreadsheet ordering: numbers < text < booleans; text is case-insensitive
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (2, value)
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value.lower())
    raise CoercionError(f"Cannot compare {value!r}")


def compare(
    op: Callable[[Any, Any], bool], left: FormulaValue, right: FormulaValue
) -> FormulaValue:
    left, right = _scalar(left), _scalar(right)
    if is_error(left):
        return left
    if is_error(right):
        return right
    # Empty cells compare like the empty value of the other side's type
    if left is None and isinstance(right, str):
        left = ""
    if right is None and isinstance(left, str):
        right = ""
    return op(_comparable(left), _comparable(right))


def eq(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.eq, left, right)


def neq(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.ne, left, right)


def lt(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.lt, left, right)


def gt(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.gt, left, right)


def lte(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.le, left, right)


def gte(left: FormulaValue, right: FormulaValue) -> FormulaValue:
    return compare(operator.ge, left, right)
