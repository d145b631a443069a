import logging
import math
import re
from typing import Mapping

from rapidfuzz import fuzz, process

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
from sheet_engine.errors import (
    CoercionError,
    FormulaError,
    FunctionError,
    NameNotFound,
    ParseError,
    UnknownFunction,
)
from sheet_engine.functions import FunctionTable, build_function_table
from sheet_engine.operators import (
    add,
    concatenate,
    divide,
    eq,
    gt,
    gte,
    lt,
    lte,
    multiply,
    neq,
    power,
    subtract,
)
from sheet_engine.parser import parse_formula
from sheet_engine.resolver import Context, resolve_range, resolve_reference
from sheet_engine.types import (
    ERROR,
    CellValue,
    FormulaValue,
    coerce_to_number,
    is_error,
)

# Formulas made only of numbers and + - * / ( ) skip the function table
ARITHMETIC_REGEX = re.compile(r"^[\d\s.+\-*/()]*$")


class FormulaEvaluator:
    """Evaluates formula text against an evaluation context.

    Holds no grid state: the result is a pure function of (formula, context),
    apart from the explicitly non-deterministic RANDOM, RANDBETWEEN, TODAY and
    NOW.
    """

    def __init__(self, functions: FunctionTable | None = None):
        self.functions = functions if functions is not None else build_function_table()

    def evaluate(
        self, formula: CellValue, context: Mapping[str, CellValue] | None = None
    ) -> FormulaValue:
        """Evaluate a formula, returning its value or the "#ERROR!" sentinel.

        Never raises: any failure while parsing or evaluating becomes "#ERROR!".
        """
        if not isinstance(formula, str):
            return formula
        context = context if context is not None else {}
        body = formula[1:] if formula.startswith("=") else formula

        try:
            node = parse_formula(formula)
            if ARITHMETIC_REGEX.match(body):
                result = self._evaluate_arithmetic(node)
            else:
                result = self.evaluate_node(node, context)
        except Exception as e:
            logging.debug("Formula evaluation error in %r: %s", formula, e)
            return ERROR

        if isinstance(result, float) and not math.isfinite(result):
            return ERROR
        return result

    def evaluate_node(self, node: ASTNode, context: Context) -> FormulaValue:
        """Evaluate an AST node. Raises FormulaError subclasses on failure."""

        if isinstance(node, (Literal, ErrorLiteral)):
            return node.value

        elif isinstance(node, BinaryOp):
            return self._evaluate_binary_op(node, context)

        elif isinstance(node, UnaryOp):
            return self._evaluate_unary_op(node, context)

        elif isinstance(node, CellRef):
            return resolve_reference(node.id, context)

        elif isinstance(node, RangeRef):
            return resolve_range(node.start.id, node.end.id, context)

        elif isinstance(node, FunctionCall):
            return self._evaluate_function(node, context)

        elif isinstance(node, Name):
            raise NameNotFound(f"Undefined name: {node.name}")

        raise ParseError(f"Unknown node type: {type(node)}")

    def _evaluate_binary_op(self, node: BinaryOp, context: Context) -> FormulaValue:
        left = self.evaluate_node(node.left, context)
        right = self.evaluate_node(node.right, context)

        match node.operator:
            case "+":
                return add(left, right)
            case "-":
                return subtract(left, right)
            case "*":
                return multiply(left, right)
            case "/":
                return divide(left, right)
            case "&":
                return concatenate(left, right)
            case "^":
                return power(left, right)
            case "=":
                return eq(left, right)
            case "<>":
                return neq(left, right)
            case "<":
                return lt(left, right)
            case ">":
                return gt(left, right)
            case "<=":
                return lte(left, right)
            case ">=":
                return gte(left, right)
            case _:
                raise ParseError(f"Unknown operator: {node.operator}")

    def _evaluate_unary_op(self, node: UnaryOp, context: Context) -> FormulaValue:
        value = self.evaluate_node(node.operand, context)
        if is_error(value):
            return value

        match node.operator:
            case "+":
                return value
            case "-":
                return -coerce_to_number(value)
            case _:
                raise ParseError(f"Unknown unary operator: {node.operator}")

    def _evaluate_function(self, node: FunctionCall, context: Context) -> FormulaValue:
        fn = self.functions.get(node.name)
        if fn is None:
            self._log_unknown_function(node.name)
            raise UnknownFunction(f"Unknown function: {node.name}")

        args = [self._evaluate_argument(arg, context) for arg in node.arguments]
        try:
            return fn(*args)
        except FormulaError:
            raise
        except (TypeError, ValueError, ArithmeticError) as e:
            raise FunctionError(f"{node.name} failed: {e}") from e

    def _evaluate_argument(self, node: ASTNode, context: Context) -> FormulaValue:
        # A failing argument becomes an error value, so IF and IFERROR can
        # still pick the other branch.
        try:
            return self.evaluate_node(node, context)
        except FormulaError as e:
            logging.debug("Argument evaluated to %s: %s", ERROR, e)
            return ERROR

    def _evaluate_arithmetic(self, node: ASTNode) -> FormulaValue:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, UnaryOp):
            value = self._evaluate_arithmetic(node.operand)
            return -value if node.operator == "-" and not is_error(value) else value
        if isinstance(node, BinaryOp):
            left = self._evaluate_arithmetic(node.left)
            right = self._evaluate_arithmetic(node.right)
            match node.operator:
                case "+":
                    return add(left, right)
                case "-":
                    return subtract(left, right)
                case "*":
                    return multiply(left, right)
                case "/":
                    return divide(left, right)
        raise CoercionError(f"Not a plain arithmetic expression: {node}")

    def _log_unknown_function(self, name: str) -> None:
        closest = process.extractOne(name.upper(), list(self.functions), scorer=fuzz.ratio)
        if closest is not None and closest[1] >= 60:
            logging.debug("Unknown function %s, did you mean %s?", name, closest[0])
        else:
            logging.debug("Unknown function %s", name)


_default_evaluator = FormulaEvaluator()


def evaluate(
    formula: CellValue, context: Mapping[str, CellValue] | None = None
) -> FormulaValue:
    """Evaluate a formula with the built-in function library."""
    return _default_evaluator.evaluate(formula, context)
