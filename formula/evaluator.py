"""Dimension-aware formula evaluation"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Type

from config import settings
from core.exceptions import (
    CellNotFoundError,
    DivisionByZeroError,
    FunctionNotImplementedError,
    IncompatibleUnitsError,
    InvalidOperationError,
    NamedRefNotFoundError,
)
from core.interfaces import CellResolver
from core.models import EvalResult
from core.units import Unit
from units.library import PERCENT, UnitLibrary
from .algebra import cancel_and_convert, invert_unit, merge_powers, rebuild_unit, unit_powers
from .ast import (
    Add,
    And,
    BinaryOp,
    Boolean,
    CellRef,
    Divide,
    Equal,
    Expr,
    Function,
    GreaterOrEqual,
    GreaterThan,
    LessOrEqual,
    LessThan,
    Multiply,
    NamedRef,
    Negate,
    Not,
    NotEqual,
    Number,
    NumberWithUnit,
    Or,
    Range,
    String,
    Subtract,
)
from .functions import FORMULA_FUNCTIONS
from .parser import parse_formula


logger = logging.getLogger(__name__)


class Evaluator:
    """Walks an expression tree and computes its value and unit.

    Args:
        library: Unit registry used for conversion and cancellation.
        resolver: Source of cell and named-reference values. Without one,
            any reference fails with CellNotFoundError/NamedRefNotFoundError.
        functions: Function table; defaults to the built-in registry.
    """

    COMPARISONS: Dict[Type[BinaryOp], Callable[[float, float], bool]] = {
        GreaterThan: lambda a, b: a > b,
        LessThan: lambda a, b: a < b,
        GreaterOrEqual: lambda a, b: a >= b,
        LessOrEqual: lambda a, b: a <= b,
    }

    def __init__(
        self,
        library: UnitLibrary,
        resolver: Optional[CellResolver] = None,
        functions: Optional[Dict[str, Callable]] = None,
    ):
        self.library = library
        self.resolver = resolver
        self.functions = FORMULA_FUNCTIONS if functions is None else functions
        self._handlers: Dict[type, Callable[[Expr], EvalResult]] = {
            Number: self._eval_number,
            NumberWithUnit: self._eval_number_with_unit,
            String: self._eval_string,
            Boolean: self._eval_boolean,
            CellRef: self._eval_cell_ref,
            NamedRef: self._eval_named_ref,
            Range: self._eval_range,
            Add: self._eval_add,
            Subtract: self._eval_subtract,
            Multiply: self._eval_multiply,
            Divide: self._eval_divide,
            Negate: self._eval_negate,
            Function: self._eval_function,
            And: self._eval_and,
            Or: self._eval_or,
            Not: self._eval_not,
            Equal: self._eval_equality,
            NotEqual: self._eval_equality,
        }
        for op in self.COMPARISONS:
            self._handlers[op] = self._eval_comparison

    def evaluate(self, expr: Expr) -> EvalResult:
        handler = self._handlers.get(type(expr))
        if handler is None:
            raise InvalidOperationError(f"Cannot evaluate {type(expr).__name__}")
        try:
            return handler(expr)
        except ArithmeticError as e:
            raise InvalidOperationError(f"Numeric error: {e}") from e

    def evaluate_text(self, formula: str) -> EvalResult:
        return self.evaluate(parse_formula(formula))

    # ─────────────────────────────────────────────────────────
    # Leaves
    # ─────────────────────────────────────────────────────────

    def _eval_number(self, expr: Number) -> EvalResult:
        return EvalResult.number(expr.value)

    def _eval_number_with_unit(self, expr: NumberWithUnit) -> EvalResult:
        unit = self.library.parse_unit(expr.unit)
        value = expr.value
        if unit.canonical == PERCENT:
            value = value / 100.0
        return EvalResult.number(value, unit)

    def _eval_string(self, expr: String) -> EvalResult:
        return EvalResult.text(expr.value)

    def _eval_boolean(self, expr: Boolean) -> EvalResult:
        return EvalResult.boolean(expr.value)

    def _eval_cell_ref(self, expr: CellRef) -> EvalResult:
        addr = expr.addr
        result = self.resolver.resolve_cell(addr) if self.resolver else None
        if result is None:
            raise CellNotFoundError(str(addr))
        return result

    def _eval_named_ref(self, expr: NamedRef) -> EvalResult:
        result = self.resolver.resolve_name(expr.name) if self.resolver else None
        if result is None:
            raise NamedRefNotFoundError(expr.name)
        return result

    def _eval_range(self, expr: Range) -> EvalResult:
        raise InvalidOperationError(f"Range {expr} can only be used as a function argument")

    # ─────────────────────────────────────────────────────────
    # Arithmetic
    # ─────────────────────────────────────────────────────────

    def _eval_add(self, expr: Add) -> EvalResult:
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        if left.is_text or right.is_text:
            return EvalResult.text(left.as_text() + right.as_text())
        return self.add_sub(left, right, "add")

    def _eval_subtract(self, expr: Subtract) -> EvalResult:
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        if left.is_text or right.is_text:
            raise InvalidOperationError("Cannot subtract text values")
        return self.add_sub(left, right, "subtract")

    def add_sub(self, left: EvalResult, right: EvalResult, operation: str) -> EvalResult:
        """Add or subtract, aligning compatible units to the finer one"""
        sign = 1.0 if operation == "add" else -1.0
        a, b = left.as_number(), right.as_number()
        left_unit, right_unit = left.unit, right.unit

        if left_unit.is_dimensionless() and right_unit.is_dimensionless():
            return EvalResult.number(a + sign * b)
        if not left_unit.is_compatible(right_unit):
            raise IncompatibleUnitsError(operation, str(left_unit), str(right_unit))
        if left_unit.is_equal(right_unit):
            return EvalResult.number(a + sign * b, left_unit)

        finer = self.library.get_finer_unit(left_unit.canonical, right_unit.canonical)
        if finer is None:
            raise IncompatibleUnitsError(operation, str(left_unit), str(right_unit))
        target = left_unit if finer == left_unit.canonical else right_unit
        a = self.convert_value(a, left_unit, target, operation)
        b = self.convert_value(b, right_unit, target, operation)
        return EvalResult.number(a + sign * b, target)

    def _eval_multiply(self, expr: Multiply) -> EvalResult:
        return self.mul_div(self.evaluate(expr.left), self.evaluate(expr.right), divide=False)

    def _eval_divide(self, expr: Divide) -> EvalResult:
        return self.mul_div(self.evaluate(expr.left), self.evaluate(expr.right), divide=True)

    def mul_div(self, left: EvalResult, right: EvalResult, divide: bool) -> EvalResult:
        """Multiply or divide, cancelling and converting units symbol by symbol"""
        operation = "divide" if divide else "multiply"
        if left.is_text or right.is_text:
            raise InvalidOperationError(f"Cannot {operation} text values")

        a, b = left.as_number(), right.as_number()
        if divide:
            if b == 0:
                raise DivisionByZeroError()
            value = a / b
        else:
            value = a * b

        left_unit = Unit.dimensionless() if left.unit.canonical == PERCENT else left.unit
        right_unit = Unit.dimensionless() if right.unit.canonical == PERCENT else right.unit

        if left_unit.is_dimensionless() and right_unit.is_dimensionless():
            return EvalResult.number(value)
        if right_unit.is_dimensionless():
            return EvalResult.number(value, left_unit)
        if left_unit.is_dimensionless():
            unit = invert_unit(right_unit, self.library) if divide else right_unit
            return EvalResult.number(value, unit)

        left_num, left_den = unit_powers(left_unit)
        right_num, right_den = unit_powers(right_unit)
        if divide:
            numerator = merge_powers(left_num, right_den)
            denominator = merge_powers(left_den, right_num)
        else:
            numerator = merge_powers(left_num, right_num)
            denominator = merge_powers(left_den, right_den)

        factor, numerator, denominator = cancel_and_convert(numerator, denominator, self.library)
        return EvalResult.number(value * factor, rebuild_unit(numerator, denominator, self.library))

    def _eval_negate(self, expr: Negate) -> EvalResult:
        operand = self.evaluate(expr.operand)
        if operand.is_text:
            raise InvalidOperationError("Cannot negate text")
        return EvalResult.number(-operand.as_number(), operand.unit)

    # ─────────────────────────────────────────────────────────
    # Comparison and logic
    # ─────────────────────────────────────────────────────────

    def aligned_pair(self, left: EvalResult, right: EvalResult, operation: str):
        """Both numbers expressed in the left operand's unit"""
        a, b = left.as_number(), right.as_number()
        if left.unit.is_equal(right.unit):
            return a, b
        if not left.unit.is_compatible(right.unit):
            raise IncompatibleUnitsError(operation, str(left.unit), str(right.unit))
        return a, self.convert_value(b, right.unit, left.unit, operation)

    def compare(self, left: EvalResult, right: EvalResult, op: Type[BinaryOp]) -> EvalResult:
        if op in (Equal, NotEqual) and (left.is_text or right.is_text):
            same = left.is_text and right.is_text and left.value == right.value
            return EvalResult.boolean(same if op is Equal else not same)
        a, b = self.aligned_pair(left, right, "compare")
        if op in (Equal, NotEqual):
            tolerance = settings.COMPARISON_TOLERANCE * max(1.0, abs(a), abs(b))
            same = abs(a - b) <= tolerance
            return EvalResult.boolean(same if op is Equal else not same)
        return EvalResult.boolean(self.COMPARISONS[op](a, b))

    def _eval_comparison(self, expr: BinaryOp) -> EvalResult:
        return self.compare(self.evaluate(expr.left), self.evaluate(expr.right), type(expr))

    def _eval_equality(self, expr: BinaryOp) -> EvalResult:
        return self.compare(self.evaluate(expr.left), self.evaluate(expr.right), type(expr))

    def is_truthy(self, result: EvalResult) -> bool:
        if result.is_text:
            return result.value != ""
        return result.as_number() != 0.0

    def _eval_and(self, expr: And) -> EvalResult:
        if not self.is_truthy(self.evaluate(expr.left)):
            return EvalResult.boolean(False)
        return EvalResult.boolean(self.is_truthy(self.evaluate(expr.right)))

    def _eval_or(self, expr: Or) -> EvalResult:
        if self.is_truthy(self.evaluate(expr.left)):
            return EvalResult.boolean(True)
        return EvalResult.boolean(self.is_truthy(self.evaluate(expr.right)))

    def _eval_not(self, expr: Not) -> EvalResult:
        return EvalResult.boolean(not self.is_truthy(self.evaluate(expr.operand)))

    # ─────────────────────────────────────────────────────────
    # Functions
    # ─────────────────────────────────────────────────────────

    def _eval_function(self, expr: Function) -> EvalResult:
        name = expr.name.upper()
        function = self.functions.get(name)
        if function is None:
            raise FunctionNotImplementedError(name)
        logger.debug("Calling %s with %d argument(s)", name, len(expr.args))
        return function(self, list(expr.args))

    def collect_values(self, args: List[Expr]) -> List[EvalResult]:
        """Evaluate arguments, expanding ranges into their numeric cells"""
        values: List[EvalResult] = []
        for arg in args:
            if isinstance(arg, Range):
                if self.resolver is None:
                    raise CellNotFoundError(str(arg.start), f"Cannot resolve range {arg}")
                values.extend(
                    result for result in self.resolver.resolve_range(arg.start.addr, arg.end.addr)
                    if not result.is_text
                )
            else:
                values.append(self.evaluate(arg))
        return values

    def convert_value(self, value: float, source: Unit, target: Unit, operation: str) -> float:
        """Convert between compatible units or raise IncompatibleUnitsError"""
        if source.is_equal(target):
            return value
        converted = self.library.convert_compound(value, source.canonical, target.canonical)
        if converted is None:
            raise IncompatibleUnitsError(operation, str(source), str(target))
        return converted
