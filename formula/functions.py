"""Built-in spreadsheet functions.

Every function receives the evaluator and its unevaluated argument
expressions, so lazy functions (IF) and functions that read a unit literal
(CONVERT) share one calling convention with the aggregates.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Dict, List, Tuple

import numpy as np

from core.exceptions import (
    DivisionByZeroError,
    IncompatibleUnitsError,
    InvalidOperationError,
)
from core.models import EvalResult
from core.units import Unit
from units.library import PERCENT
from .algebra import scale_unit
from .ast import CellRef, Equal, Expr, GreaterOrEqual, GreaterThan, LessOrEqual, LessThan, NamedRef, NotEqual, NumberWithUnit

if TYPE_CHECKING:
    from .evaluator import Evaluator


FormulaFunction = Callable[["Evaluator", List[Expr]], EvalResult]

FORMULA_FUNCTIONS: Dict[str, FormulaFunction] = {}


def register_function(*names: str):
    """Register a function under one or more uppercase names"""
    def decorator(func: FormulaFunction) -> FormulaFunction:
        for name in names:
            FORMULA_FUNCTIONS[name.upper()] = func
        return func
    return decorator


def _require_args(name: str, args: List[Expr], minimum: int, maximum: int = None):
    maximum = minimum if maximum is None else maximum
    if not minimum <= len(args) <= maximum:
        if minimum == maximum:
            expected = f"exactly {minimum}"
        else:
            expected = f"{minimum} to {maximum}"
        raise InvalidOperationError(f"{name} requires {expected} argument(s), got {len(args)}")


def _finite(value: float, name: str) -> float:
    if not math.isfinite(value):
        raise InvalidOperationError(f"{name} cannot round a non-finite number")
    return value


def _number(evaluator: "Evaluator", expr: Expr, name: str) -> EvalResult:
    result = evaluator.evaluate(expr)
    if result.is_text:
        raise InvalidOperationError(f"{name} expects a number, got text {result.value!r}")
    return result


def _uniform_values(
    evaluator: "Evaluator",
    args: List[Expr],
    name: str,
    minimum: int = 1,
) -> Tuple[List[float], Unit]:
    """Collected values converted into the first value's unit"""
    values = evaluator.collect_values(args)
    if len(values) < minimum:
        raise InvalidOperationError(f"{name} requires at least {minimum} value(s)")
    if not values:
        return [], Unit.dimensionless()

    unit = values[0].unit
    numbers: List[float] = []
    for value in values:
        if value.is_text:
            raise InvalidOperationError(f"{name} expects numbers, got text {value.value!r}")
        if not value.unit.is_compatible(unit):
            raise IncompatibleUnitsError(name, str(unit), str(value.unit))
        numbers.append(evaluator.convert_value(value.as_number(), value.unit, unit, name))
    return numbers, unit


# ─────────────────────────────────────────────────────────────
# Aggregates
# ─────────────────────────────────────────────────────────────

@register_function("SUM")
def fn_sum(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "SUM", minimum=0)
    return EvalResult.number(sum(numbers), unit)


@register_function("AVERAGE", "AVG")
def fn_average(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "AVERAGE")
    return EvalResult.number(sum(numbers) / len(numbers), unit)


@register_function("COUNT")
def fn_count(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    values = evaluator.collect_values(args)
    return EvalResult.number(sum(1 for value in values if not value.is_text))


@register_function("MIN")
def fn_min(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "MIN")
    return EvalResult.number(min(numbers), unit)


@register_function("MAX")
def fn_max(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "MAX")
    return EvalResult.number(max(numbers), unit)


@register_function("MEDIAN")
def fn_median(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "MEDIAN")
    return EvalResult.number(float(np.median(numbers)), unit)


@register_function("STDEV")
def fn_stdev(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "STDEV", minimum=2)
    return EvalResult.number(float(np.std(numbers, ddof=1)), unit)


@register_function("VAR")
def fn_var(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    numbers, unit = _uniform_values(evaluator, args, "VAR", minimum=2)
    return EvalResult.number(float(np.var(numbers, ddof=1)), scale_unit(unit, 2, evaluator.library))


# ─────────────────────────────────────────────────────────────
# Rounding and arithmetic
# ─────────────────────────────────────────────────────────────

@register_function("ABS")
def fn_abs(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("ABS", args, 1)
    result = _number(evaluator, args[0], "ABS")
    return EvalResult.number(abs(result.as_number()), result.unit)


@register_function("ROUND")
def fn_round(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("ROUND", args, 1, 2)
    result = _number(evaluator, args[0], "ROUND")
    value = _finite(result.as_number(), "ROUND")
    decimals = 0
    if len(args) == 2:
        decimals = int(round(_finite(_number(evaluator, args[1], "ROUND").as_number(), "ROUND")))
    try:
        multiplier = 10.0 ** decimals
    except OverflowError:
        raise InvalidOperationError(f"ROUND to {decimals} decimals is out of range")
    if multiplier == 0:
        raise InvalidOperationError(f"ROUND to {decimals} decimals is out of range")
    scaled = value * multiplier
    if not math.isfinite(scaled):
        return EvalResult.number(value, result.unit)
    # half away from zero, as spreadsheets do
    rounded = math.floor(abs(scaled) + 0.5) * math.copysign(1.0, scaled)
    return EvalResult.number(rounded / multiplier, result.unit)


@register_function("FLOOR")
def fn_floor(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("FLOOR", args, 1)
    result = _number(evaluator, args[0], "FLOOR")
    return EvalResult.number(math.floor(_finite(result.as_number(), "FLOOR")), result.unit)


@register_function("CEILING", "CEIL")
def fn_ceiling(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("CEILING", args, 1, 2)
    number = _number(evaluator, args[0], "CEILING")
    significance = 1.0
    if len(args) == 2:
        sig = _number(evaluator, args[1], "CEILING")
        significance = sig.as_number()
        if not sig.unit.is_dimensionless() and not number.unit.is_dimensionless():
            significance = evaluator.convert_value(significance, sig.unit, number.unit, "CEILING")
    if significance == 0:
        raise InvalidOperationError("CEILING significance cannot be zero")
    quotient = _finite(number.as_number() / _finite(significance, "CEILING"), "CEILING")
    value = math.ceil(quotient) * significance
    return EvalResult.number(value, number.unit)


@register_function("TRUNC")
def fn_trunc(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("TRUNC", args, 1)
    result = _number(evaluator, args[0], "TRUNC")
    return EvalResult.number(math.trunc(_finite(result.as_number(), "TRUNC")), result.unit)


@register_function("SIGN")
def fn_sign(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("SIGN", args, 1)
    value = _number(evaluator, args[0], "SIGN").as_number()
    return EvalResult.number(0.0 if value == 0 else math.copysign(1.0, value))


@register_function("MOD")
def fn_mod(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("MOD", args, 2)
    dividend = _number(evaluator, args[0], "MOD")
    divisor = _number(evaluator, args[1], "MOD")
    if not dividend.unit.is_compatible(divisor.unit):
        raise IncompatibleUnitsError("MOD", str(dividend.unit), str(divisor.unit))
    divisor_value = evaluator.convert_value(divisor.as_number(), divisor.unit, dividend.unit, "MOD")
    if divisor_value == 0:
        raise InvalidOperationError("MOD divisor cannot be zero")
    if not (math.isfinite(dividend.as_number()) and math.isfinite(divisor_value)):
        raise InvalidOperationError("MOD of a non-finite number is not defined")
    return EvalResult.number(math.fmod(dividend.as_number(), divisor_value), dividend.unit)


@register_function("SQRT")
def fn_sqrt(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("SQRT", args, 1)
    result = _number(evaluator, args[0], "SQRT")
    if result.as_number() < 0:
        raise InvalidOperationError("SQRT of a negative number is not supported")
    return EvalResult.number(math.sqrt(result.as_number()), scale_unit(result.unit, 0.5, evaluator.library))


@register_function("POWER")
def fn_power(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("POWER", args, 2)
    base = _number(evaluator, args[0], "POWER")
    exponent = _number(evaluator, args[1], "POWER")
    if not exponent.unit.is_dimensionless():
        raise InvalidOperationError(f"Exponent must be dimensionless, got {exponent.unit}")
    n = exponent.as_number()
    if base.as_number() == 0 and n < 0:
        raise DivisionByZeroError("POWER of zero to a negative exponent")
    try:
        value = base.as_number() ** n
    except OverflowError:
        raise InvalidOperationError("POWER result is too large")
    if isinstance(value, complex):
        raise InvalidOperationError("POWER result is not a real number")
    return EvalResult.number(value, scale_unit(base.unit, n, evaluator.library))


# ─────────────────────────────────────────────────────────────
# Logic and comparison
# ─────────────────────────────────────────────────────────────

@register_function("IF")
def fn_if(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("IF", args, 3)
    if evaluator.is_truthy(evaluator.evaluate(args[0])):
        return evaluator.evaluate(args[1])
    return evaluator.evaluate(args[2])


@register_function("AND")
def fn_and(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    if not args:
        raise InvalidOperationError("AND requires at least one argument")
    for arg in args:
        if not evaluator.is_truthy(evaluator.evaluate(arg)):
            return EvalResult.boolean(False)
    return EvalResult.boolean(True)


@register_function("OR")
def fn_or(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    if not args:
        raise InvalidOperationError("OR requires at least one argument")
    for arg in args:
        if evaluator.is_truthy(evaluator.evaluate(arg)):
            return EvalResult.boolean(True)
    return EvalResult.boolean(False)


@register_function("NOT")
def fn_not(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("NOT", args, 1)
    return EvalResult.boolean(not evaluator.is_truthy(evaluator.evaluate(args[0])))


def _comparison(name: str, op):
    @register_function(name)
    def compare(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
        _require_args(name, args, 2)
        return evaluator.compare(evaluator.evaluate(args[0]), evaluator.evaluate(args[1]), op)
    return compare


fn_gt = _comparison("GT", GreaterThan)
fn_lt = _comparison("LT", LessThan)
fn_gte = _comparison("GTE", GreaterOrEqual)
fn_lte = _comparison("LTE", LessOrEqual)
fn_eq = _comparison("EQ", Equal)
fn_ne = _comparison("NE", NotEqual)


# ─────────────────────────────────────────────────────────────
# Units
# ─────────────────────────────────────────────────────────────

@register_function("CONVERT")
def fn_convert(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("CONVERT", args, 2)
    value = _number(evaluator, args[0], "CONVERT")
    target_expr = args[1]
    if isinstance(target_expr, NumberWithUnit):
        target = evaluator.library.parse_unit(target_expr.unit)
    elif isinstance(target_expr, (CellRef, NamedRef)):
        target = evaluator.evaluate(target_expr).unit
    else:
        raise InvalidOperationError(
            "CONVERT target must be a unit literal such as 1 ft or a cell reference"
        )
    if target.is_dimensionless():
        raise InvalidOperationError("CONVERT target has no unit")
    if not value.unit.is_compatible(target):
        raise IncompatibleUnitsError("convert", str(value.unit), str(target))
    converted = evaluator.convert_value(value.as_number(), value.unit, target, "convert")
    return EvalResult.number(converted, target)


@register_function("PERCENT")
def fn_percent(evaluator: "Evaluator", args: List[Expr]) -> EvalResult:
    _require_args("PERCENT", args, 1)
    value = _number(evaluator, args[0], "PERCENT")
    return EvalResult.number(value.as_number(), evaluator.library.get(PERCENT))
