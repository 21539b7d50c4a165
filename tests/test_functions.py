import pytest

from core.exceptions import (
    DivisionByZeroError,
    IncompatibleUnitsError,
    InvalidOperationError,
)
from formula.evaluator import Evaluator
from formula.functions import FORMULA_FUNCTIONS, register_function
from core.models import EvalResult


@pytest.fixture
def evaluator(library):
    return Evaluator(library)


def test_sum_converts_to_first_unit(evaluator):
    result = evaluator.evaluate_text("=SUM(100 m, 50 cm)")

    assert result.value == pytest.approx(100.5)
    assert result.unit.canonical == "m"


def test_sum_rejects_incompatible_values(evaluator):
    with pytest.raises(IncompatibleUnitsError):
        evaluator.evaluate_text("=SUM(1 m, 1 kg)")


def test_average_min_max(evaluator):
    assert evaluator.evaluate_text("=AVERAGE(1 hr, 30 min)").value == pytest.approx(0.75)
    assert evaluator.evaluate_text("=AVG(2, 4)").value == pytest.approx(3)
    assert evaluator.evaluate_text("=MIN(1 km, 900 m)").value == pytest.approx(0.9)
    assert evaluator.evaluate_text("=MAX(1 km, 900 m)").value == pytest.approx(1)


def test_statistics(evaluator):
    assert evaluator.evaluate_text("=MEDIAN(3 kg, 1 kg, 2 kg)").value == pytest.approx(2)
    assert evaluator.evaluate_text("=STDEV(2, 4, 4, 4, 5, 5, 7, 9)").value == pytest.approx(2.138089935)

    variance = evaluator.evaluate_text("=VAR(1 m, 2 m, 3 m)")
    assert variance.value == pytest.approx(1)
    assert variance.unit.canonical == "m^2"


def test_count(evaluator):
    assert evaluator.evaluate_text("=COUNT(1, 2 m, 3 kg)").value == 3


def test_round_half_away_from_zero(evaluator):
    assert evaluator.evaluate_text("=ROUND(2.5)").value == 3
    assert evaluator.evaluate_text("=ROUND(-2.5)").value == -3
    result = evaluator.evaluate_text("=ROUND(3.14159 m, 2)")
    assert result.value == pytest.approx(3.14)
    assert result.unit.canonical == "m"


def test_floor_trunc_sign_abs(evaluator):
    assert evaluator.evaluate_text("=FLOOR(2.7 kg)").value == 2
    assert evaluator.evaluate_text("=TRUNC(-2.7)").value == -2
    assert evaluator.evaluate_text("=SIGN(-4 m)").value == -1
    assert evaluator.evaluate_text("=SIGN(0)").value == 0
    assert evaluator.evaluate_text("=ABS(-3 hr)").value == 3


def test_ceiling_default_significance(evaluator):
    result = evaluator.evaluate_text("=CEILING(4.2 hr)")

    assert result.value == 5
    assert result.unit.canonical == "hr"


def test_ceiling_with_plain_significance(evaluator):
    assert evaluator.evaluate_text("=CEILING(7, 5)").value == 10
    assert evaluator.evaluate_text("=CEIL(22 $, 10)").value == 30


def test_ceiling_converts_significance_unit(evaluator):
    result = evaluator.evaluate_text("=CEILING(130 min, 1 hr)")

    assert result.value == pytest.approx(180)
    assert result.unit.canonical == "min"


def test_ceiling_errors(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=CEILING(5, 0)")
    with pytest.raises(IncompatibleUnitsError):
        evaluator.evaluate_text("=CEILING(5 m, 1 kg)")
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=CEILING()")


def test_mod(evaluator):
    result = evaluator.evaluate_text("=MOD(130 min, 1 hr)")

    assert result.value == pytest.approx(10)
    assert result.unit.canonical == "min"
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=MOD(5, 0)")


def test_rounding_rejects_non_finite_numbers(evaluator):
    for formula in (
        "=FLOOR(1e308*10)",
        "=CEILING(1e308*10 - 1e308*10)",
        "=TRUNC(1e308*10)",
        "=ROUND(1e308*10)",
        "=MOD(1e308*10, 3)",
    ):
        with pytest.raises(InvalidOperationError):
            evaluator.evaluate_text(formula)


def test_round_decimals_out_of_range(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=ROUND(1, 400)")
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=ROUND(1, -400)")
    assert evaluator.evaluate_text("=ROUND(1e300, 10)").value == pytest.approx(1e300)


def test_sqrt_halves_exponents(evaluator):
    result = evaluator.evaluate_text("=SQRT(16 ft * 1 ft)")

    assert result.value == pytest.approx(4)
    assert result.unit.canonical == "ft"


def test_sqrt_of_simple_unit_is_invalid(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=SQRT(4 m)")


def test_power_scales_exponents(evaluator):
    result = evaluator.evaluate_text("=POWER(3 m, 2)")

    assert result.value == pytest.approx(9)
    assert result.unit.canonical == "m^2"
    assert evaluator.evaluate_text("=POWER(2 m, 0)").unit.is_dimensionless()


def test_power_errors(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=POWER(2, 1 m)")
    with pytest.raises(DivisionByZeroError):
        evaluator.evaluate_text("=POWER(0, -1)")
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=POWER(-8, 0.5)")


def test_if_is_lazy(evaluator):
    assert evaluator.evaluate_text("=IF(1 km > 1 m, 1, 1 / 0)").value == 1
    assert evaluator.evaluate_text('=IF(0, "yes", "no")').value == "no"
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=IF(1, 2)")


def test_logic_functions(evaluator):
    assert evaluator.evaluate_text("=AND(1, 2 m > 1 m)").value == 1.0
    assert evaluator.evaluate_text("=AND(1, 0)").value == 0.0
    assert evaluator.evaluate_text("=OR(0, 0, 3)").value == 1.0
    assert evaluator.evaluate_text("=NOT(0)").value == 1.0
    assert evaluator.evaluate_text("=AND(TRUE, NOT(FALSE))").value == 1.0


def test_comparison_functions(evaluator):
    assert evaluator.evaluate_text("=GT(1 km, 999 m)").value == 1.0
    assert evaluator.evaluate_text("=LT(1 lb, 1 kg)").value == 1.0
    assert evaluator.evaluate_text("=GTE(60 min, 1 hr)").value == 1.0
    assert evaluator.evaluate_text("=LTE(2, 1)").value == 0.0
    assert evaluator.evaluate_text("=EQ(1 hr, 3600 s)").value == 1.0
    assert evaluator.evaluate_text("=NE(1 hr, 3600 s)").value == 0.0


def test_convert_between_scales(evaluator):
    result = evaluator.evaluate_text("=CONVERT(30000 $/quarter, 1 $/year)")

    assert result.value == pytest.approx(120000)
    assert result.unit.canonical == "USD/year"


def test_convert_simple_units(evaluator):
    assert evaluator.evaluate_text("=CONVERT(5 km, 1 mi)").value == pytest.approx(3.10685596)
    assert evaluator.evaluate_text("=CONVERT(100 C, 1 F)").value == pytest.approx(212)


def test_convert_errors(evaluator):
    with pytest.raises(IncompatibleUnitsError):
        evaluator.evaluate_text("=CONVERT(5 km, 1 kg)")
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=CONVERT(5 km, 2)")


def test_percent_function(evaluator):
    result = evaluator.evaluate_text("=PERCENT(0.25)")

    assert result.value == pytest.approx(0.25)
    assert result.unit.canonical == "%"


def test_registry_accepts_new_functions(evaluator):
    @register_function("DOUBLE")
    def fn_double(ev, args):
        value = ev.evaluate(args[0])
        return EvalResult.number(value.as_number() * 2, value.unit)

    try:
        result = evaluator.evaluate_text("=double(4 kg)")
        assert result.value == 8
        assert result.unit.canonical == "kg"
    finally:
        FORMULA_FUNCTIONS.pop("DOUBLE")
