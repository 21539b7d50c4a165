import pytest

from core.exceptions import (
    CellNotFoundError,
    DivisionByZeroError,
    FunctionNotImplementedError,
    IncompatibleUnitsError,
    InvalidOperationError,
    NamedRefNotFoundError,
)
from formula.evaluator import Evaluator


@pytest.fixture
def evaluator(library):
    return Evaluator(library)


def test_cancellation_leaves_currency(evaluator):
    result = evaluator.evaluate_text("=2 ft * 15 $/ft")

    assert result.value == pytest.approx(30)
    assert result.unit.canonical == "USD"


def test_cross_scale_cancellation(evaluator):
    result = evaluator.evaluate_text("=100 TB * 15 $/GB")

    assert result.value == pytest.approx(1_536_000)
    assert result.unit.canonical == "USD"


def test_rate_times_time(evaluator):
    result = evaluator.evaluate_text("=40 $/hr * 3 hr")

    assert result.value == pytest.approx(120)
    assert result.unit.canonical == "USD"


def test_same_unit_division_is_dimensionless(evaluator):
    result = evaluator.evaluate_text("=10 m / 4 m")

    assert result.value == pytest.approx(2.5)
    assert result.unit.is_dimensionless()


def test_cross_scale_division(evaluator):
    result = evaluator.evaluate_text("=1 km / 10 m")

    assert result.value == pytest.approx(100)
    assert result.unit.is_dimensionless()


def test_division_builds_compound_unit(evaluator):
    result = evaluator.evaluate_text("=100 mi / 2 hr")

    assert result.value == pytest.approx(50)
    assert result.unit.canonical == "mi/hr"


def test_multiplication_builds_powers(evaluator):
    result = evaluator.evaluate_text("=3 ft * 4 ft")

    assert result.value == pytest.approx(12)
    assert result.unit.canonical == "ft^2"


def test_dividing_dimensionless_by_unit_inverts(evaluator):
    result = evaluator.evaluate_text("=1 / 4 hr")

    assert result.value == pytest.approx(0.25)
    assert result.unit.canonical == "1/hr"


def test_dimensionless_operand_keeps_unit(evaluator):
    assert evaluator.evaluate_text("=5 kg * 2").unit.canonical == "kg"
    assert evaluator.evaluate_text("=5 kg / 2").unit.canonical == "kg"


def test_addition_aligns_to_finer_unit(evaluator):
    result = evaluator.evaluate_text("=100 m + 50 cm")

    assert result.value == pytest.approx(10050)
    assert result.unit.canonical == "cm"


def test_subtraction_aligns_to_finer_unit(evaluator):
    result = evaluator.evaluate_text("=1 min - 15 s")

    assert result.value == pytest.approx(45)
    assert result.unit.canonical == "s"


def test_addition_of_same_unit_keeps_original_text(evaluator):
    result = evaluator.evaluate_text("=$10 + $5")

    assert result.value == pytest.approx(15)
    assert str(result.unit) == "$"


def test_incompatible_addition(evaluator):
    with pytest.raises(IncompatibleUnitsError) as excinfo:
        evaluator.evaluate_text("=5 m + 3 kg")

    assert excinfo.value.operation == "add"


def test_unit_plus_plain_number_is_incompatible(evaluator):
    with pytest.raises(IncompatibleUnitsError):
        evaluator.evaluate_text("=5 m + 3")


def test_percent_is_neutral_in_multiplication(evaluator):
    result = evaluator.evaluate_text("=100 * 10%")

    assert result.value == pytest.approx(10)
    assert result.unit.is_dimensionless()


def test_percent_of_currency(evaluator):
    result = evaluator.evaluate_text("=$200 * 15%")

    assert result.value == pytest.approx(30)
    assert result.unit.canonical == "USD"


def test_division_by_zero(evaluator):
    with pytest.raises(DivisionByZeroError):
        evaluator.evaluate_text("=10 m / 0")


def test_negation_keeps_unit(evaluator):
    result = evaluator.evaluate_text("=-(5 kg)")

    assert result.value == -5
    assert result.unit.canonical == "kg"


def test_comparisons_convert_units(evaluator):
    assert evaluator.evaluate_text("=1 km > 500 m").value == 1.0
    assert evaluator.evaluate_text("=1 ft < 12 in").value == 0.0
    assert evaluator.evaluate_text("=1 ft = 12 in").value == 1.0
    assert evaluator.evaluate_text("=1 ft <> 12 in").value == 0.0


def test_logical_operators(evaluator):
    assert evaluator.evaluate_text("=1 km > 500 m AND 2 > 1").value == 1.0
    assert evaluator.evaluate_text("=1 > 2 OR NOT 3 > 4").value == 1.0
    assert evaluator.evaluate_text("=NOT 1 AND 1").value == 0.0
    assert evaluator.evaluate_text("=0 OR 0").value == 0.0


def test_comparing_incompatible_units(evaluator):
    with pytest.raises(IncompatibleUnitsError):
        evaluator.evaluate_text("=1 m > 1 kg")


def test_text_concatenation(evaluator):
    result = evaluator.evaluate_text('="Total: " + 100 m')

    assert result.value == "Total: 100 m"


def test_text_arithmetic_is_invalid(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text('="a" * 2')


def test_unknown_function(evaluator):
    with pytest.raises(FunctionNotImplementedError):
        evaluator.evaluate_text("=FOO(1)")


def test_references_without_resolver(evaluator):
    with pytest.raises(CellNotFoundError):
        evaluator.evaluate_text("=A1 + 1")
    with pytest.raises(NamedRefNotFoundError):
        evaluator.evaluate_text("=rate * 2")


def test_bare_range_is_invalid(evaluator):
    with pytest.raises(InvalidOperationError):
        evaluator.evaluate_text("=A1:A3")


def test_custom_units_cancel(evaluator):
    result = evaluator.evaluate_text("=5 widgets * 3 USD/widgets")

    assert result.value == pytest.approx(15)
    assert result.unit.canonical == "USD"
