import pytest

from core.enums import CellValueType
from core.exceptions import InvalidOperationError
from core.models import Cell, CellAddr, CellValue, EvalResult, format_number


def test_cell_addr_parsing():
    addr = CellAddr.from_string("aa10")

    assert addr.col == "AA"
    assert addr.row == 10
    assert addr.column_index == 27
    assert str(addr) == "AA10"


def test_cell_addr_from_indices():
    assert str(CellAddr.from_indices(28, 3)) == "AB3"


@pytest.mark.parametrize("text", ["1A", "A0", "A", "", "A1B"])
def test_cell_addr_rejects_invalid_text(text):
    with pytest.raises(ValueError):
        CellAddr.from_string(text)


def test_cell_addr_sort_key_orders_columns_numerically():
    addrs = [CellAddr.from_string(text) for text in ["AA1", "B2", "B1", "Z9"]]

    assert [str(a) for a in sorted(addrs, key=CellAddr.sort_key)] == ["B1", "B2", "Z9", "AA1"]


def test_format_number():
    assert format_number(42.0) == "42"
    assert format_number(2.5) == "2.5"
    assert format_number(-3.0) == "-3"


def test_cell_value_rendering():
    assert str(CellValue.of_number(10)) == "10"
    assert str(CellValue.of_text("hello")) == "hello"
    assert str(CellValue.of_error("Division by zero")) == "#ERROR: Division by zero"
    assert str(CellValue.empty()) == ""


def test_cell_constructors(library):
    cell = Cell.new(5, library.get("m"))
    assert cell.as_number() == 5.0
    assert cell.storage_unit.canonical == "m"
    assert not cell.has_formula

    formula = Cell.with_formula("=A1*2")
    assert formula.has_formula
    assert formula.value.type == CellValueType.EMPTY

    assert Cell.with_text("note").as_text() == "note"
    assert Cell.with_text("note").as_number() is None


def test_cell_set_error_clears_warning(library):
    cell = Cell.new(1)
    cell.set_value(2.0, library.get("kg"), warning="rounded")
    assert cell.warning == "rounded"

    cell.set_error("boom")
    assert cell.value.is_error
    assert cell.warning is None


def test_eval_result_text_rendering(library):
    assert EvalResult.number(100, library.get("m")).as_text() == "100 m"
    assert EvalResult.number(42).as_text() == "42"
    assert EvalResult.number(15, library.get("$")).as_text() == "15 $"
    assert EvalResult.boolean(True).value == 1.0


def test_eval_result_text_is_not_a_number():
    with pytest.raises(InvalidOperationError):
        EvalResult.text("abc").as_number()


def test_eval_result_to_cell(library):
    cell = EvalResult.number(3, library.get("hr")).to_cell("=A1")

    assert cell.formula == "=A1"
    assert cell.as_number() == 3.0
    assert cell.storage_unit.canonical == "hr"
