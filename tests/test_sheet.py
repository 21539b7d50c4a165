import pytest

from core.enums import CellValueType
from core.exceptions import CircularReferenceError, InvalidOperationError, ParseError
from core.models import Cell, CellAddr


def test_formula_chain(sheet, library):
    sheet.set("A1", Cell.new(10, library.get("$")))
    sheet.set("B1", Cell.new(2))
    sheet.set("A2", Cell.new(20, library.get("$")))
    sheet.set("B2", Cell.new(3))
    sheet.set("C1", Cell.with_formula("=A1*B1"))
    sheet.set("C2", Cell.with_formula("=A2*B2"))
    sheet.set("C3", Cell.with_formula("=SUM(C1:C2)"))

    sheet.recalculate(["A1", "B1", "A2", "B2"])

    total = sheet.get("C3")
    assert total.as_number() == pytest.approx(80)
    assert total.storage_unit.canonical == "USD"


def test_update_recalculates_dependents(sheet, library):
    sheet.update("A1", Cell.new(100, library.get("m")))
    sheet.update("B1", Cell.with_formula("=A1 + 50 cm"))
    assert sheet.get("B1").as_number() == pytest.approx(10050)

    recalculated = sheet.update("A1", Cell.new(1, library.get("m")))

    assert CellAddr.from_string("B1") in recalculated
    assert sheet.get("B1").as_number() == pytest.approx(150)
    assert sheet.get("B1").storage_unit.canonical == "cm"


def test_cycle_rejection_leaves_sheet_unchanged(sheet):
    sheet.set("A1", Cell.with_formula("=A3+1"))
    sheet.set("A2", Cell.with_formula("=A1+1"))

    with pytest.raises(CircularReferenceError):
        sheet.set("A3", Cell.with_formula("=A2+1"))

    assert sheet.get("A3") is None
    assert sheet.dependencies.get_dependencies(CellAddr.from_string("A3")) == set()
    assert not sheet.has_circular_reference("A1")


def test_cycle_rejection_keeps_previous_formula(sheet):
    sheet.update("A1", Cell.new(5))
    sheet.update("A2", Cell.with_formula("=A1*2"))
    sheet.update("A3", Cell.with_formula("=A1+1"))

    with pytest.raises(CircularReferenceError):
        sheet.set("A1", Cell.with_formula("=A2+1"))

    assert sheet.get("A1").formula is None
    assert sheet.get("A1").as_number() == 5
    assert sheet.dependencies.get_dependents(CellAddr.from_string("A1")) == {
        CellAddr.from_string("A2"),
        CellAddr.from_string("A3"),
    }


def test_self_reference_is_rejected(sheet):
    with pytest.raises(CircularReferenceError):
        sheet.set("B2", Cell.with_formula("=B2*2"))


def test_parse_error_rejects_set(sheet):
    sheet.update("A1", Cell.new(1))

    with pytest.raises(ParseError):
        sheet.set("A1", Cell.with_formula("=1 +"))

    assert sheet.get("A1").as_number() == 1


def test_evaluation_errors_are_stored_per_cell(sheet, library):
    sheet.set("A1", Cell.new(5, library.get("m")))
    sheet.set("A2", Cell.new(3, library.get("kg")))
    sheet.set("B1", Cell.with_formula("=A1 + A2"))
    sheet.set("B2", Cell.with_formula("=A1 * 2"))
    sheet.set("C1", Cell.with_formula("=B1 + 1 m"))

    evaluated = sheet.recalculate(["A1", "A2"])

    assert len(evaluated) == 3
    assert sheet.get("B1").value.type == CellValueType.ERROR
    assert "Incompatible units" in sheet.get("B1").value.text
    assert sheet.get("B2").as_number() == pytest.approx(10)
    assert sheet.get("C1").value.is_error
    assert "B1" in sheet.get("C1").value.text


def test_numeric_overflow_does_not_abort_recalculation(sheet):
    sheet.set("A1", Cell.new(1))
    sheet.set("B1", Cell.with_formula("=ROUND(A1, 400)"))
    sheet.set("B2", Cell.with_formula("=A1 + 1"))
    sheet.set("B3", Cell.with_formula("=FLOOR(A1 * 1e308 * 10)"))

    evaluated = sheet.recalculate(["A1"])

    assert len(evaluated) == 3
    assert sheet.get("B1").value.is_error
    assert sheet.get("B2").as_number() == 2
    assert sheet.get("B3").value.is_error


def test_missing_reference_is_an_error_value(sheet):
    sheet.update("B1", Cell.with_formula("=A1 * 2"))

    assert sheet.get("B1").value.is_error


def test_text_results_are_stored_as_text(sheet):
    sheet.update("A1", Cell.with_formula('="Total " + 5 kg'))

    assert sheet.get("A1").as_text() == "Total 5 kg"
    assert sheet.get("A1").storage_unit.is_dimensionless()


def test_ranges_skip_text_and_missing_cells(sheet, library):
    sheet.set("A1", Cell.with_text("Lengths"))
    sheet.set("A2", Cell.new(1, library.get("km")))
    sheet.set("A4", Cell.new(500, library.get("m")))
    sheet.update("B1", Cell.with_formula("=SUM(A1:A4)"))

    assert sheet.get("B1").as_number() == pytest.approx(1.5)
    assert sheet.get("B1").storage_unit.canonical == "km"


def test_multi_column_range_is_rejected(sheet):
    with pytest.raises(InvalidOperationError):
        sheet.get_range("A1", "B2")


def test_evaluate_formula_does_not_mutate(sheet, library):
    sheet.update("A1", Cell.new(2, library.get("hr")))

    result = sheet.evaluate_formula("=A1 * 40 $/hr")

    assert result.value == pytest.approx(80)
    assert sheet.cell_count() == 1


def test_named_references(sheet, library):
    sheet.update("A1", Cell.new(0.08, library.get("%")))
    sheet.update("B1", Cell.with_formula("=1000 * tax_rate"))
    assert sheet.get("B1").value.is_error

    recalculated = sheet.define_name("tax_rate", "A1")

    assert recalculated == [CellAddr.from_string("B1")]
    assert sheet.get("B1").as_number() == pytest.approx(80)

    sheet.update("A1", Cell.new(0.1, library.get("%")))
    assert sheet.get("B1").as_number() == pytest.approx(100)


def test_remove_name_rewires_readers(sheet):
    sheet.update("A1", Cell.new(4))
    sheet.define_name("qty", "A1")
    sheet.update("B1", Cell.with_formula("=qty * 2"))
    assert sheet.get("B1").as_number() == 8

    recalculated = sheet.remove_name("qty")

    assert recalculated == [CellAddr.from_string("B1")]
    assert sheet.get("B1").value.is_error
    assert sheet.dependencies.get_dependencies(CellAddr.from_string("B1")) == set()
    assert sheet.remove_name("qty") == []


def test_define_name_rejects_cycles(sheet):
    sheet.update("A1", Cell.with_formula("=total + 1"))

    with pytest.raises(CircularReferenceError):
        sheet.define_name("total", "A1")

    assert "total" not in sheet.named_refs


def test_remove_cell_drops_edges(sheet):
    sheet.set("B1", Cell.with_formula("=A1"))

    sheet.remove("B1")

    assert sheet.get("B1") is None
    assert sheet.dependencies.get_dependents(CellAddr.from_string("A1")) == set()


def test_cell_addresses_are_sorted(sheet):
    for text in ["B2", "A10", "A2", "AA1"]:
        sheet.set(text, Cell.new(1))

    assert [str(a) for a in sheet.cell_addresses()] == ["A2", "A10", "B2", "AA1"]
