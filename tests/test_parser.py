import pytest

from core.exceptions import ParseError
from core.models import CellAddr
from formula.ast import (
    Add,
    And,
    CellRef,
    Divide,
    Function,
    GreaterThan,
    Multiply,
    NamedRef,
    Negate,
    Not,
    Number,
    NumberWithUnit,
    Or,
    Range,
    String,
    Subtract,
    collect_references,
)
from formula.parser import parse_formula


def test_numbers_with_units():
    assert parse_formula("=100m") == NumberWithUnit(100.0, "m")
    assert parse_formula("5.5kg") == NumberWithUnit(5.5, "kg")
    assert parse_formula("=15 $/ft") == NumberWithUnit(15.0, "$/ft")
    assert parse_formula("=2 ft^2") == NumberWithUnit(2.0, "ft^2")
    assert parse_formula("=42") == Number(42.0)


def test_currency_prefix():
    assert parse_formula("=$15") == NumberWithUnit(15.0, "$")
    assert parse_formula("=€3.5/hr") == NumberWithUnit(3.5, "€/hr")


def test_percent_literal():
    assert parse_formula("=10%") == NumberWithUnit(10.0, "%")


def test_precedence():
    expr = parse_formula("=1 + 2 * 3")

    assert expr == Add(Number(1.0), Multiply(Number(2.0), Number(3.0)))


def test_left_associativity():
    expr = parse_formula("=10 - 4 - 3")

    assert expr == Subtract(Subtract(Number(10.0), Number(4.0)), Number(3.0))


def test_unit_does_not_swallow_operators():
    expr = parse_formula("=2ft * 15$/ft")

    assert expr == Multiply(NumberWithUnit(2.0, "ft"), NumberWithUnit(15.0, "$/ft"))


def test_spaced_division_is_an_operator():
    expr = parse_formula("=10 GB / 2")

    assert expr == Divide(NumberWithUnit(10.0, "GB"), Number(2.0))


def test_unary_minus():
    assert parse_formula("=-A1") == Negate(CellRef("A", 1))
    assert parse_formula("=+5") == Number(5.0)


def test_cell_and_named_references():
    expr = parse_formula("=A1 * rate + AA100")

    assert expr == Add(Multiply(CellRef("A", 1), NamedRef("rate")), CellRef("AA", 100))


def test_function_call_with_range():
    expr = parse_formula("=SUM(A1:A10, 5m)")

    assert expr == Function("SUM", (Range(CellRef("A", 1), CellRef("A", 10)), NumberWithUnit(5.0, "m")))


def test_function_without_arguments():
    assert parse_formula("=NOW()") == Function("NOW", ())


def test_comparison():
    expr = parse_formula("=A1 > 5 m")

    assert expr == GreaterThan(CellRef("A", 1), NumberWithUnit(5.0, "m"))


def test_logical_keywords():
    expr = parse_formula("=A1 > 5 m AND NOT B1 OR flag")

    assert expr == Or(
        And(GreaterThan(CellRef("A", 1), NumberWithUnit(5.0, "m")), Not(CellRef("B", 1))),
        NamedRef("flag"),
    )


def test_logical_names_with_parentheses_are_functions():
    assert parse_formula("=AND(1, 0)") == Function("AND", (Number(1.0), Number(0.0)))
    assert parse_formula("=NOT(A1)") == Function("NOT", (CellRef("A", 1),))


def test_keyword_prefix_can_start_a_unit():
    assert parse_formula("=3 ORE") == NumberWithUnit(3.0, "ORE")


def test_string_literal_with_escaped_quote():
    assert parse_formula('="say ""hi"""') == String('say "hi"')


def test_nested_parentheses():
    expr = parse_formula("=((1 + 2)) * 3")

    assert expr == Multiply(Add(Number(1.0), Number(2.0)), Number(3.0))


def test_rendering():
    assert str(parse_formula("=SUM(A1:A3) + 5m")) == "(SUM(A1:A3) + 5m)"


@pytest.mark.parametrize("text", ["=", "=1 +", "=(1 + 2", "=1 2", "=A1 # 2", '="open', "=Total", "=A0 + 1", "=ABCD1"])
def test_parse_errors(text):
    with pytest.raises(ParseError):
        parse_formula(text)


def test_parse_error_reports_position():
    with pytest.raises(ParseError) as excinfo:
        parse_formula("=1 + #")

    assert excinfo.value.position == 4
    assert excinfo.value.token == "#"


def test_collect_references_expands_ranges():
    refs = collect_references(parse_formula("=SUM(B1:B3) + A1 + B2"))

    assert refs == [
        CellAddr(col="B", row=1),
        CellAddr(col="B", row=2),
        CellAddr(col="B", row=3),
        CellAddr(col="A", row=1),
    ]
