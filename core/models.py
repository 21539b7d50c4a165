"""Core data models for Unicel"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from openpyxl.utils.cell import column_index_from_string, coordinate_from_string, get_column_letter
from openpyxl.utils.exceptions import CellCoordinatesException
from pydantic import BaseModel, ConfigDict, Field

from .enums import CellValueType
from .exceptions import InvalidOperationError
from .units import Unit


def format_number(value: float) -> str:
    """Render a float the short way: 42 rather than 42.0"""
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


# ─────────────────────────────────────────────────────────────
# Addresses
# ─────────────────────────────────────────────────────────────

class CellAddr(BaseModel):
    """Column letters plus 1-based row"""
    model_config = ConfigDict(frozen=True)

    col: str
    row: int = Field(ge=1)

    @classmethod
    def from_string(cls, text: str) -> "CellAddr":
        """Parse "A1" style addresses, case-insensitively"""
        try:
            col, row = coordinate_from_string(text.strip().upper())
        except CellCoordinatesException:
            raise ValueError(f"Invalid cell address: {text!r}")
        return cls(col=col, row=row)

    @classmethod
    def from_indices(cls, column: int, row: int) -> "CellAddr":
        return cls(col=get_column_letter(column), row=row)

    @property
    def column_index(self) -> int:
        return column_index_from_string(self.col)

    def sort_key(self) -> Tuple[int, int]:
        return (self.column_index, self.row)

    def __str__(self) -> str:
        return f"{self.col}{self.row}"


# ─────────────────────────────────────────────────────────────
# Cells
# ─────────────────────────────────────────────────────────────

class CellValue(BaseModel):
    """Number, text, error message, or nothing"""
    model_config = ConfigDict(frozen=True)

    type: CellValueType = CellValueType.EMPTY
    number: Optional[float] = None
    text: Optional[str] = None

    @classmethod
    def empty(cls) -> "CellValue":
        return cls()

    @classmethod
    def of_number(cls, value: float) -> "CellValue":
        return cls(type=CellValueType.NUMBER, number=float(value))

    @classmethod
    def of_text(cls, value: str) -> "CellValue":
        return cls(type=CellValueType.TEXT, text=value)

    @classmethod
    def of_error(cls, message: str) -> "CellValue":
        return cls(type=CellValueType.ERROR, text=message)

    @property
    def is_empty(self) -> bool:
        return self.type == CellValueType.EMPTY

    @property
    def is_error(self) -> bool:
        return self.type == CellValueType.ERROR

    def __str__(self) -> str:
        if self.type == CellValueType.NUMBER:
            return format_number(self.number)
        if self.type == CellValueType.ERROR:
            return f"#ERROR: {self.text}"
        return self.text or ""


class Cell(BaseModel):
    """A single spreadsheet cell"""
    value: CellValue = Field(default_factory=CellValue.empty)
    storage_unit: Unit = Field(default_factory=Unit.dimensionless)
    display_unit: Optional[Unit] = None
    formula: Optional[str] = None
    warning: Optional[str] = None

    @classmethod
    def new(cls, value: float, unit: Optional[Unit] = None) -> "Cell":
        return cls(
            value=CellValue.of_number(value),
            storage_unit=unit or Unit.dimensionless(),
        )

    @classmethod
    def with_text(cls, text: str) -> "Cell":
        return cls(value=CellValue.of_text(text))

    @classmethod
    def with_formula(cls, formula: str) -> "Cell":
        return cls(formula=formula)

    @classmethod
    def empty(cls) -> "Cell":
        return cls()

    @property
    def has_formula(self) -> bool:
        return self.formula is not None

    def as_number(self) -> Optional[float]:
        if self.value.type == CellValueType.NUMBER:
            return self.value.number
        return None

    def as_text(self) -> Optional[str]:
        if self.value.type == CellValueType.TEXT:
            return self.value.text
        return None

    def set_value(self, value: float, unit: Unit, warning: Optional[str] = None):
        self.value = CellValue.of_number(value)
        self.storage_unit = unit
        self.warning = warning

    def set_error(self, message: str):
        self.value = CellValue.of_error(message)
        self.warning = None


# ─────────────────────────────────────────────────────────────
# Evaluation
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EvalResult:
    """Outcome of evaluating an expression"""
    value: Union[float, str]
    unit: Unit = field(default_factory=Unit.dimensionless)
    warning: Optional[str] = None

    @classmethod
    def number(cls, value: float, unit: Optional[Unit] = None) -> "EvalResult":
        return cls(float(value), unit or Unit.dimensionless())

    @classmethod
    def text(cls, value: str) -> "EvalResult":
        return cls(value)

    @classmethod
    def boolean(cls, value: bool) -> "EvalResult":
        return cls(1.0 if value else 0.0)

    @property
    def is_text(self) -> bool:
        return isinstance(self.value, str)

    def as_number(self) -> float:
        if self.is_text:
            raise InvalidOperationError(f"Expected a number, got text {self.value!r}")
        return self.value

    def as_text(self) -> str:
        """Text used when the value takes part in string concatenation"""
        if self.is_text:
            return self.value
        if self.unit.is_dimensionless():
            return format_number(self.value)
        return f"{format_number(self.value)} {self.unit}"

    def to_cell(self, formula: Optional[str] = None) -> Cell:
        if self.is_text:
            cell = Cell.with_text(self.value)
        else:
            cell = Cell.new(self.value, self.unit)
        cell.formula = formula
        cell.warning = self.warning
        return cell
