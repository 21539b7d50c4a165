"""Structured tool operations over a workbook"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from core.enums import CellValueType
from core.exceptions import (
    CellNotFoundError,
    CircularReferenceError,
    DivisionByZeroError,
    DocumentError,
    EvalError,
    FunctionNotImplementedError,
    IncompatibleUnitsError,
    NamedRefNotFoundError,
    ParseError,
    UnicelError,
    UnknownUnitError,
    WorkbookError,
)
from core.models import Cell, CellAddr, format_number
from core.units import Unit
from table.workbook import Workbook
from utils.fuzzy import suggest_units


logger = logging.getLogger(__name__)


class ToolError(UnicelError):
    """Tool call rejected before touching the workbook"""
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


# Most specific first
ERROR_CODES: List[Tuple[Type[Exception], str]] = [
    (ParseError, "PARSE_ERROR"),
    (CircularReferenceError, "CIRCULAR_REFERENCE"),
    (IncompatibleUnitsError, "INCOMPATIBLE_UNITS"),
    (UnknownUnitError, "UNKNOWN_UNIT"),
    (DivisionByZeroError, "DIVISION_BY_ZERO"),
    (CellNotFoundError, "CELL_NOT_FOUND"),
    (NamedRefNotFoundError, "NAME_NOT_FOUND"),
    (FunctionNotImplementedError, "UNKNOWN_FUNCTION"),
    (EvalError, "EVALUATION_ERROR"),
    (WorkbookError, "WORKBOOK_ERROR"),
    (DocumentError, "DOCUMENT_ERROR"),
    (UnicelError, "ERROR"),
]


def error_code(error: Exception) -> str:
    if isinstance(error, ToolError):
        return error.code
    for error_type, code in ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return "ERROR"


# ─────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────

class ToolErrorPayload(BaseModel):
    code: str
    message: str


class ToolResponse(BaseModel):
    """Outcome of one tool call: data on success, error otherwise"""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[ToolErrorPayload] = None

    @classmethod
    def ok(cls, data: Dict[str, Any]) -> "ToolResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str) -> "ToolResponse":
        return cls(success=False, error=ToolErrorPayload(code=code, message=message))

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)


# ─────────────────────────────────────────────────────────────
# Arguments
# ─────────────────────────────────────────────────────────────

class SheetArgs(BaseModel):
    sheet_name: Optional[str] = None


class ReadCellArgs(SheetArgs):
    cell_ref: str


class WriteCellArgs(SheetArgs):
    cell_ref: str
    value: Union[float, str, None] = None
    unit: Optional[str] = None


class EvaluateFormulaArgs(SheetArgs):
    formula: str


class ConvertValueArgs(BaseModel):
    value: float
    from_unit: str
    to_unit: str


class ConversionRateArgs(BaseModel):
    from_unit: str
    to_unit: str


class UnitArgs(BaseModel):
    unit: str


class NoArgs(BaseModel):
    pass


# ─────────────────────────────────────────────────────────────
# Handler
# ─────────────────────────────────────────────────────────────

class WorkbookTools:
    """Dispatches named tool calls against one workbook.

    Every call validates its arguments, addresses and units before the
    workbook is touched, and failures come back as a ToolResponse with
    an error code rather than an exception.
    """

    def __init__(self, workbook: Workbook):
        self.workbook = workbook
        self.library = workbook.library
        self._tools: Dict[str, Tuple[Type[BaseModel], Callable[[Any], Dict[str, Any]], str]] = {
            "read_cell": (ReadCellArgs, self.read_cell,
                          "Read a cell with its value, unit, formula and warning"),
            "write_cell": (WriteCellArgs, self.write_cell,
                           "Write a literal or formula to a cell and recalculate"),
            "evaluate_formula": (EvaluateFormulaArgs, self.evaluate_formula,
                                 "Evaluate a formula without storing it"),
            "convert_value": (ConvertValueArgs, self.convert_value,
                              "Convert a value between two compatible units"),
            "get_conversion_rate": (ConversionRateArgs, self.get_conversion_rate,
                                    "Value of one source unit in the target unit"),
            "list_compatible_units": (UnitArgs, self.list_compatible_units,
                                      "Known units sharing a unit's dimension"),
            "validate_unit": (UnitArgs, self.validate_unit,
                              "Check a unit string and suggest known symbols"),
            "list_sheets": (NoArgs, self.list_sheets,
                            "Sheets with their cell counts"),
            "get_workbook_metadata": (NoArgs, self.get_workbook_metadata,
                                      "Workbook name, sheets, names and settings"),
        }

    def tool_names(self) -> List[str]:
        return list(self._tools)

    def tool_definitions(self) -> List[Dict[str, Any]]:
        return [
            {"name": name, "description": description, "input_schema": model.model_json_schema()}
            for name, (model, _, description) in self._tools.items()
        ]

    def handle(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResponse:
        entry = self._tools.get(name)
        if entry is None:
            return ToolResponse.fail("UNKNOWN_TOOL", f"Unknown tool: {name}")
        model, method, _ = entry

        try:
            args = model.model_validate(arguments or {})
        except ValidationError as e:
            return ToolResponse.fail("INVALID_ARGUMENTS", str(e))

        logger.info("Tool call %s", name)
        try:
            return ToolResponse.ok(method(args))
        except UnicelError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolResponse.fail(error_code(e), str(e))

    # ─────────────────────────────────────────────────────────
    # Validation helpers
    # ─────────────────────────────────────────────────────────

    def _addr(self, cell_ref: str) -> CellAddr:
        try:
            return CellAddr.from_string(cell_ref)
        except ValueError as e:
            raise ToolError("INVALID_ADDRESS", str(e))

    def _sheet_name(self, sheet_name: Optional[str]) -> str:
        sheet = self.workbook.get_sheet(sheet_name)
        return sheet.name

    def _unit(self, text: str) -> Unit:
        return self.library.parse_unit(text)

    def _cell_payload(self, addr: CellAddr, cell: Cell) -> Dict[str, Any]:
        value = cell.value
        if value.type == CellValueType.NUMBER:
            rendered: Any = value.number
        elif value.type == CellValueType.ERROR:
            rendered = {"error": value.text}
        elif value.type == CellValueType.TEXT:
            rendered = value.text
        else:
            rendered = None

        display = self.workbook.preferences.display(
            cell, self.workbook.display_preference, self.library
        )
        return {
            "cell_ref": str(addr),
            "type": value.type.value,
            "value": rendered,
            "unit": {
                "canonical": cell.storage_unit.canonical,
                "original": cell.storage_unit.original,
                "dimension": str(cell.storage_unit.dimension),
                "display": str(cell.display_unit) if cell.display_unit else None,
            },
            "display": {"value": display[0], "unit": str(display[1])},
            "formula": cell.formula,
            "warning": cell.warning,
        }

    # ─────────────────────────────────────────────────────────
    # Cells
    # ─────────────────────────────────────────────────────────

    def read_cell(self, args: ReadCellArgs) -> Dict[str, Any]:
        addr = self._addr(args.cell_ref)
        sheet = self._sheet_name(args.sheet_name)
        cell = self.workbook.get_cell(addr, sheet)
        if cell is None:
            raise CellNotFoundError(str(addr), f"Cell {addr} is empty")
        return self._cell_payload(addr, cell)

    def write_cell(self, args: WriteCellArgs) -> Dict[str, Any]:
        addr = self._addr(args.cell_ref)
        sheet = self._sheet_name(args.sheet_name)

        if isinstance(args.value, float):
            unit = self._unit(args.unit) if args.unit else Unit.dimensionless()
            recalculated = self.workbook.set_cell(addr, Cell.new(args.value, unit), sheet)
        else:
            if args.unit:
                raise ToolError("INVALID_ARGUMENTS", "A unit can only accompany a numeric value")
            recalculated = self.workbook.enter(addr, args.value or "", sheet)

        cell = self.workbook.get_cell(addr, sheet)
        data = self._cell_payload(addr, cell)
        data["recalculated"] = [str(cell_addr) for cell_addr in recalculated if cell_addr != addr]
        return data

    def evaluate_formula(self, args: EvaluateFormulaArgs) -> Dict[str, Any]:
        sheet = self.workbook.get_sheet(args.sheet_name)
        result = sheet.evaluate_formula(args.formula)
        if result.is_text:
            return {"formula": args.formula, "value": result.value, "unit": "", "text": result.value}
        return {
            "formula": args.formula,
            "value": result.value,
            "unit": str(result.unit),
            "dimension": str(result.unit.dimension),
            "text": result.as_text(),
            "warning": result.warning,
        }

    # ─────────────────────────────────────────────────────────
    # Units
    # ─────────────────────────────────────────────────────────

    def _convert(self, value: float, from_unit: str, to_unit: str) -> float:
        source, target = self._unit(from_unit), self._unit(to_unit)
        converted = self.library.convert_compound(value, source.canonical, target.canonical)
        if converted is None:
            raise IncompatibleUnitsError("convert", str(source), str(target))
        return converted

    def convert_value(self, args: ConvertValueArgs) -> Dict[str, Any]:
        converted = self._convert(args.value, args.from_unit, args.to_unit)
        return {
            "original": {"value": args.value, "unit": args.from_unit},
            "converted": {"value": converted, "unit": args.to_unit},
            "conversion_rate": converted / args.value if args.value else None,
        }

    def get_conversion_rate(self, args: ConversionRateArgs) -> Dict[str, Any]:
        rate = self._convert(1.0, args.from_unit, args.to_unit)
        return {
            "from_unit": args.from_unit,
            "to_unit": args.to_unit,
            "rate": rate,
            "formula": f"1 {args.from_unit} = {format_number(rate)} {args.to_unit}",
        }

    def list_compatible_units(self, args: UnitArgs) -> Dict[str, Any]:
        unit = self._unit(args.unit)
        compatible = self.library.compatible_units(args.unit)
        return {
            "unit": args.unit,
            "dimension": str(unit.dimension),
            "compatible_units": compatible,
            "count": len(compatible),
        }

    def validate_unit(self, args: UnitArgs) -> Dict[str, Any]:
        candidates = self.library.symbols() + list(self.library.aliases)
        try:
            unit = self._unit(args.unit)
        except UnknownUnitError as e:
            return {
                "valid": False,
                "input": args.unit,
                "error": str(e),
                "suggestions": {e.symbol: suggest_units(e.symbol, candidates)},
            }

        unknown = sorted(symbol for symbol in unit.base_units() if not self.library.contains(symbol))
        return {
            "valid": True,
            "input": args.unit,
            "canonical": unit.canonical,
            "dimension": str(unit.dimension),
            "custom_symbols": unknown,
            "suggestions": {symbol: suggest_units(symbol, candidates) for symbol in unknown},
        }

    # ─────────────────────────────────────────────────────────
    # Workbook
    # ─────────────────────────────────────────────────────────

    def _sheet_rows(self) -> List[Dict[str, Any]]:
        return [
            {"name": sheet.name, "cell_count": sheet.cell_count()}
            for sheet in self.workbook.sheets
        ]

    def list_sheets(self, args: NoArgs) -> Dict[str, Any]:
        return {
            "sheets": self._sheet_rows(),
            "active_sheet": self.workbook.active_sheet.name,
        }

    def get_workbook_metadata(self, args: NoArgs) -> Dict[str, Any]:
        units_in_use = set()
        for sheet in self.workbook.sheets:
            for addr in sheet.cell_addresses():
                unit = sheet.get(addr).storage_unit
                if not unit.is_dimensionless():
                    units_in_use.add(unit.canonical)

        return {
            "name": self.workbook.name,
            "sheet_count": len(self.workbook.sheets),
            "sheets": self._sheet_rows(),
            "active_sheet": self.workbook.active_sheet.name,
            "display_preference": self.workbook.display_preference.value,
            "named_ranges": {
                name: f"{named.sheet}!{named.address}"
                for name, named in self.workbook.named_ranges.items()
            },
            "units_in_use": sorted(units_in_use),
            "dirty": self.workbook.dirty,
        }
