"""Sheet: cell storage, dependency tracking and recalculation"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from core.enums import CellValueType
from core.exceptions import (
    CellNotFoundError,
    CircularReferenceError,
    EvalError,
    InvalidOperationError,
)
from core.interfaces import CellResolver
from core.models import Cell, CellAddr, CellValue, EvalResult
from core.units import Unit
from formula.ast import Expr, NamedRef, collect_references
from formula.evaluator import Evaluator
from formula.parser import parse_formula
from units.library import UnitLibrary
from .dependency_graph import DependencyGraph


logger = logging.getLogger(__name__)

Address = Union[CellAddr, str]


def as_addr(addr: Address) -> CellAddr:
    if isinstance(addr, CellAddr):
        return addr
    return CellAddr.from_string(addr)


class SheetResolver(CellResolver):
    """Reads current cell state of a sheet for the evaluator"""

    def __init__(self, sheet: "Sheet"):
        self.sheet = sheet

    def _result(self, addr: CellAddr, cell: Cell) -> Optional[EvalResult]:
        value = cell.value
        if value.type == CellValueType.NUMBER:
            return EvalResult(value.number, cell.storage_unit)
        if value.type == CellValueType.TEXT:
            return EvalResult.text(value.text)
        if value.type == CellValueType.ERROR:
            raise CellNotFoundError(str(addr), f"Cell {addr} has error: {value.text}")
        return None

    def resolve_cell(self, addr: CellAddr) -> Optional[EvalResult]:
        cell = self.sheet.get(addr)
        if cell is None:
            return None
        return self._result(addr, cell)

    def resolve_range(self, start: CellAddr, end: CellAddr) -> List[EvalResult]:
        results: List[EvalResult] = []
        for addr, cell in self.sheet.get_range(start, end):
            result = self._result(addr, cell)
            if result is not None:
                results.append(result)
        return results

    def resolve_name(self, name: str) -> Optional[EvalResult]:
        addr = self.sheet.named_refs.get(name)
        if addr is None:
            return None
        result = self.resolve_cell(addr)
        if result is None:
            raise CellNotFoundError(str(addr), f"Named reference {name} points to empty cell {addr}")
        return result


class Sheet:
    """One tab of cells with its dependency graph.

    Args:
        name: Sheet title.
        library: Unit registry; shared read-only between sheets.
    """

    def __init__(self, name: str, library: Optional[UnitLibrary] = None):
        self.name = name
        self.library = library or UnitLibrary()
        self.dependencies = DependencyGraph()
        self.named_refs: Dict[str, CellAddr] = {}
        self._cells: Dict[CellAddr, Cell] = {}
        self._formulas: Dict[CellAddr, Expr] = {}

    # ─────────────────────────────────────────────────────────
    # Cell access
    # ─────────────────────────────────────────────────────────

    def get(self, addr: Address) -> Optional[Cell]:
        return self._cells.get(as_addr(addr))

    def cell_addresses(self) -> List[CellAddr]:
        return sorted(self._cells, key=CellAddr.sort_key)

    def cell_count(self) -> int:
        return len(self._cells)

    def get_range(self, start: Address, end: Address) -> List[Tuple[CellAddr, Cell]]:
        """Existing cells of a single-column range, top to bottom"""
        start, end = as_addr(start), as_addr(end)
        if start.col != end.col:
            raise InvalidOperationError(
                f"Only single-column ranges are supported: {start}:{end}"
            )
        first, last = sorted((start.row, end.row))
        return [
            (addr, self._cells[addr])
            for addr in (CellAddr(col=start.col, row=row) for row in range(first, last + 1))
            if addr in self._cells
        ]

    def _references(self, expr: Expr) -> Set[CellAddr]:
        references = set(collect_references(expr))
        for node in expr.walk():
            if isinstance(node, NamedRef) and node.name in self.named_refs:
                references.add(self.named_refs[node.name])
        return references

    def set(self, addr: Address, cell: Cell):
        """Store a cell, replacing its dependency edges.

        Raises:
            ParseError: The cell's formula is malformed.
            CircularReferenceError: The formula would close a cycle; the
                sheet is left exactly as it was.
        """
        addr = as_addr(addr)
        if cell.formula is not None:
            expr = parse_formula(cell.formula)
            previous = self.dependencies.set_dependencies(addr, self._references(expr))
            if self.dependencies.has_cycle_from(addr):
                self.dependencies.set_dependencies(addr, previous)
                raise CircularReferenceError(str(addr))
            self._formulas[addr] = expr
        else:
            self.dependencies.remove_dependencies(addr)
            self._formulas.pop(addr, None)
        self._cells[addr] = cell

    def remove(self, addr: Address) -> Optional[Cell]:
        addr = as_addr(addr)
        self.dependencies.remove_dependencies(addr)
        self._formulas.pop(addr, None)
        return self._cells.pop(addr, None)

    def clear(self):
        self._cells.clear()
        self._formulas.clear()
        self.dependencies.clear()

    def define_name(self, name: str, addr: Address) -> List[CellAddr]:
        """Point a name at a cell and rewire formulas that already use it.

        Returns the formula cells that read the name, recalculated.
        """
        previous_target = self.named_refs.get(name)
        self.named_refs[name] = as_addr(addr)

        readers = self._name_readers(name)
        previous_edges = {
            reader: self.dependencies.set_dependencies(reader, self._references(self._formulas[reader]))
            for reader in readers
        }
        cyclic = next((reader for reader in readers if self.dependencies.has_cycle_from(reader)), None)
        if cyclic is not None:
            for reader, edges in previous_edges.items():
                self.dependencies.set_dependencies(reader, edges)
            if previous_target is None:
                del self.named_refs[name]
            else:
                self.named_refs[name] = previous_target
            raise CircularReferenceError(str(cyclic))
        return self.recalculate(readers)

    def remove_name(self, name: str) -> List[CellAddr]:
        """Drop a name; formulas that read it lose the edge and are recalculated"""
        if self.named_refs.pop(name, None) is None:
            return []
        readers = self._name_readers(name)
        for reader in readers:
            self.dependencies.set_dependencies(reader, self._references(self._formulas[reader]))
        return self.recalculate(readers)

    def _name_readers(self, name: str) -> List[CellAddr]:
        return [
            reader
            for reader, expr in self._formulas.items()
            if any(isinstance(node, NamedRef) and node.name == name for node in expr.walk())
        ]

    def has_circular_reference(self, addr: Address) -> bool:
        return self.dependencies.has_cycle_from(as_addr(addr))

    # ─────────────────────────────────────────────────────────
    # Evaluation
    # ─────────────────────────────────────────────────────────

    def evaluator(self) -> Evaluator:
        return Evaluator(self.library, SheetResolver(self))

    def evaluate_formula(self, text: str) -> EvalResult:
        """Evaluate formula text against current cells without storing anything"""
        return self.evaluator().evaluate(parse_formula(text))

    def calculation_order(self, changed: Iterable[Address]) -> List[CellAddr]:
        return self.dependencies.calculation_order(as_addr(addr) for addr in changed)

    def recalculate(self, changed: Iterable[Address]) -> List[CellAddr]:
        """Re-evaluate every formula affected by the changed cells.

        A failing formula stores an error value and the pass continues;
        returns the formula cells that were evaluated, in order.
        """
        evaluator = self.evaluator()
        evaluated: List[CellAddr] = []

        for addr in self.calculation_order(changed):
            cell = self._cells.get(addr)
            expr = self._formulas.get(addr)
            if cell is None or expr is None:
                continue
            evaluated.append(addr)
            try:
                result = evaluator.evaluate(expr)
            except EvalError as e:
                logger.warning("%s!%s: %s", self.name, addr, e)
                cell.set_error(str(e))
                continue

            if result.is_text:
                cell.value = CellValue.of_text(result.value)
                cell.storage_unit = Unit.dimensionless()
                cell.warning = result.warning
            else:
                cell.set_value(result.value, result.unit, result.warning)

        return evaluated

    def recalculate_all(self) -> List[CellAddr]:
        return self.recalculate(list(self._formulas))

    def update(self, addr: Address, cell: Cell) -> List[CellAddr]:
        """Set a cell and recalculate everything it affects"""
        addr = as_addr(addr)
        self.set(addr, cell)
        return self.recalculate([addr])
