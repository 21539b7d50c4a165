"""Sheets, workbooks and the dependency graph"""

from .cell_input import parse_cell_input, split_label
from .dependency_graph import DependencyGraph
from .sheet import Sheet, SheetResolver, as_addr
from .workbook import NamedRange, Workbook

__all__ = [
    "DependencyGraph",
    "NamedRange",
    "Sheet",
    "SheetResolver",
    "Workbook",
    "as_addr",
    "parse_cell_input",
    "split_label",
]
