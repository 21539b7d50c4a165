"""Workbook: ordered sheets, named ranges and display settings"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from config import settings
from core.enums import DisplayPreference
from core.exceptions import UnicelError, WorkbookError
from core.models import Cell, CellAddr
from core.units import Unit
from units.library import UnitLibrary
from units.preferences import UnitPreferences
from .cell_input import parse_cell_input, split_label
from .sheet import Address, Sheet, as_addr


logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z_][A-Za-z0-9_]*$")


class NamedRange(BaseModel):
    """A workbook-level name for one cell"""
    sheet: str
    address: CellAddr


class Workbook:
    """Sheets sharing one unit library.

    A named range lives on one sheet and resolves inside that sheet's
    formulas.
    """

    def __init__(self, name: str = "Untitled", library: Optional[UnitLibrary] = None):
        self.name = name
        self.library = library or UnitLibrary()
        self.sheets: List[Sheet] = [Sheet(settings.DEFAULT_SHEET_NAME, self.library)]
        self.active_index = 0
        self.named_ranges: Dict[str, NamedRange] = {}
        self.display_preference = DisplayPreference(settings.DISPLAY_PREFERENCE)
        self.preferences = UnitPreferences()
        self.dirty = False

    # ─────────────────────────────────────────────────────────
    # Sheets
    # ─────────────────────────────────────────────────────────

    @property
    def active_sheet(self) -> Sheet:
        return self.sheets[self.active_index]

    def sheet_names(self) -> List[str]:
        return [sheet.name for sheet in self.sheets]

    def _index_of(self, name: str) -> int:
        for index, sheet in enumerate(self.sheets):
            if sheet.name == name:
                return index
        raise WorkbookError(f"Sheet not found: {name}", sheet=name)

    def get_sheet(self, name: Optional[str] = None) -> Sheet:
        if name is None:
            return self.active_sheet
        return self.sheets[self._index_of(name)]

    def add_sheet(self, name: Optional[str] = None) -> Sheet:
        if name is None:
            number = len(self.sheets) + 1
            while f"Sheet{number}" in self.sheet_names():
                number += 1
            name = f"Sheet{number}"
        if not name.strip():
            raise WorkbookError("Sheet name cannot be empty")
        if name in self.sheet_names():
            raise WorkbookError(f"Sheet already exists: {name}", sheet=name)
        sheet = Sheet(name, self.library)
        self.sheets.append(sheet)
        self.dirty = True
        logger.info("Added sheet %s", name)
        return sheet

    def remove_sheet(self, name: str):
        index = self._index_of(name)
        if len(self.sheets) == 1:
            raise WorkbookError("Cannot remove the last sheet", sheet=name)
        del self.sheets[index]
        if self.active_index >= len(self.sheets) or self.active_index > index:
            self.active_index = max(0, self.active_index - 1)
        self.named_ranges = {
            key: named for key, named in self.named_ranges.items() if named.sheet != name
        }
        self.dirty = True
        logger.info("Removed sheet %s", name)

    def rename_sheet(self, old: str, new: str):
        index = self._index_of(old)
        if not new.strip():
            raise WorkbookError("Sheet name cannot be empty")
        if new != old and new in self.sheet_names():
            raise WorkbookError(f"Sheet already exists: {new}", sheet=new)
        self.sheets[index].name = new
        for named in self.named_ranges.values():
            if named.sheet == old:
                named.sheet = new
        self.dirty = True

    def set_active(self, name: str):
        self.active_index = self._index_of(name)

    # ─────────────────────────────────────────────────────────
    # Named ranges
    # ─────────────────────────────────────────────────────────

    def define_name(self, name: str, address: Address, sheet: Optional[str] = None):
        if not NAME_PATTERN.match(name):
            raise WorkbookError(
                f"Invalid name {name!r}: names start with a lowercase letter or underscore"
            )
        target = self.get_sheet(sheet)
        addr = as_addr(address)
        target.define_name(name, addr)
        previous = self.named_ranges.get(name)
        if previous is not None and previous.sheet != target.name:
            self.get_sheet(previous.sheet).remove_name(name)
        self.named_ranges[name] = NamedRange(sheet=target.name, address=addr)
        self.dirty = True

    def remove_name(self, name: str):
        named = self.named_ranges.pop(name, None)
        if named is None:
            raise WorkbookError(f"Named range not found: {name}")
        self.get_sheet(named.sheet).remove_name(name)
        self.dirty = True

    # ─────────────────────────────────────────────────────────
    # Cells
    # ─────────────────────────────────────────────────────────

    def set_cell(self, address: Address, cell: Cell, sheet: Optional[str] = None) -> List[CellAddr]:
        """Store a cell and recalculate its dependents"""
        recalculated = self.get_sheet(sheet).update(address, cell)
        self.dirty = True
        return recalculated

    def enter(self, address: Address, text: str, sheet: Optional[str] = None) -> List[CellAddr]:
        """Store user-typed text; a "label: value" prefix also defines a name"""
        label, content = split_label(text)
        cell = parse_cell_input(content, self.library)
        if label is None:
            return self.set_cell(address, cell, sheet)

        previous = self.named_ranges.get(label)
        self.define_name(label, address, sheet)
        try:
            return self.set_cell(address, cell, sheet)
        except UnicelError:
            if previous is None:
                self.remove_name(label)
            else:
                self.define_name(label, previous.address, previous.sheet)
            raise

    def get_cell(self, address: Address, sheet: Optional[str] = None) -> Optional[Cell]:
        return self.get_sheet(sheet).get(address)

    def recalculate_all(self) -> int:
        return sum(len(sheet.recalculate_all()) for sheet in self.sheets)

    def display_value(
        self, address: Address, sheet: Optional[str] = None
    ) -> Tuple[Optional[float], Unit]:
        cell = self.get_cell(address, sheet)
        if cell is None:
            return None, Unit.dimensionless()
        return self.preferences.display(cell, self.display_preference, self.library)

    def mark_clean(self):
        self.dirty = False
