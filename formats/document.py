"""JSON document shape for saved workbooks (.usheet)"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from config import settings as app_settings
from core.enums import CellValueType, DisplayPreference
from core.exceptions import DocumentError, UnicelError
from core.models import Cell, CellAddr, CellValue
from table.sheet import Sheet
from table.workbook import NamedRange, Workbook
from units.library import UnitLibrary


class ValueDocument(BaseModel):
    """Serialized cell value"""
    type: CellValueType = CellValueType.EMPTY
    value: Optional[Union[float, str]] = None

    @classmethod
    def from_value(cls, value: CellValue) -> "ValueDocument":
        if value.type == CellValueType.NUMBER:
            return cls(type=value.type, value=value.number)
        if value.type in (CellValueType.TEXT, CellValueType.ERROR):
            return cls(type=value.type, value=value.text)
        return cls()

    def to_value(self) -> CellValue:
        if self.type == CellValueType.NUMBER:
            if self.value is None:
                raise DocumentError("Number value is missing")
            return CellValue.of_number(float(self.value))
        if self.type == CellValueType.TEXT:
            return CellValue.of_text(str(self.value or ""))
        if self.type == CellValueType.ERROR:
            return CellValue.of_error(str(self.value or ""))
        return CellValue.empty()


class CellDocument(BaseModel):
    """Serialized cell"""
    value: ValueDocument = Field(default_factory=ValueDocument)
    storage_unit: str = ""
    display_unit: Optional[str] = None
    formula: Optional[str] = None
    warning: Optional[str] = None


class SheetDocument(BaseModel):
    """Serialized sheet: address string to cell"""
    name: str
    cells: Dict[str, CellDocument] = {}


class NamedRangeDocument(BaseModel):
    sheet: str
    address: str


class SettingsDocument(BaseModel):
    display_preference: DisplayPreference = DisplayPreference.AS_ENTERED


class WorkbookDocument(BaseModel):
    """Top-level saved workbook"""
    version: str = Field(default_factory=lambda: app_settings.DOCUMENT_VERSION)
    name: str = "Untitled"
    active_sheet: int = 0
    sheets: List[SheetDocument] = []
    named_ranges: Dict[str, NamedRangeDocument] = {}
    settings: SettingsDocument = Field(default_factory=SettingsDocument)

    @classmethod
    def from_workbook(cls, workbook: Workbook) -> "WorkbookDocument":
        sheets = []
        for sheet in workbook.sheets:
            cells: Dict[str, CellDocument] = {}
            for addr in sheet.cell_addresses():
                cell = sheet.get(addr)
                cells[str(addr)] = CellDocument(
                    value=ValueDocument.from_value(cell.value),
                    storage_unit=cell.storage_unit.original,
                    display_unit=cell.display_unit.original if cell.display_unit else None,
                    formula=cell.formula,
                    warning=cell.warning,
                )
            sheets.append(SheetDocument(name=sheet.name, cells=cells))

        return cls(
            name=workbook.name,
            active_sheet=workbook.active_index,
            sheets=sheets,
            named_ranges={
                name: NamedRangeDocument(sheet=named.sheet, address=str(named.address))
                for name, named in workbook.named_ranges.items()
            },
            settings=SettingsDocument(display_preference=workbook.display_preference),
        )

    def to_workbook(self, library: Optional[UnitLibrary] = None) -> Workbook:
        """Rebuild a workbook, replaying stored cells without re-evaluating them"""
        if not self.version.startswith("1."):
            raise DocumentError(f"Unsupported document version: {self.version}")
        if not self.sheets:
            raise DocumentError("Document has no sheets")

        workbook = Workbook(self.name, library)
        workbook.sheets = [Sheet(sheet_doc.name, workbook.library) for sheet_doc in self.sheets]
        if len(set(workbook.sheet_names())) != len(workbook.sheets):
            raise DocumentError("Document has duplicate sheet names")

        try:
            for name, named_doc in self.named_ranges.items():
                sheet = workbook.get_sheet(named_doc.sheet)
                addr = CellAddr.from_string(named_doc.address)
                sheet.named_refs[name] = addr
                workbook.named_ranges[name] = NamedRange(sheet=sheet.name, address=addr)

            for sheet_doc, sheet in zip(self.sheets, workbook.sheets):
                for address, cell_doc in sheet_doc.cells.items():
                    sheet.set(address, self._cell(cell_doc, workbook.library))
        except (UnicelError, ValueError) as e:
            if isinstance(e, DocumentError):
                raise
            raise DocumentError(f"Invalid document: {e}")

        workbook.active_index = min(max(self.active_sheet, 0), len(workbook.sheets) - 1)
        workbook.display_preference = self.settings.display_preference
        workbook.dirty = False
        return workbook

    @staticmethod
    def _cell(cell_doc: CellDocument, library: UnitLibrary) -> Cell:
        return Cell(
            value=cell_doc.value.to_value(),
            storage_unit=library.parse_unit(cell_doc.storage_unit),
            display_unit=library.parse_unit(cell_doc.display_unit) if cell_doc.display_unit else None,
            formula=cell_doc.formula,
            warning=cell_doc.warning,
        )

    def dumps(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def loads(cls, text: str) -> "WorkbookDocument":
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise DocumentError(f"Malformed document: {e}")


def save_workbook(workbook: Workbook, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.write_text(WorkbookDocument.from_workbook(workbook).dumps(), encoding="utf-8")
    workbook.mark_clean()
    return path


def load_workbook(path: Union[str, Path], library: Optional[UnitLibrary] = None) -> Workbook:
    path = Path(path)
    if not path.exists():
        raise DocumentError(f"File not found: {path}", file_path=str(path))
    return WorkbookDocument.loads(path.read_text(encoding="utf-8")).to_workbook(library)
