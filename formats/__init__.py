"""Saved workbook format"""

from .document import (
    CellDocument,
    NamedRangeDocument,
    SettingsDocument,
    SheetDocument,
    ValueDocument,
    WorkbookDocument,
    load_workbook,
    save_workbook,
)

__all__ = [
    "CellDocument",
    "NamedRangeDocument",
    "SettingsDocument",
    "SheetDocument",
    "ValueDocument",
    "WorkbookDocument",
    "load_workbook",
    "save_workbook",
]
