"""Display unit preferences"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from core.enums import DimensionKind, DimensionShape, DisplayPreference
from core.models import Cell
from core.units import Unit
from .library import UnitLibrary


class UnitPreferences(BaseModel):
    """Preferred display symbol per base dimension, for each unit system"""
    metric: Dict[DimensionKind, str] = Field(default_factory=lambda: {
        DimensionKind.LENGTH: "m",
        DimensionKind.MASS: "kg",
        DimensionKind.TEMPERATURE: "C",
    })
    imperial: Dict[DimensionKind, str] = Field(default_factory=lambda: {
        DimensionKind.LENGTH: "ft",
        DimensionKind.MASS: "lb",
        DimensionKind.TEMPERATURE: "F",
    })

    def preferred_symbol(self, unit: Unit, mode: DisplayPreference) -> Optional[str]:
        if mode == DisplayPreference.AS_ENTERED:
            return None
        if unit.dimension.shape != DimensionShape.SIMPLE:
            return None
        table = self.metric if mode == DisplayPreference.METRIC else self.imperial
        return table.get(unit.dimension.base.kind)

    def display(
        self,
        cell: Cell,
        mode: DisplayPreference,
        library: UnitLibrary,
    ) -> Tuple[Optional[float], Unit]:
        """Value and unit to show for a cell; the cell itself is left untouched"""
        value = cell.as_number()
        if value is None:
            return None, cell.storage_unit

        storage = cell.storage_unit
        target_symbol = self.preferred_symbol(storage, mode)
        if target_symbol is None and cell.display_unit is not None:
            target_symbol = cell.display_unit.canonical
        if target_symbol is None or target_symbol == storage.canonical:
            return value, storage

        converted = library.convert_compound(value, storage.canonical, target_symbol)
        if converted is None:
            return value, storage
        return converted, library.parse_unit(target_symbol)
