"""Unit registry, symbol algebra and display preferences"""

from .library import ConversionFactor, UnitLibrary
from .symbols import build_unit_symbol, split_unit_powers
from .preferences import UnitPreferences

__all__ = [
    "ConversionFactor",
    "UnitLibrary",
    "UnitPreferences",
    "build_unit_symbol",
    "split_unit_powers",
]
