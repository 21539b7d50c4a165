"""Registry of known units and the conversions between them"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config import settings
from core.enums import DimensionKind
from core.exceptions import UnknownUnitError
from core.units import BaseDimension, Unit
from .symbols import PowerMap, build_unit_symbol, split_unit_powers


logger = logging.getLogger(__name__)


class ConversionFactor(BaseModel):
    """Affine map value * multiplier + offset"""
    model_config = ConfigDict(frozen=True)

    multiplier: float
    offset: float = 0.0

    def apply(self, value: float) -> float:
        return value * self.multiplier + self.offset


BUILTIN_UNITS: Dict[DimensionKind, List[str]] = {
    DimensionKind.LENGTH: ["m", "cm", "mm", "km", "in", "ft", "yd", "mi"],
    DimensionKind.MASS: ["kg", "g", "mg", "oz", "lb"],
    DimensionKind.TIME: ["s", "min", "hr", "day", "week", "month", "quarter", "year"],
    DimensionKind.TEMPERATURE: ["K", "C", "F"],
    DimensionKind.CURRENCY: ["USD", "EUR", "GBP"],
    DimensionKind.DIGITAL_STORAGE: ["B", "b", "KB", "MB", "GB", "TB", "PB"],
}

# First unit of every dimension above is its base unit
BASE_UNITS: Dict[DimensionKind, str] = {
    kind: symbols[0] for kind, symbols in BUILTIN_UNITS.items()
}

ALIASES: Dict[str, str] = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "h": "hr",
    "hrs": "hr",
    "sec": "s",
    "yr": "year",
    "lbs": "lb",
    "°C": "C",
    "°F": "F",
}

# Spelled-out names, singular and plural
LONG_NAMES: Dict[str, List[str]] = {
    "m": ["meter", "meters", "metre", "metres"],
    "cm": ["centimeter", "centimeters"],
    "mm": ["millimeter", "millimeters"],
    "km": ["kilometer", "kilometers"],
    "in": ["inch", "inches"],
    "ft": ["foot", "feet"],
    "yd": ["yard", "yards"],
    "mi": ["mile", "miles"],
    "g": ["gram", "grams"],
    "kg": ["kilogram", "kilograms"],
    "mg": ["milligram", "milligrams"],
    "oz": ["ounce", "ounces"],
    "lb": ["pound", "pounds"],
    "s": ["second", "seconds"],
    "min": ["minute", "minutes"],
    "hr": ["hour", "hours"],
    "day": ["days"],
    "week": ["weeks"],
    "month": ["months"],
    "quarter": ["quarters"],
    "year": ["years"],
    "C": ["Celsius", "celsius"],
    "F": ["Fahrenheit", "fahrenheit"],
    "K": ["Kelvin", "kelvin"],
    "B": ["byte", "bytes"],
    "KB": ["kilobyte", "kilobytes"],
    "MB": ["megabyte", "megabytes"],
    "GB": ["gigabyte", "gigabytes"],
    "TB": ["terabyte", "terabytes"],
    "PB": ["petabyte", "petabytes"],
}

PERCENT = "%"

# (from, to, multiplier): 1 from = multiplier to; the reverse edge is registered too
LINEAR_CONVERSIONS: List[Tuple[str, str, float]] = [
    # Length
    ("m", "cm", 100.0),
    ("m", "mm", 1000.0),
    ("km", "m", 1000.0),
    ("in", "m", 0.0254),
    ("ft", "m", 0.3048),
    ("yd", "m", 0.9144),
    ("mi", "m", 1609.344),
    ("ft", "in", 12.0),
    ("yd", "ft", 3.0),
    ("mi", "ft", 5280.0),
    # Mass
    ("kg", "g", 1000.0),
    ("g", "mg", 1000.0),
    ("oz", "kg", 0.028349523125),
    ("lb", "kg", 0.45359237),
    ("lb", "oz", 16.0),
    # Time
    ("min", "s", 60.0),
    ("hr", "min", 60.0),
    ("hr", "s", 3600.0),
    ("day", "hr", 24.0),
    ("day", "s", 86400.0),
    ("week", "day", 7.0),
    ("year", "day", 365.0),
    ("year", "month", 12.0),
    ("year", "quarter", 4.0),
    ("quarter", "month", 3.0),
    # Digital storage
    ("B", "b", 8.0),
    ("KB", "B", 1024.0),
    ("MB", "KB", 1024.0),
    ("GB", "MB", 1024.0),
    ("TB", "GB", 1024.0),
    ("PB", "TB", 1024.0),
]

# Temperature needs both directions spelled out since offsets do not simply invert
AFFINE_CONVERSIONS: List[Tuple[str, str, float, float]] = [
    ("C", "F", 1.8, 32.0),
    ("F", "C", 5.0 / 9.0, -160.0 / 9.0),
    ("C", "K", 1.0, 273.15),
    ("K", "C", 1.0, -273.15),
    ("F", "K", 5.0 / 9.0, 459.67 * 5.0 / 9.0),
    ("K", "F", 1.8, -459.67),
]

# Units of USD per one unit of the currency
DEFAULT_CURRENCY_RATES: Dict[str, float] = {"EUR": 1.08, "GBP": 1.27}
DEFAULT_CROSS_RATES: List[Tuple[str, str, float]] = [("GBP", "EUR", 1.18)]


class UnitLibrary:
    """Known unit symbols, their dimensions and conversion factors.

    The library is filled once in the constructor and only read afterwards,
    so one instance can be shared by every sheet of a workbook.

    Args:
        currency_rates: Optional mapping of currency code to its value in
            USD. Replaces the built-in rates; unknown codes are registered.
        allow_custom_units: Whether unknown symbols in unit strings become
            custom dimensions. Defaults to settings.ALLOW_CUSTOM_UNITS.
    """

    def __init__(
        self,
        currency_rates: Optional[Dict[str, float]] = None,
        allow_custom_units: Optional[bool] = None,
    ):
        self.allow_custom_units = (
            settings.ALLOW_CUSTOM_UNITS if allow_custom_units is None else allow_custom_units
        )
        self._units: Dict[str, Unit] = {}
        self._aliases: Dict[str, str] = {}
        self._conversions: Dict[Tuple[str, str], ConversionFactor] = {}
        self._adjacency: Dict[str, List[str]] = {}
        self._scales: Dict[str, float] = {}

        self._register_builtin(currency_rates)
        self._compute_scales()

    # ─────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────

    def _register_builtin(self, currency_rates: Optional[Dict[str, float]]):
        for kind, symbols in BUILTIN_UNITS.items():
            for symbol in symbols:
                self._add_unit(symbol, BaseDimension.of(kind))
        self._add_unit(PERCENT, BaseDimension.custom(PERCENT))

        for alias, symbol in ALIASES.items():
            self._aliases[alias] = symbol
        for symbol, names in LONG_NAMES.items():
            for name in names:
                self._aliases[name] = symbol

        for source, target, multiplier in LINEAR_CONVERSIONS:
            self._add_linear(source, target, multiplier)
        for source, target, multiplier, offset in AFFINE_CONVERSIONS:
            self._add_conversion(source, target, ConversionFactor(multiplier=multiplier, offset=offset))

        rates = DEFAULT_CURRENCY_RATES if currency_rates is None else currency_rates
        for code, rate in rates.items():
            if code not in self._units:
                self._add_unit(code, BaseDimension.of(DimensionKind.CURRENCY))
            self._add_linear(code, "USD", rate)
        if currency_rates is None:
            for source, target, multiplier in DEFAULT_CROSS_RATES:
                self._add_linear(source, target, multiplier)

    def _add_unit(self, symbol: str, base: BaseDimension):
        self._units[symbol] = Unit.simple(symbol, base)
        self._adjacency.setdefault(symbol, [])

    def _add_conversion(self, source: str, target: str, factor: ConversionFactor):
        self._conversions[(source, target)] = factor
        neighbors = self._adjacency.setdefault(source, [])
        if target not in neighbors:
            neighbors.append(target)

    def _add_linear(self, source: str, target: str, multiplier: float):
        self._add_conversion(source, target, ConversionFactor(multiplier=multiplier))
        self._add_conversion(target, source, ConversionFactor(multiplier=1.0 / multiplier))

    def _compute_scales(self):
        for symbol, unit in self._units.items():
            base_symbol = BASE_UNITS.get(unit.dimension.base.kind)
            if base_symbol is None:
                self._scales[symbol] = 1.0
                continue
            one = self.convert(1.0, symbol, base_symbol)
            zero = self.convert(0.0, symbol, base_symbol)
            if one is None or zero is None:
                logger.warning("No conversion from %s to base unit %s", symbol, base_symbol)
                continue
            self._scales[symbol] = one - zero

    # ─────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────

    def canonical_symbol(self, symbol: str) -> Optional[str]:
        """Registered symbol behind a symbol or alias"""
        symbol = symbol.strip()
        if symbol in self._units:
            return symbol
        return self._aliases.get(symbol)

    def get(self, symbol: str) -> Optional[Unit]:
        canonical = self.canonical_symbol(symbol)
        if canonical is None:
            return None
        unit = self._units[canonical]
        if symbol.strip() != canonical:
            return unit.with_original(symbol.strip())
        return unit

    def contains(self, symbol: str) -> bool:
        return self.canonical_symbol(symbol) is not None

    def symbols(self) -> List[str]:
        return sorted(self._units)

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def base_dimension(self, symbol: str) -> Optional[BaseDimension]:
        unit = self.get(symbol)
        if unit is None:
            return None
        return unit.dimension.base

    def get_conversion(self, source: str, target: str) -> Optional[ConversionFactor]:
        return self._conversions.get((source, target))

    def scale_to_base(self, symbol: str) -> Optional[float]:
        """Magnitude of one unit expressed in its dimension's base unit"""
        canonical = self.canonical_symbol(symbol)
        if canonical is None:
            return None
        return self._scales.get(canonical)

    def compatible_units(self, symbol: str) -> List[str]:
        """Registered units sharing the dimension of symbol, excluding itself"""
        unit = self.parse_unit(symbol)
        own = unit.canonical
        return [
            candidate
            for candidate in self.symbols()
            if candidate != own and self._units[candidate].is_compatible(unit)
        ]

    # ─────────────────────────────────────────────────────────
    # Conversion
    # ─────────────────────────────────────────────────────────

    def convert(self, value: float, source: str, target: str) -> Optional[float]:
        if source == target:
            return value

        from_symbol = self.canonical_symbol(source)
        to_symbol = self.canonical_symbol(target)
        if from_symbol is None or to_symbol is None:
            return None
        if from_symbol == to_symbol:
            return value
        if not self._units[from_symbol].is_compatible(self._units[to_symbol]):
            return None

        direct = self._conversions.get((from_symbol, to_symbol))
        if direct is not None:
            return direct.apply(value)

        path = self._find_path(from_symbol, to_symbol)
        if path is None:
            return None
        for step_from, step_to in zip(path, path[1:]):
            value = self._conversions[(step_from, step_to)].apply(value)
        return value

    def can_convert(self, source: str, target: str) -> bool:
        if source == target:
            return True
        from_symbol = self.canonical_symbol(source)
        to_symbol = self.canonical_symbol(target)
        if from_symbol is None or to_symbol is None:
            return False
        if from_symbol == to_symbol:
            return True
        if not self._units[from_symbol].is_compatible(self._units[to_symbol]):
            return False
        if (from_symbol, to_symbol) in self._conversions:
            return True
        return self._find_path(from_symbol, to_symbol) is not None

    def _find_path(self, start: str, goal: str) -> Optional[List[str]]:
        queue = deque([start])
        parents: Dict[str, Optional[str]] = {start: None}

        while queue:
            node = queue.popleft()
            if node == goal:
                break
            for neighbor in self._adjacency.get(node, []):
                if neighbor not in parents:
                    parents[neighbor] = node
                    queue.append(neighbor)

        if goal not in parents:
            return None

        path: List[str] = []
        node: Optional[str] = goal
        while node is not None:
            path.append(node)
            node = parents[node]
        path.reverse()
        logger.debug("Conversion path %s", " -> ".join(path))
        return path

    def get_conversion_ratio(self, source: str, target: str) -> Optional[Tuple[float, float]]:
        """(num, den) such that one source unit equals num/den target units.

        Both numbers are magnitudes in the shared base unit, which keeps
        binary storage ratios such as TB/GB exact.
        """
        if not self.can_convert(source, target):
            return None
        num = self.scale_to_base(source)
        den = self.scale_to_base(target)
        if num is None or den is None:
            return None
        return num, den

    def get_finer_unit(self, first: str, second: str) -> Optional[str]:
        """Whichever unit is physically smaller; ties go to the lower symbol"""
        if first == second:
            return first
        one = self.convert_compound(1.0, first, second)
        zero = self.convert_compound(0.0, first, second)
        if one is None or zero is None:
            return None
        ratio = one - zero
        if math.isclose(ratio, 1.0, rel_tol=1e-12):
            return min(first, second)
        return first if ratio < 1.0 else second

    # ─────────────────────────────────────────────────────────
    # Compound units
    # ─────────────────────────────────────────────────────────

    def _canonical_powers(self, powers: PowerMap) -> PowerMap:
        result: PowerMap = {}
        for symbol, power in powers.items():
            canonical = self.canonical_symbol(symbol) or symbol
            result[canonical] = result.get(canonical, 0) + power
        return result

    def unit_from_powers(
        self,
        numerator: PowerMap,
        denominator: PowerMap,
        original: Optional[str] = None,
    ) -> Unit:
        """Build a Unit from symbol power maps"""
        num = {s: p for s, p in self._canonical_powers(numerator).items() if p > 0}
        den = {s: p for s, p in self._canonical_powers(denominator).items() if p > 0}

        if not num and not den:
            return Unit.dimensionless()

        if not den and len(num) == 1:
            (symbol, power), = num.items()
            if power == 1 and symbol in self._units:
                unit = self._units[symbol]
                return unit.with_original(original) if original else unit

        def dimensions(powers: PowerMap):
            return [
                (self.base_dimension(symbol) or BaseDimension.custom(symbol), power)
                for symbol, power in powers.items()
            ]

        unit = Unit.compound(build_unit_symbol(num, den), dimensions(num), dimensions(den))
        return unit.with_original(original) if original else unit

    def parse_unit(self, text: str) -> Unit:
        """Unit for a simple or compound unit string such as "$/ft" or "ft^2"

        Raises:
            UnknownUnitError: The string is malformed, or names an unknown
                symbol while custom units are disabled.
        """
        stripped = text.strip()
        if not stripped:
            return Unit.dimensionless()

        unit = self.get(stripped)
        if unit is not None:
            return unit

        numerator, denominator = split_unit_powers(stripped)
        if not self.allow_custom_units:
            for symbol in list(numerator) + list(denominator):
                if not self.contains(symbol):
                    raise UnknownUnitError(symbol)
        return self.unit_from_powers(numerator, denominator, original=stripped)

    def _scale_of_powers(self, powers: PowerMap, sign: int, customs: Dict[str, int]) -> float:
        scale = 1.0
        for symbol, power in powers.items():
            factor = self._scales.get(symbol)
            if factor is None:
                customs[symbol] = customs.get(symbol, 0) + sign * power
            else:
                scale *= factor ** power
        return scale

    def convert_compound(self, value: float, source: str, target: str) -> Optional[float]:
        """Convert between any two compatible unit strings, whatever their scale.

        Registered simple units go through convert, so temperature offsets
        are honoured; compound units are converted through base-unit
        magnitudes ($/quarter -> $/year multiplies by 4).
        """
        if source == target:
            return value
        try:
            from_unit = self.parse_unit(source)
            to_unit = self.parse_unit(target)
        except UnknownUnitError:
            return None
        if not from_unit.is_compatible(to_unit):
            return None
        if from_unit.is_equal(to_unit) or from_unit.is_dimensionless():
            return value
        if from_unit.canonical in self._units and to_unit.canonical in self._units:
            return self.convert(value, from_unit.canonical, to_unit.canonical)

        from_num, from_den = split_unit_powers(from_unit.canonical)
        to_num, to_den = split_unit_powers(to_unit.canonical)
        customs: Dict[str, int] = {}
        factor = (
            self._scale_of_powers(from_num, 1, customs)
            / self._scale_of_powers(from_den, -1, customs)
            / self._scale_of_powers(to_num, -1, customs)
            * self._scale_of_powers(to_den, 1, customs)
        )
        if any(power != 0 for power in customs.values()):
            return None
        return value * factor

    def units_of_kind(self, kind: DimensionKind) -> List[str]:
        return [
            symbol
            for symbol in self.symbols()
            if self._units[symbol].dimension.base.kind == kind
        ]

    def describe(self, symbols: Iterable[str] = None) -> List[Dict[str, str]]:
        """Symbol and dimension rows for listings"""
        return [
            {"symbol": symbol, "dimension": str(self._units[symbol].dimension)}
            for symbol in (symbols if symbols is not None else self.symbols())
        ]
