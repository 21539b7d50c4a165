"""Symbol-level unit algebra used by multiplication, division and powers"""

from __future__ import annotations

from typing import Tuple

from core.exceptions import InvalidOperationError
from core.units import Unit
from units.library import UnitLibrary
from units.symbols import PowerMap, split_unit_powers


def unit_powers(unit: Unit) -> Tuple[PowerMap, PowerMap]:
    if unit.is_dimensionless():
        return {}, {}
    return split_unit_powers(unit.canonical)


def merge_powers(target: PowerMap, source: PowerMap) -> PowerMap:
    merged = dict(target)
    for symbol, power in source.items():
        merged[symbol] = merged.get(symbol, 0) + power
    return merged


def _drop_zero(powers: PowerMap) -> PowerMap:
    return {symbol: power for symbol, power in powers.items() if power > 0}


def cancel_and_convert(
    numerator: PowerMap,
    denominator: PowerMap,
    library: UnitLibrary,
) -> Tuple[float, PowerMap, PowerMap]:
    """Cancel numerator symbols against denominator symbols.

    Identical symbols cancel first. Remaining pairs the library can convert
    between cancel next, and each cancelled power multiplies the returned
    factor by the pair's conversion ratio, so 1 TB/GB leaves 1024 and no
    unit.
    """
    num = dict(numerator)
    den = dict(denominator)

    for symbol in sorted(set(num) & set(den)):
        cancelled = min(num[symbol], den[symbol])
        num[symbol] -= cancelled
        den[symbol] -= cancelled
    num, den = _drop_zero(num), _drop_zero(den)

    factor = 1.0
    for num_symbol in sorted(num):
        for den_symbol in sorted(den):
            if num.get(num_symbol, 0) <= 0:
                break
            if den.get(den_symbol, 0) <= 0 or num_symbol == den_symbol:
                continue
            if not library.can_convert(num_symbol, den_symbol):
                continue
            ratio = library.get_conversion_ratio(num_symbol, den_symbol)
            if ratio is None:
                continue
            ratio_num, ratio_den = ratio
            cancelled = min(num[num_symbol], den[den_symbol])
            factor *= ratio_num ** cancelled / ratio_den ** cancelled
            num[num_symbol] -= cancelled
            den[den_symbol] -= cancelled

    return factor, _drop_zero(num), _drop_zero(den)


def rebuild_unit(numerator: PowerMap, denominator: PowerMap, library: UnitLibrary) -> Unit:
    return library.unit_from_powers(numerator, denominator)


def invert_unit(unit: Unit, library: UnitLibrary) -> Unit:
    num, den = unit_powers(unit)
    return rebuild_unit(den, num, library)


def scale_unit(unit: Unit, exponent: float, library: UnitLibrary) -> Unit:
    """Unit raised to a power; every symbol exponent is multiplied"""
    if unit.is_dimensionless() or exponent == 0:
        return Unit.dimensionless()

    num, den = unit_powers(unit)
    scaled_num: PowerMap = {}
    scaled_den: PowerMap = {}
    for powers, same_side, other_side in ((num, scaled_num, scaled_den), (den, scaled_den, scaled_num)):
        for symbol, power in powers.items():
            scaled = power * exponent
            if not float(scaled).is_integer():
                raise InvalidOperationError(
                    f"Unit {unit} raised to {exponent} has a fractional exponent"
                )
            scaled = int(scaled)
            if scaled > 0:
                same_side[symbol] = scaled
            elif scaled < 0:
                other_side[symbol] = -scaled
    return rebuild_unit(scaled_num, scaled_den, library)
