"""Helpers for reading and writing compound unit symbols"""

from __future__ import annotations

import re
from typing import Dict, Tuple

from core.exceptions import UnknownUnitError


PowerMap = Dict[str, int]

SYMBOL_PATTERN = re.compile(r"^(?:[A-Za-z_°µ][A-Za-z0-9_°µ]*|[$€£%])$")
_FACTOR_PATTERN = re.compile(r"^(?P<symbol>[^\^]+?)(?:\^(?P<power>-?\d+))?$")


def _add_power(powers: PowerMap, symbol: str, power: int):
    powers[symbol] = powers.get(symbol, 0) + power


def split_unit_powers(text: str) -> Tuple[PowerMap, PowerMap]:
    """Split a unit string into numerator and denominator power maps.

    The first "/"-separated part is the numerator and every later part
    belongs to the denominator, so "a/b/c" reads as a/(b*c). Factors are
    joined by "*" and may carry an integer exponent ("ft^2"). A negative
    exponent moves the factor to the other side.
    """
    numerator: PowerMap = {}
    denominator: PowerMap = {}
    text = text.strip().replace("(", "").replace(")", "")
    if not text:
        return numerator, denominator

    for index, part in enumerate(text.split("/")):
        part = part.strip()
        if not part:
            raise UnknownUnitError(text, f"Malformed unit: {text}")
        for factor in part.split("*"):
            factor = factor.strip()
            match = _FACTOR_PATTERN.match(factor)
            if not match:
                raise UnknownUnitError(text, f"Malformed unit: {text}")
            symbol = match.group("symbol").strip()
            power = int(match.group("power") or 1)
            if symbol == "1" and power == 1:
                continue
            if not SYMBOL_PATTERN.match(symbol):
                raise UnknownUnitError(symbol)
            if power == 0:
                continue
            in_numerator = (index == 0) == (power > 0)
            target = numerator if in_numerator else denominator
            _add_power(target, symbol, abs(power))

    return numerator, denominator


def _render(powers: PowerMap) -> str:
    return "*".join(
        symbol if power == 1 else f"{symbol}^{power}"
        for symbol, power in sorted(powers.items())
        if power > 0
    )


def build_unit_symbol(numerator: PowerMap, denominator: PowerMap) -> str:
    """Deterministic compound symbol, each side sorted alphabetically"""
    num = _render(numerator)
    den = _render(denominator)
    if not den:
        return num
    return f"{num or '1'}/{den}"
