"""Unit and dimension value types"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from .enums import DimensionKind, DimensionShape


_SYMBOLS = {
    DimensionKind.LENGTH: "L",
    DimensionKind.MASS: "M",
    DimensionKind.TIME: "T",
    DimensionKind.CURRENCY: "$",
    DimensionKind.TEMPERATURE: "Θ",
    DimensionKind.DIGITAL_STORAGE: "B",
}

_SPLIT_PATTERN = re.compile(r"[*/]")


class BaseDimension(BaseModel):
    """A single physical or financial dimension"""
    model_config = ConfigDict(frozen=True)

    kind: DimensionKind
    name: Optional[str] = None  # only set for custom dimensions

    @classmethod
    def of(cls, kind: DimensionKind) -> "BaseDimension":
        return cls(kind=kind)

    @classmethod
    def custom(cls, name: str) -> "BaseDimension":
        return cls(kind=DimensionKind.CUSTOM, name=name)

    @property
    def is_custom(self) -> bool:
        return self.kind == DimensionKind.CUSTOM

    @property
    def symbol(self) -> str:
        if self.is_custom:
            return self.name or ""
        return _SYMBOLS[self.kind]

    def sort_key(self) -> Tuple[str, str]:
        return (self.kind.value, self.name or "")

    def __str__(self) -> str:
        return self.symbol


DimensionTerms = Tuple[Tuple[BaseDimension, int], ...]


def _net_exponents(
    numerator: Iterable[Tuple[BaseDimension, int]],
    denominator: Iterable[Tuple[BaseDimension, int]],
) -> Dict[BaseDimension, int]:
    net: Dict[BaseDimension, int] = {}
    for base, power in numerator:
        net[base] = net.get(base, 0) + power
    for base, power in denominator:
        net[base] = net.get(base, 0) - power
    return {base: power for base, power in net.items() if power != 0}


class Dimension(BaseModel):
    """Dimensional signature of a unit.

    Compound dimensions are stored normalized: exponents are netted per
    base dimension and both sides are sorted, so structural equality is
    the compatibility test regardless of the order terms were given in.
    """
    model_config = ConfigDict(frozen=True)

    shape: DimensionShape
    base: Optional[BaseDimension] = None
    numerator: DimensionTerms = ()
    denominator: DimensionTerms = ()

    @classmethod
    def dimensionless(cls) -> "Dimension":
        return cls(shape=DimensionShape.DIMENSIONLESS)

    @classmethod
    def simple(cls, base: BaseDimension) -> "Dimension":
        return cls(shape=DimensionShape.SIMPLE, base=base)

    @classmethod
    def compound(
        cls,
        numerator: Iterable[Tuple[BaseDimension, int]],
        denominator: Iterable[Tuple[BaseDimension, int]] = (),
    ) -> "Dimension":
        net = _net_exponents(numerator, denominator)
        if not net:
            return cls.dimensionless()
        num = sorted(
            ((base, power) for base, power in net.items() if power > 0),
            key=lambda term: term[0].sort_key(),
        )
        den = sorted(
            ((base, -power) for base, power in net.items() if power < 0),
            key=lambda term: term[0].sort_key(),
        )
        if len(num) == 1 and not den and num[0][1] == 1:
            return cls.simple(num[0][0])
        return cls(
            shape=DimensionShape.COMPOUND,
            numerator=tuple(num),
            denominator=tuple(den),
        )

    @property
    def is_dimensionless(self) -> bool:
        return self.shape == DimensionShape.DIMENSIONLESS

    def __str__(self) -> str:
        if self.shape == DimensionShape.DIMENSIONLESS:
            return "dimensionless"
        if self.shape == DimensionShape.SIMPLE:
            return self.base.symbol

        def render(terms: DimensionTerms) -> str:
            return "·".join(
                base.symbol if power == 1 else f"{base.symbol}^{power}"
                for base, power in terms
            )

        text = render(self.numerator) or "1"
        if self.denominator:
            text = f"{text}/{render(self.denominator)}"
        return text


class Unit(BaseModel):
    """A unit symbol with its dimensional signature"""
    model_config = ConfigDict(frozen=True)

    canonical: str
    original: str
    dimension: Dimension

    @classmethod
    def dimensionless(cls) -> "Unit":
        return cls(canonical="", original="", dimension=Dimension.dimensionless())

    @classmethod
    def simple(cls, symbol: str, base: BaseDimension) -> "Unit":
        return cls(canonical=symbol, original=symbol, dimension=Dimension.simple(base))

    @classmethod
    def compound(
        cls,
        symbol: str,
        numerator: Iterable[Tuple[BaseDimension, int]],
        denominator: Iterable[Tuple[BaseDimension, int]] = (),
    ) -> "Unit":
        return cls(
            canonical=symbol,
            original=symbol,
            dimension=Dimension.compound(numerator, denominator),
        )

    def with_original(self, original: str) -> "Unit":
        return self.model_copy(update={"original": original})

    def is_dimensionless(self) -> bool:
        return self.dimension.is_dimensionless

    def is_compatible(self, other: "Unit") -> bool:
        return self.dimension == other.dimension

    def is_equal(self, other: "Unit") -> bool:
        return self.canonical == other.canonical

    def base_units(self) -> Set[str]:
        symbols: Set[str] = set()
        for part in _SPLIT_PATTERN.split(self.canonical):
            symbol = part.split("^", 1)[0].strip()
            if symbol and symbol != "1":
                symbols.add(symbol)
        return symbols

    def __str__(self) -> str:
        return self.original or self.canonical
