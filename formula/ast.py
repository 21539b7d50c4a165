"""Formula expression tree"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from openpyxl.utils.cell import coordinate_to_tuple

from config import settings
from core.exceptions import InvalidOperationError
from core.models import CellAddr, format_number


class Expr:
    """Base class for every expression node"""

    def children(self) -> Tuple["Expr", ...]:
        return ()

    def walk(self) -> Iterator["Expr"]:
        yield self
        for child in self.children():
            yield from child.walk()


# ─────────────────────────────────────────────────────────────
# Literals and references
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Number(Expr):
    value: float

    def __str__(self) -> str:
        return format_number(self.value)


@dataclass(frozen=True)
class NumberWithUnit(Expr):
    value: float
    unit: str

    def __str__(self) -> str:
        return f"{format_number(self.value)}{self.unit}"


@dataclass(frozen=True)
class String(Expr):
    value: str

    def __str__(self) -> str:
        escaped = self.value.replace('"', '""')
        return f'"{escaped}"'


@dataclass(frozen=True)
class Boolean(Expr):
    value: bool

    def __str__(self) -> str:
        return "TRUE" if self.value else "FALSE"


@dataclass(frozen=True)
class CellRef(Expr):
    col: str
    row: int

    @property
    def addr(self) -> CellAddr:
        return CellAddr(col=self.col, row=self.row)

    def __str__(self) -> str:
        return f"{self.col}{self.row}"


@dataclass(frozen=True)
class NamedRef(Expr):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Range(Expr):
    start: CellRef
    end: CellRef

    @property
    def is_single_column(self) -> bool:
        return self.start.col == self.end.col

    def addresses(self, limit: Optional[int] = None) -> List[CellAddr]:
        """Every address of a single-column range, top to bottom"""
        if not self.is_single_column:
            raise InvalidOperationError(
                f"Only single-column ranges are supported: {self}"
            )
        limit = limit or settings.MAX_RANGE_CELLS
        start_row, column = coordinate_to_tuple(str(self.start))
        end_row, _ = coordinate_to_tuple(str(self.end))
        first, last = min(start_row, end_row), max(start_row, end_row)
        if last - first + 1 > limit:
            raise InvalidOperationError(f"Range {self} exceeds {limit} cells")
        return [CellAddr.from_indices(column, row) for row in range(first, last + 1)]

    def children(self) -> Tuple[Expr, ...]:
        return (self.start, self.end)

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


# ─────────────────────────────────────────────────────────────
# Operators
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BinaryOp(Expr):
    left: Expr
    right: Expr

    symbol = "?"

    def children(self) -> Tuple[Expr, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"({self.left} {self.symbol} {self.right})"


class Add(BinaryOp):
    symbol = "+"


class Subtract(BinaryOp):
    symbol = "-"


class Multiply(BinaryOp):
    symbol = "*"


class Divide(BinaryOp):
    symbol = "/"


class GreaterThan(BinaryOp):
    symbol = ">"


class LessThan(BinaryOp):
    symbol = "<"


class GreaterOrEqual(BinaryOp):
    symbol = ">="


class LessOrEqual(BinaryOp):
    symbol = "<="


class Equal(BinaryOp):
    symbol = "="


class NotEqual(BinaryOp):
    symbol = "<>"


class And(BinaryOp):
    symbol = "AND"


class Or(BinaryOp):
    symbol = "OR"


@dataclass(frozen=True)
class Negate(Expr):
    operand: Expr

    def children(self) -> Tuple[Expr, ...]:
        return (self.operand,)

    def __str__(self) -> str:
        return f"(-{self.operand})"


@dataclass(frozen=True)
class Not(Expr):
    operand: Expr

    def children(self) -> Tuple[Expr, ...]:
        return (self.operand,)

    def __str__(self) -> str:
        return f"NOT({self.operand})"


@dataclass(frozen=True)
class Function(Expr):
    name: str
    args: Tuple[Expr, ...] = ()

    def children(self) -> Tuple[Expr, ...]:
        return self.args

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(arg) for arg in self.args)})"


def collect_references(expr: Expr) -> List[CellAddr]:
    """Cells an expression reads, with single-column ranges expanded"""
    found: List[CellAddr] = []
    seen = set()

    def add(addr: CellAddr):
        if addr not in seen:
            seen.add(addr)
            found.append(addr)

    for node in expr.walk():
        if isinstance(node, Range):
            if node.is_single_column:
                for addr in node.addresses():
                    add(addr)
            else:
                add(node.start.addr)
                add(node.end.addr)
        elif isinstance(node, CellRef):
            add(node.addr)
    return found
