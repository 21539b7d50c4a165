"""Abstract base classes for Unicel components"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import CellAddr, EvalResult


class CellResolver(ABC):
    """Supplies cell values to the evaluator"""

    @abstractmethod
    def resolve_cell(self, addr: CellAddr) -> Optional[EvalResult]:
        """Value of a cell, or None when the cell does not exist"""
        pass

    @abstractmethod
    def resolve_range(self, start: CellAddr, end: CellAddr) -> List[EvalResult]:
        """Values of a single-column range, skipping blank cells"""
        pass

    def resolve_name(self, name: str) -> Optional[EvalResult]:
        """Value behind a named reference, or None when undefined"""
        return None
