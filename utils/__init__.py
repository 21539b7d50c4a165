"""Utility modules"""

from .fuzzy import suggest_units

__all__ = [
    "suggest_units",
]
