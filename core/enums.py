"""Core enumerations for Unicel"""

from enum import Enum


class DimensionKind(str, Enum):
    """Base physical or financial dimension"""
    LENGTH = "length"
    MASS = "mass"
    TIME = "time"
    CURRENCY = "currency"
    TEMPERATURE = "temperature"
    DIGITAL_STORAGE = "digital_storage"
    CUSTOM = "custom"


class DimensionShape(str, Enum):
    """Structural shape of a dimension"""
    DIMENSIONLESS = "dimensionless"
    SIMPLE = "simple"
    COMPOUND = "compound"


class CellValueType(str, Enum):
    """Kinds of value a cell can hold"""
    EMPTY = "Empty"
    NUMBER = "Number"
    TEXT = "Text"
    ERROR = "Error"


class DisplayPreference(str, Enum):
    """How stored values are presented"""
    AS_ENTERED = "as_entered"
    METRIC = "metric"
    IMPERIAL = "imperial"
