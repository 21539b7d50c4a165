"""Core abstractions for the Unicel engine"""

from .models import *
from .enums import *
from .exceptions import *
from .interfaces import *
from .units import *

__all__ = [
    # Models
    "CellAddr",
    "CellValue",
    "Cell",
    "EvalResult",
    "format_number",
    # Units
    "BaseDimension",
    "Dimension",
    "Unit",
    # Enums
    "DimensionKind",
    "DimensionShape",
    "CellValueType",
    "DisplayPreference",
    # Exceptions
    "UnicelError",
    "EvalError",
    "IncompatibleUnitsError",
    "DivisionByZeroError",
    "CellNotFoundError",
    "NamedRefNotFoundError",
    "UnknownUnitError",
    "FunctionNotImplementedError",
    "InvalidOperationError",
    "CircularReferenceError",
    "ParseError",
    "WorkbookError",
    "DocumentError",
    # Interfaces
    "CellResolver",
]
