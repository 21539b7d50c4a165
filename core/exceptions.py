"""Custom exceptions for Unicel"""


class UnicelError(Exception):
    """Base exception for all Unicel errors"""
    pass


class EvalError(UnicelError):
    """Error raised while evaluating a formula"""
    pass


class IncompatibleUnitsError(EvalError):
    """Operation mixes dimensionally incompatible units"""
    def __init__(self, operation: str, left: str, right: str):
        super().__init__(f"Incompatible units: cannot {operation} {left} and {right}")
        self.operation = operation
        self.left = left
        self.right = right


class DivisionByZeroError(EvalError):
    """Division by zero"""
    def __init__(self, message: str = "Division by zero"):
        super().__init__(message)


class CellNotFoundError(EvalError):
    """Referenced cell is missing or has no usable value"""
    def __init__(self, address: str, message: str = None):
        super().__init__(message or f"Cell not found: {address}")
        self.address = address


class NamedRefNotFoundError(EvalError):
    """Named reference is not defined"""
    def __init__(self, name: str):
        super().__init__(f"Named reference not found: {name}")
        self.name = name


class UnknownUnitError(EvalError):
    """Unit symbol cannot be resolved"""
    def __init__(self, symbol: str, message: str = None):
        super().__init__(message or f"Unknown unit: {symbol}")
        self.symbol = symbol


class FunctionNotImplementedError(EvalError):
    """Formula calls a function that is not registered"""
    def __init__(self, name: str):
        super().__init__(f"Function not implemented: {name}")
        self.name = name


class InvalidOperationError(EvalError):
    """Type mismatch or malformed arguments"""
    pass


class CircularReferenceError(UnicelError):
    """Formula would introduce a dependency cycle"""
    def __init__(self, address: str):
        super().__init__(f"Circular reference detected at {address}")
        self.address = address


class ParseError(UnicelError):
    """Malformed formula text"""
    def __init__(self, message: str, position: int = None, token: str = None):
        detail = message
        if position is not None:
            detail = f"{message} at position {position}"
        if token:
            detail = f"{detail} (near '{token}')"
        super().__init__(detail)
        self.message = message
        self.position = position
        self.token = token


class WorkbookError(UnicelError):
    """Invalid workbook operation"""
    def __init__(self, message: str, sheet: str = None):
        super().__init__(message)
        self.sheet = sheet


class DocumentError(UnicelError):
    """Persisted document cannot be read"""
    def __init__(self, message: str, file_path: str = None):
        super().__init__(message)
        self.file_path = file_path
