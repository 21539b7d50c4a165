"""Formula language: expression tree, parser, evaluator and functions"""

from .ast import Expr, collect_references
from .evaluator import Evaluator
from .functions import FORMULA_FUNCTIONS, register_function
from .parser import FormulaParser, parse_formula

__all__ = [
    "Expr",
    "Evaluator",
    "FormulaParser",
    "FORMULA_FUNCTIONS",
    "collect_references",
    "parse_formula",
    "register_function",
]
