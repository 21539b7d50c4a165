"""Formula text to expression tree"""

from __future__ import annotations

import re
from typing import Dict, List, NamedTuple, Optional, Type

from openpyxl.utils.cell import coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException

from core.exceptions import ParseError
from .ast import (
    Add,
    And,
    BinaryOp,
    Boolean,
    CellRef,
    Divide,
    Equal,
    Expr,
    Function,
    GreaterOrEqual,
    GreaterThan,
    LessOrEqual,
    LessThan,
    Multiply,
    NamedRef,
    Negate,
    Not,
    NotEqual,
    Number,
    NumberWithUnit,
    Or,
    Range,
    String,
    Subtract,
)


_KEYWORD = r"(?:AND|OR|NOT)(?![A-Za-z0-9_(])"
_NUMBER = r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
# A unit atom is a run of letters not directly followed by a digit or "(",
# so "A1" and "SUM(" are never read as units; AND, OR and NOT are operators
_ATOM = rf"(?:(?!{_KEYWORD})[A-Za-z_°µ]+(?![A-Za-z_°µ0-9(])|[$€£%])(?:\^-?\d+)?"
_UNIT = rf"{_ATOM}(?:[*/]{_ATOM})*"


class Token(NamedTuple):
    kind: str
    text: str
    position: int
    number: Optional[float] = None
    unit: Optional[str] = None


class _TokenStream:
    def __init__(self, tokens: List[Token], source: str):
        self.tokens = tokens
        self.source = source
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def at(self, kind: str, text: Optional[str] = None) -> bool:
        token = self.peek()
        if token is None or token.kind != kind:
            return False
        return text is None or token.text == text

    def expect(self, kind: str, what: str) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError(f"Expected {what} but reached end of formula", len(self.source))
        if token.kind != kind:
            raise ParseError(f"Expected {what}", token.position, token.text)
        return self.advance()


class FormulaParser:
    """Recursive-descent parser for unit-aware formulas.

    Precedence, lowest first: OR, AND, prefix NOT, comparison, additive,
    multiplicative, unary sign, atoms. AND, OR and NOT followed by "("
    are function calls instead.
    """

    TOKEN_PATTERN = re.compile(
        rf'''
        (?P<ws>\s+)
        |(?P<string>"(?:[^"]|"")*")
        |(?P<currency>(?P<c_symbol>[$€£])[ \t]*(?P<c_number>{_NUMBER})(?P<c_unit>(?:/{_ATOM})*))
        |(?P<quantity>(?P<q_number>{_NUMBER})(?:[ \t]*(?P<q_unit>{_UNIT}))?)
        |(?P<range>[A-Z]+\d+:[A-Z]+\d+)(?![A-Za-z0-9_])
        |(?P<func>[A-Za-z_][A-Za-z0-9_.]*)(?=\s*\()
        |(?P<keyword>{_KEYWORD})
        |(?P<bool>TRUE|FALSE)(?![A-Za-z0-9_])
        |(?P<ref>[A-Z]+\d+)(?![A-Za-z0-9_])
        |(?P<name>[a-z_][A-Za-z0-9_]*)
        |(?P<ident>[A-Za-z][A-Za-z0-9_]*)
        |(?P<op>>=|<=|<>|!=|==|[-+*/=<>])
        |(?P<comma>,)
        |(?P<lparen>\()
        |(?P<rparen>\))
        |(?P<mismatch>.)
        ''',
        re.VERBOSE,
    )

    COMPARISON_OPS: Dict[str, Type[BinaryOp]] = {
        "=": Equal,
        "==": Equal,
        "<>": NotEqual,
        "!=": NotEqual,
        ">": GreaterThan,
        "<": LessThan,
        ">=": GreaterOrEqual,
        "<=": LessOrEqual,
    }
    ADDITIVE_OPS: Dict[str, Type[BinaryOp]] = {"+": Add, "-": Subtract}
    MULTIPLICATIVE_OPS: Dict[str, Type[BinaryOp]] = {"*": Multiply, "/": Divide}

    def parse(self, text: str) -> Expr:
        """Parse formula text, with or without a leading "="

        Raises:
            ParseError: The text is not a valid formula.
        """
        source = text.strip()
        if source.startswith("="):
            source = source[1:]
        if not source.strip():
            raise ParseError("Empty formula", 0)

        stream = _TokenStream(self._tokenize(source), source)
        expr = self._parse_or(stream)
        token = stream.peek()
        if token is not None:
            raise ParseError("Unexpected token", token.position, token.text)
        return expr

    def _tokenize(self, source: str) -> List[Token]:
        tokens: List[Token] = []
        for match in self.TOKEN_PATTERN.finditer(source):
            kind = match.lastgroup
            text = match.group(kind)
            position = match.start()
            if kind == "ws":
                continue
            if kind == "mismatch":
                if text == '"':
                    raise ParseError("Unterminated string", position, text)
                raise ParseError("Unexpected character", position, text)
            if kind == "ident":
                raise ParseError("Unknown identifier", position, text)
            if kind == "quantity":
                tokens.append(Token(
                    kind, text, position,
                    number=float(match.group("q_number")),
                    unit=match.group("q_unit"),
                ))
            elif kind == "currency":
                tokens.append(Token(
                    kind, text, position,
                    number=float(match.group("c_number")),
                    unit=match.group("c_symbol") + (match.group("c_unit") or ""),
                ))
            else:
                tokens.append(Token(kind, text, position))
        return tokens

    # ─────────────────────────────────────────────────────────
    # Grammar
    # ─────────────────────────────────────────────────────────

    def _parse_or(self, stream: _TokenStream) -> Expr:
        left = self._parse_and(stream)
        while stream.at("keyword", "OR"):
            stream.advance()
            left = Or(left, self._parse_and(stream))
        return left

    def _parse_and(self, stream: _TokenStream) -> Expr:
        left = self._parse_not(stream)
        while stream.at("keyword", "AND"):
            stream.advance()
            left = And(left, self._parse_not(stream))
        return left

    def _parse_not(self, stream: _TokenStream) -> Expr:
        if stream.at("keyword", "NOT"):
            stream.advance()
            return Not(self._parse_not(stream))
        return self._parse_comparison(stream)

    def _parse_comparison(self, stream: _TokenStream) -> Expr:
        left = self._parse_additive(stream)
        while stream.at("op") and stream.peek().text in self.COMPARISON_OPS:
            op = self.COMPARISON_OPS[stream.advance().text]
            left = op(left, self._parse_additive(stream))
        return left

    def _parse_additive(self, stream: _TokenStream) -> Expr:
        left = self._parse_multiplicative(stream)
        while stream.at("op") and stream.peek().text in self.ADDITIVE_OPS:
            op = self.ADDITIVE_OPS[stream.advance().text]
            left = op(left, self._parse_multiplicative(stream))
        return left

    def _parse_multiplicative(self, stream: _TokenStream) -> Expr:
        left = self._parse_unary(stream)
        while stream.at("op") and stream.peek().text in self.MULTIPLICATIVE_OPS:
            op = self.MULTIPLICATIVE_OPS[stream.advance().text]
            left = op(left, self._parse_unary(stream))
        return left

    def _parse_unary(self, stream: _TokenStream) -> Expr:
        if stream.at("op", "-"):
            stream.advance()
            return Negate(self._parse_unary(stream))
        if stream.at("op", "+"):
            stream.advance()
            return self._parse_unary(stream)
        return self._parse_primary(stream)

    def _parse_primary(self, stream: _TokenStream) -> Expr:
        token = stream.peek()
        if token is None:
            raise ParseError("Unexpected end of formula", len(stream.source))

        if token.kind in ("quantity", "currency"):
            stream.advance()
            if token.unit:
                return NumberWithUnit(token.number, token.unit)
            return Number(token.number)

        if token.kind == "string":
            stream.advance()
            return String(token.text[1:-1].replace('""', '"'))

        if token.kind == "bool":
            stream.advance()
            return Boolean(token.text == "TRUE")

        if token.kind == "range":
            stream.advance()
            start, end = token.text.split(":")
            return Range(self._cell_ref(start), self._cell_ref(end))

        if token.kind == "ref":
            stream.advance()
            return self._cell_ref(token.text)

        if token.kind == "name":
            stream.advance()
            return NamedRef(token.text)

        if token.kind == "func":
            return self._parse_function(stream)

        if token.kind == "lparen":
            stream.advance()
            expr = self._parse_or(stream)
            stream.expect("rparen", "')'")
            return expr

        raise ParseError("Unexpected token", token.position, token.text)

    def _parse_function(self, stream: _TokenStream) -> Expr:
        name = stream.advance().text
        stream.expect("lparen", "'('")
        args: List[Expr] = []
        if stream.at("rparen"):
            stream.advance()
            return Function(name, tuple(args))

        while True:
            args.append(self._parse_or(stream))
            if stream.at("comma"):
                stream.advance()
                continue
            stream.expect("rparen", f"',' or ')' in {name}()")
            return Function(name, tuple(args))

    @staticmethod
    def _cell_ref(text: str) -> CellRef:
        try:
            col, row = coordinate_from_string(text)
        except CellCoordinatesException as e:
            raise ParseError(str(e), None, text)
        return CellRef(col, row)


_default_parser = FormulaParser()


def parse_formula(text: str) -> Expr:
    """Parse formula text with the shared parser"""
    return _default_parser.parse(text)
