"""Interpretation of text typed into a cell"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from core.exceptions import UnknownUnitError
from core.models import Cell
from units.library import PERCENT, UnitLibrary


LABEL_PATTERN = re.compile(r"^(?P<label>[a-z_][A-Za-z0-9_]*)\s*:(?P<rest>.*)$", re.DOTALL)
LITERAL_PATTERN = re.compile(
    r"""
    ^(?P<sign>[-+])?
    \s*(?P<currency>[$€£])?
    \s*(?P<number>(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|\.\d+)
    \s*(?P<unit>.*?)\s*$
    """,
    re.VERBOSE,
)


def split_label(text: str) -> Tuple[Optional[str], str]:
    """Split "label: value" or "label:= formula" into label and content.

    Labels start with a lowercase letter or underscore, so times such as
    "12:30" and plain text stay unlabelled.
    """
    match = LABEL_PATTERN.match(text.strip())
    if not match:
        return None, text.strip()
    return match.group("label"), match.group("rest").strip()


def parse_cell_input(text: str, library: UnitLibrary) -> Cell:
    """Cell for user input: formula, number with unit, or text"""
    content = text.strip()
    if not content:
        return Cell.empty()
    if content.startswith("="):
        return Cell.with_formula(content)

    match = LITERAL_PATTERN.match(content)
    if not match:
        return Cell.with_text(content)

    value = float(match.group("number").replace(",", ""))
    if match.group("sign") == "-":
        value = -value
    unit_text = match.group("unit")

    currency = match.group("currency")
    if currency:
        if unit_text and not unit_text.startswith("/"):
            return Cell.with_text(content)
        unit_text = currency + unit_text

    if not unit_text:
        return Cell.new(value)
    if unit_text == PERCENT:
        return Cell.new(value / 100.0, library.get(PERCENT))

    try:
        unit = library.parse_unit(unit_text)
    except UnknownUnitError:
        return Cell.with_text(content)
    return Cell.new(value, unit)
