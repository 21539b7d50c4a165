"""Main entry point for Unicel"""

import argparse
import json
import logging
import sys
from pathlib import Path

from config import settings
from core.enums import DisplayPreference
from core.exceptions import UnicelError
from core.models import format_number
from formats.document import load_workbook, save_workbook
from table.workbook import Workbook
from tools.handler import WorkbookTools
from units.library import UnitLibrary


def _open_workbook(path, library: UnitLibrary) -> Workbook:
    if path is None:
        return Workbook(library=library)
    return load_workbook(path, library)


def cmd_eval(args, library: UnitLibrary) -> int:
    workbook = _open_workbook(args.file, library)
    result = workbook.get_sheet(args.sheet).evaluate_formula(args.formula)
    print(result.as_text())
    if result.warning:
        print(f"  Warning: {result.warning}")
    return 0


def cmd_convert(args, library: UnitLibrary) -> int:
    source = library.parse_unit(args.from_unit)
    target = library.parse_unit(args.to_unit)
    converted = library.convert_compound(args.value, source.canonical, target.canonical)
    if converted is None:
        print(f"✗ Cannot convert {args.from_unit} to {args.to_unit}")
        return 1
    print(f"{format_number(args.value)} {args.from_unit} = {format_number(converted)} {args.to_unit}")
    return 0


def cmd_units(args, library: UnitLibrary) -> int:
    if args.symbol:
        symbols = library.compatible_units(args.symbol)
        print(f"Units compatible with {args.symbol}:")
    else:
        symbols = library.symbols()
    for row in library.describe(symbols):
        print(f"  {row['symbol']:<10} {row['dimension']}")
    if not args.symbol:
        print("Aliases:")
        for alias, symbol in sorted(library.aliases.items()):
            print(f"  {alias:<10} {symbol}")
    return 0


def cmd_show(args, library: UnitLibrary) -> int:
    workbook = load_workbook(args.file, library)
    if args.display:
        workbook.display_preference = DisplayPreference(args.display)

    for sheet in workbook.sheets:
        print(f"[{sheet.name}]")
        for addr in sheet.cell_addresses():
            cell = sheet.get(addr)
            value, unit = workbook.display_value(addr, sheet.name)
            text = str(cell.value) if value is None else f"{format_number(value)} {unit}".strip()
            formula = f"  {cell.formula}" if cell.formula else ""
            print(f"  {str(addr):<6} {text}{formula}")
            if cell.warning:
                print(f"         Warning: {cell.warning}")

    if workbook.named_ranges:
        print("Names:")
        for name, named in sorted(workbook.named_ranges.items()):
            print(f"  {name} = {named.sheet}!{named.address}")
    return 0


def cmd_tool(args, library: UnitLibrary) -> int:
    workbook = _open_workbook(args.file, library)
    tools = WorkbookTools(workbook)
    try:
        arguments = json.loads(args.arguments) if args.arguments else {}
    except json.JSONDecodeError as e:
        print(f"✗ Arguments are not valid JSON: {e}")
        return 1

    response = tools.handle(args.name, arguments)
    print(response.to_json())
    if response.success and args.save and args.file is not None and workbook.dirty:
        save_workbook(workbook, args.file)
    return 0 if response.success else 1


def main():
    parser = argparse.ArgumentParser(
        description="Unicel - Unit-aware spreadsheet engine",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.LOG_LEVEL,
        help="Logging level"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    eval_parser = subparsers.add_parser("eval", help="Evaluate a formula")
    eval_parser.add_argument("formula", help="Formula text, e.g. '=100m + 50cm'")
    eval_parser.add_argument("--file", type=Path, help="Workbook (.usheet) to evaluate against")
    eval_parser.add_argument("--sheet", type=str, help="Sheet name (defaults to active sheet)")
    eval_parser.set_defaults(handler=cmd_eval)

    convert_parser = subparsers.add_parser("convert", help="Convert a value between units")
    convert_parser.add_argument("value", type=float)
    convert_parser.add_argument("from_unit")
    convert_parser.add_argument("to_unit")
    convert_parser.set_defaults(handler=cmd_convert)

    units_parser = subparsers.add_parser("units", help="List known units")
    units_parser.add_argument("symbol", nargs="?", help="Only list units compatible with this one")
    units_parser.set_defaults(handler=cmd_units)

    show_parser = subparsers.add_parser("show", help="Print the cells of a workbook")
    show_parser.add_argument("file", type=Path, help="Workbook (.usheet) path")
    show_parser.add_argument(
        "--display",
        choices=[preference.value for preference in DisplayPreference],
        help="Display unit system"
    )
    show_parser.set_defaults(handler=cmd_show)

    tool_parser = subparsers.add_parser("tool", help="Run a tool operation")
    tool_parser.add_argument("name", help="Tool name, e.g. read_cell")
    tool_parser.add_argument("arguments", nargs="?", help="JSON object of arguments")
    tool_parser.add_argument("--file", type=Path, help="Workbook (.usheet) path")
    tool_parser.add_argument("--save", action="store_true", help="Write changes back to --file")
    tool_parser.set_defaults(handler=cmd_tool)

    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    library = UnitLibrary()
    try:
        return args.handler(args, library)
    except UnicelError as e:
        print(f"✗ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
