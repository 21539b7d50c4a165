import sys

import main
from formats.document import save_workbook


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["unicel", *args])
    return main.main()


def test_eval_command(monkeypatch, capsys):
    assert run(monkeypatch, "eval", "=100 m + 50 cm") == 0

    assert capsys.readouterr().out.strip() == "10050 cm"


def test_eval_command_reports_errors(monkeypatch, capsys):
    assert run(monkeypatch, "eval", "=1 m + 1 kg") == 1

    assert "Incompatible units" in capsys.readouterr().out


def test_convert_command(monkeypatch, capsys):
    assert run(monkeypatch, "convert", "1", "km", "m") == 0
    assert capsys.readouterr().out.strip() == "1 km = 1000 m"

    assert run(monkeypatch, "convert", "1", "km", "kg") == 1


def test_units_command(monkeypatch, capsys):
    assert run(monkeypatch, "units", "hr") == 0

    out = capsys.readouterr().out
    assert "min" in out
    assert "kg" not in out


def test_show_command(monkeypatch, capsys, workbook, tmp_path):
    workbook.enter("A1", "2 km")
    workbook.enter("A2", "=A1 * 2")
    path = save_workbook(workbook, tmp_path / "plan.usheet")

    assert run(monkeypatch, "show", str(path), "--display", "metric") == 0

    out = capsys.readouterr().out
    assert "[Sheet1]" in out
    assert "2000 m" in out
    assert "=A1 * 2" in out


def test_tool_command_saves_changes(monkeypatch, capsys, workbook, tmp_path):
    path = save_workbook(workbook, tmp_path / "plan.usheet")

    code = run(monkeypatch, "tool", "write_cell", '{"cell_ref": "B1", "value": "5 kg"}',
               "--file", str(path), "--save")

    assert code == 0
    assert '"success": true' in capsys.readouterr().out
    assert run(monkeypatch, "tool", "read_cell", '{"cell_ref": "B1"}', "--file", str(path)) == 0
