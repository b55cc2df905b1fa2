"""Smoke tests: imports work, CLI --help works, a diagram file round-trips through the CLI."""

import json

from click.testing import CliRunner

from flowlayout.__main__ import main

from helpers import chain_diagram


def test_import():
    import flowlayout

    assert flowlayout is not None


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "Lay out a JSON diagram" in result.output


def test_cli_layout_file(tmp_path):
    src = tmp_path / "diagram.json"
    src.write_text(json.dumps(chain_diagram().to_dict()))
    result = CliRunner().invoke(main, [str(src), "--grid", "10"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["result"]["success"] is True
    task = next(el for el in data["diagram"]["elements"] if el["id"] == "Task_1")
    assert task["x"] % 10 == 0


def test_cli_writes_output_file(tmp_path):
    src = tmp_path / "diagram.json"
    out = tmp_path / "laid_out.json"
    src.write_text(json.dumps(chain_diagram().to_dict()))
    result = CliRunner().invoke(main, [str(src), "-o", str(out)])
    assert result.exit_code == 0
    assert json.loads(out.read_text())["result"]["success"] is True


def test_cli_bad_scope(tmp_path):
    src = tmp_path / "diagram.json"
    src.write_text(json.dumps(chain_diagram().to_dict()))
    result = CliRunner().invoke(main, [str(src), "--scope", "Nope"])
    assert result.exit_code == 1
    assert "layout error" in result.output


def test_cli_bad_json():
    result = CliRunner().invoke(main, [], input="{not json")
    assert result.exit_code == 1
    assert "parse error" in result.output


def test_cli_bad_direction(tmp_path):
    src = tmp_path / "diagram.json"
    src.write_text(json.dumps(chain_diagram().to_dict()))
    result = CliRunner().invoke(main, [str(src), "-d", "sideways"])
    assert result.exit_code == 1
    assert "Unknown direction" in result.output
