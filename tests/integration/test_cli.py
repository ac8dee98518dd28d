"""Integration tests: structgraph analyze / export through the CLI entry point."""

from __future__ import annotations

import csv
import io
import json
import shutil
from pathlib import Path

import pytest

from structgraph.cli import main
from structgraph.commands.analyze import config_for_args

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """No real ~/.structgraph/config.json leaks into the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))


@pytest.fixture
def fixture_project(tmp_path: Path) -> Path:
    dest = tmp_path / "project"
    shutil.copytree(FIXTURES, dest)
    return dest


def test_analyze_prints_summary(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["analyze", str(fixture_project), "-q"])
    out = capsys.readouterr().out
    assert "Analyzed 6 of 7 file(s)" in out
    assert "Failed files (1):" in out
    assert "malformed.py:" in out
    assert "Unresolved:" not in out


def test_analyze_show_unresolved(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["analyze", str(fixture_project / "test_project"), "--show-unresolved", "-q"])
    out = capsys.readouterr().out
    assert "Unresolved:" in out
    assert "calls data.upper" in out


def test_analyze_recover(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["analyze", str(fixture_project), "--recover", "-q"])
    out = capsys.readouterr().out
    assert "Analyzed 7 of 7 file(s)" in out
    assert "Diagnostics (" in out


def test_export_json(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["export", str(fixture_project / "test_project"), "--format", "json", "-q"])
    data = json.loads(capsys.readouterr().out)
    ids = [e["entity_id"] for e in data["entities"]]
    assert "models/user.py::User" in ids
    assert data["report"]["units_total"] == 3


def test_export_csv_formats(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["export", str(fixture_project), "-f", "nodes-csv", "-q"])
    nodes = list(csv.DictReader(io.StringIO(capsys.readouterr().out)))
    assert any(r["entity_id"] == "calls.py::Calculator.add" for r in nodes)

    main(["export", str(fixture_project), "-f", "edges-csv", "--jobs", "2", "-q"])
    edges = list(csv.DictReader(io.StringIO(capsys.readouterr().out)))
    assert [int(r["index"]) for r in edges] == list(range(len(edges)))


def test_missing_root_exits_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["analyze", str(tmp_path / "missing"), "-q"])
    assert exc.value.code == 1
    assert "Project root not found" in capsys.readouterr().err


def test_invalid_project_config_exits_1(fixture_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_dir = fixture_project / ".structgraph"
    config_dir.mkdir()
    (config_dir / "config.json").write_text(json.dumps({"analysis": {"error_mode": "bogus"}}))
    with pytest.raises(SystemExit) as exc:
        main(["analyze", str(fixture_project), "-q"])
    assert exc.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_invalid_timeout_is_rejected_by_argparse() -> None:
    with pytest.raises(SystemExit) as exc:
        main(["analyze", ".", "--timeout", "0"])
    assert exc.value.code == 2


def test_config_for_args_applies_overrides(tmp_path: Path) -> None:
    args = type("Args", (), {"path": tmp_path, "recover": True, "timeout": 5.0, "jobs": 3})()
    config = config_for_args(args)
    assert config.error_mode == "recover"
    assert config.parse_timeout == 5.0
    assert config.parallel is True
    assert config.workers == 3
