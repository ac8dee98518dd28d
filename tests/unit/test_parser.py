"""Unit tests for the tree-sitter parse adapter."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from structgraph.analysis import parser as parser_module
from structgraph.analysis.parser import PythonParseAdapter
from structgraph.analysis.units import SourceUnit

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"


def _unit(text: str, unit_id: str = "sample.py") -> SourceUnit:
    return SourceUnit(unit_id=unit_id, module_name=unit_id[:-3], path=Path(unit_id), text=text)


def _fixture_unit(name: str) -> SourceUnit:
    return _unit((FIXTURES / name).read_text(encoding="utf-8"), name)


@pytest.fixture
def adapter() -> PythonParseAdapter:
    return PythonParseAdapter()


def test_parse_valid_source(adapter: PythonParseAdapter) -> None:
    outcome = adapter.parse(_fixture_unit("simple.py"))
    assert outcome.ok
    assert outcome.failure is None
    assert outcome.tree.root.type == "module"
    assert outcome.tree.diagnostics == ()


def test_parse_empty_source(adapter: PythonParseAdapter) -> None:
    outcome = adapter.parse(_unit(""))
    assert outcome.ok


def test_strict_mode_rejects_syntax_errors(adapter: PythonParseAdapter) -> None:
    outcome = adapter.parse(_fixture_unit("malformed.py"))
    assert not outcome.ok
    assert outcome.tree is None
    failure = outcome.failure
    assert failure.unit_id == "malformed.py"
    assert "line" in failure.message
    assert failure.source_span is not None
    assert failure.source_span.start_line >= 1


def test_strict_failure_is_deterministic(adapter: PythonParseAdapter) -> None:
    unit = _fixture_unit("malformed.py")
    assert adapter.parse(unit).failure == adapter.parse(unit).failure


def test_recover_mode_keeps_tree_with_diagnostics() -> None:
    adapter = PythonParseAdapter(error_mode="recover")
    outcome = adapter.parse(_fixture_unit("malformed.py"))
    assert outcome.ok
    assert outcome.failure is None
    assert len(outcome.tree.diagnostics) >= 1
    assert all(d.unit_id == "malformed.py" for d in outcome.tree.diagnostics)


def test_unbalanced_parameters_rejected() -> None:
    adapter = PythonParseAdapter()
    outcome = adapter.parse(_unit("def f(:\n    pass\n"))
    assert not outcome.ok


def test_parse_with_timeout_completes() -> None:
    adapter = PythonParseAdapter(timeout=30.0)
    outcome = adapter.parse(_fixture_unit("comprehensive.py"))
    assert outcome.ok


@pytest.fixture
def stalled_parser(monkeypatch: pytest.MonkeyPatch):
    """Parser whose parse blocks on sources mentioning 'stall' until the test ends."""
    release = threading.Event()
    real_parser = parser_module.Parser

    class StalledParser:
        def __init__(self, language):
            self._parser = real_parser(language)

        def parse(self, source_code):
            if b"stall" in source_code:
                release.wait(5)
            return self._parser.parse(source_code)

    monkeypatch.setattr(parser_module, "Parser", StalledParser)
    yield
    release.set()


def test_parse_timeout_becomes_failure(stalled_parser) -> None:
    adapter = PythonParseAdapter(timeout=0.05)
    outcome = adapter.parse(_unit("stall = 1\n", "slow.py"))
    assert not outcome.ok
    assert outcome.failure.unit_id == "slow.py"
    assert outcome.failure.message == "parse timed out after 0.05 s"

    # the abandoned worker does not affect the next parse
    assert adapter.parse(_unit("x = 1\n")).ok


def test_parse_unicode_source(adapter: PythonParseAdapter) -> None:
    outcome = adapter.parse(_unit('def greet():\n    return "héllo"\n'))
    assert outcome.ok
