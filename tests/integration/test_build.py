"""Integration tests: full builds over fixture projects."""

from __future__ import annotations

import shutil
import threading
from pathlib import Path

import pytest

from structgraph import (
    BuildCancelled,
    BuildConfig,
    BuildState,
    CancelToken,
    ProjectBuilder,
    ProjectRootNotFoundError,
    build_graph,
)
from structgraph.analysis import parser as parser_module
from structgraph.analysis.entities import EntityKind
from structgraph.analysis.parser import PythonParseAdapter
from structgraph.analysis.relationships import RelationshipKind
from structgraph.graph.model import CodeGraph

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"


@pytest.fixture
def fixture_project(tmp_path: Path) -> Path:
    """Copy tests/fixtures into tmp_path."""
    dest = tmp_path / "project"
    shutil.copytree(FIXTURES, dest)
    return dest


def edge_tuples(graph: CodeGraph) -> list[tuple[str, str, str]]:
    return [(e.kind.value, e.from_entity_id, e.target_label) for e in graph.edges]


def test_two_module_inheritance_scenario(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("class Base:\n    def greet(self):\n        pass\n")
    (tmp_path / "b.py").write_text(
        "from a import Base\n\nclass Child(Base):\n    def run(self):\n        return self.greet()\n"
    )
    graph = build_graph(tmp_path)

    assert {(e.kind, e.qualified_name) for e in graph} == {
        (EntityKind.MODULE, "a"),
        (EntityKind.CLASS, "Base"),
        (EntityKind.METHOD, "Base.greet"),
        (EntityKind.MODULE, "b"),
        (EntityKind.CLASS, "Child"),
        (EntityKind.METHOD, "Child.run"),
    }
    edges = edge_tuples(graph)
    assert ("inherits", "b.py::Child", "a.py::Base") in edges
    assert ("calls", "b.py::Child.run", "a.py::Base.greet") in edges
    assert ("imports", "b.py", "a.py") in edges
    assert graph.report.unresolved == ()


def test_calls_fixture_edges(fixture_project: Path) -> None:
    graph = build_graph(fixture_project, files=["calls.py"])
    assert edge_tuples(graph) == [
        ("contains", "calls.py", "calls.py::greet"),
        ("contains", "calls.py", "calls.py::main"),
        ("contains", "calls.py", "calls.py::Calculator"),
        ("instantiates", "calls.py", "calls.py::Calculator"),
        ("calls", "calls.py", "calls.py::Calculator.add"),
        ("calls", "calls.py", "calls.py::Calculator.multiply"),
        ("calls", "calls.py::greet", "print"),
        ("calls", "calls.py::greet", "name.upper"),
        ("calls", "calls.py::main", "calls.py::greet"),
        ("calls", "calls.py::main", "calls.py::greet"),
        ("calls", "calls.py::main", "print"),
        ("contains", "calls.py::Calculator", "calls.py::Calculator.add"),
        ("contains", "calls.py::Calculator", "calls.py::Calculator.multiply"),
        ("calls", "calls.py::Calculator.multiply", "calls.py::Calculator.add"),
    ]


def test_comprehensive_fixture(fixture_project: Path) -> None:
    graph = build_graph(fixture_project, files=["comprehensive.py"])
    edges = edge_tuples(graph)
    unit = "comprehensive.py"
    assert ("inherits", f"{unit}::Dog", f"{unit}::Animal") in edges
    assert ("inherits", f"{unit}::Cat", f"{unit}::Animal") in edges
    assert ("inherits", f"{unit}::Animal", "ABC") in edges
    assert ("calls", f"{unit}::Dog.fetch", f"{unit}::Animal.move") in edges
    assert ("calls", f"{unit}::Cat.scratch", f"{unit}::Animal.move") in edges
    assert ("instantiates", f"{unit}::create_animal", f"{unit}::Dog") in edges
    assert ("instantiates", f"{unit}::create_animal", f"{unit}::Cat") in edges
    assert ("calls", unit, f"{unit}::main") in edges
    assert [t for k, s, t in edges if k == "imports"] == ["os", "typing", "abc"]
    # dog = create_animal(...) gives no class for the receiver
    assert ("calls", f"{unit}::main", "dog.make_sound") in edges
    assert graph.get(f"{unit}::Animal.make_sound").is_abstract


def test_fixture_project_modules(fixture_project: Path) -> None:
    graph = build_graph(fixture_project / "test_project")
    modules = sorted(e.name for e in graph.entities_of_kind(EntityKind.MODULE))
    assert modules == ["models.product", "models.user", "utils"]
    assert graph.get("models/user.py::User.get_display_name").docstring == "Get the display name."
    assert graph.report.units_failed == 0


def test_malformed_unit_is_isolated(fixture_project: Path) -> None:
    graph = build_graph(fixture_project, files=["simple.py", "malformed.py"])
    report = graph.report
    assert report.units_total == 2
    assert report.units_parsed == 1
    assert [f.unit_id for f in report.failures] == ["malformed.py"]
    assert report.failure_for("malformed.py") is not None
    assert report.failure_for("simple.py") is None
    assert report.success_rate == 50.0
    assert graph.entities_in_unit("malformed.py") == []

    alone = build_graph(fixture_project, files=["simple.py"])
    assert list(alone.entities) == list(graph.entities)
    assert alone.edges == graph.edges


def test_recover_mode_keeps_malformed_unit(fixture_project: Path) -> None:
    graph = build_graph(
        fixture_project, BuildConfig(error_mode="recover"), files=["malformed.py"]
    )
    assert graph.report.units_failed == 0
    assert graph.report.units_parsed == 1
    assert len(graph.report.diagnostics) >= 1
    assert "malformed.py" in graph


def test_build_is_deterministic(fixture_project: Path) -> None:
    first = build_graph(fixture_project)
    second = build_graph(fixture_project)
    assert list(first.entities) == list(second.entities)
    assert [e.to_dict() for e in first.edges] == [e.to_dict() for e in second.edges]
    assert first.report.failures == second.report.failures


def test_parallel_build_matches_sequential(fixture_project: Path) -> None:
    sequential = build_graph(fixture_project)
    parallel = build_graph(fixture_project, BuildConfig(parallel=True, workers=4))
    assert list(parallel.entities) == list(sequential.entities)
    assert [e.to_dict() for e in parallel.edges] == [e.to_dict() for e in sequential.edges]
    assert parallel.report.failures == sequential.report.failures


def test_every_entity_is_contained_once(fixture_project: Path) -> None:
    graph = build_graph(fixture_project)
    contained = [e.to_entity_id for e in graph.edges_of_kind(RelationshipKind.CONTAINS)]
    assert len(contained) == len(set(contained))
    non_modules = {e.entity_id for e in graph if e.kind != EntityKind.MODULE}
    assert set(contained) == non_modules
    for edge in graph.edges_of_kind(RelationshipKind.CONTAINS):
        assert graph.get(edge.to_entity_id).parent_id == edge.from_entity_id


def test_edges_reference_known_entities(fixture_project: Path) -> None:
    graph = build_graph(fixture_project)
    for edge in graph.edges:
        assert edge.from_entity_id in graph
        if edge.is_resolved:
            assert edge.to_entity_id in graph
        else:
            assert edge in graph.report.unresolved
    for edge in graph.edges_of_kind(RelationshipKind.INSTANTIATES):
        assert graph.get(edge.to_entity_id).kind == EntityKind.CLASS


def test_builder_reaches_done(fixture_project: Path) -> None:
    builder = ProjectBuilder()
    assert builder.state == BuildState.IDLE
    builder.build(fixture_project)
    assert builder.state == BuildState.DONE


def test_cancelled_build_raises(fixture_project: Path) -> None:
    token = CancelToken()
    token.cancel()
    builder = ProjectBuilder()
    with pytest.raises(BuildCancelled):
        builder.build(fixture_project, cancel=token)
    assert builder.state != BuildState.DONE


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(ProjectRootNotFoundError):
        build_graph(tmp_path / "nope")


def test_empty_project(tmp_path: Path) -> None:
    graph = build_graph(tmp_path)
    assert len(graph) == 0
    assert graph.edges == ()
    assert graph.report.units_total == 0
    assert graph.report.success_rate == 100.0


def test_parse_timeout_config_builds(fixture_project: Path) -> None:
    graph = build_graph(fixture_project, BuildConfig(parse_timeout=30.0), files=["simple.py"])
    assert graph.report.units_failed == 0


def test_timed_out_unit_fails_while_others_build(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "fast.py").write_text("def ok():\n    pass\n")
    (tmp_path / "slow.py").write_text("stall = 1\n")
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
    try:
        graph = build_graph(tmp_path, BuildConfig(parse_timeout=0.05))
    finally:
        release.set()

    assert [(f.unit_id, f.message) for f in graph.report.failures] == [
        ("slow.py", "parse timed out after 0.05 s")
    ]
    assert graph.report.units_parsed == 1
    assert "fast.py::ok" in graph
    assert graph.entities_in_unit("slow.py") == []


class CancellingAdapter(PythonParseAdapter):
    """Cancels the token once `after` units have been parsed."""

    def __init__(self, token: CancelToken, after: int) -> None:
        super().__init__()
        self.token = token
        self.after = after
        self.parsed: list[str] = []

    def parse(self, unit):
        self.parsed.append(unit.unit_id)
        if len(self.parsed) >= self.after:
            self.token.cancel()
        return super().parse(unit)


def test_cancel_between_unit_completions(fixture_project: Path) -> None:
    token = CancelToken()
    adapter = CancellingAdapter(token, after=2)
    builder = ProjectBuilder(adapter=adapter)
    with pytest.raises(BuildCancelled):
        builder.build(fixture_project, cancel=token)
    assert adapter.parsed == ["calls.py", "comprehensive.py"]
    assert builder.state == BuildState.PARSING


def test_cancel_during_parallel_parse(fixture_project: Path) -> None:
    token = CancelToken()
    adapter = CancellingAdapter(token, after=2)
    builder = ProjectBuilder(BuildConfig(parallel=True, workers=2), adapter=adapter)
    with pytest.raises(BuildCancelled):
        builder.build(fixture_project, cancel=token)
    assert builder.state == BuildState.PARSING
