"""Project build orchestration: load, parse, extract, resolve, assemble."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from structgraph.analysis.loader import load_units
from structgraph.analysis.parser import ParseOutcome, PythonParseAdapter, SyntaxTree
from structgraph.analysis.references import ReferenceExtractor
from structgraph.analysis.relationships import RelationshipIntent
from structgraph.analysis.symbols import SymbolExtractor, UnitSymbols
from structgraph.analysis.units import ParseDiagnostic, ParseFailure
from structgraph.config import BuildConfig
from structgraph.errors import BuildCancelled
from structgraph.graph.assembler import GraphAssembler
from structgraph.graph.model import BuildReport, CodeGraph, GraphBuffer

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_Extracted = Union[Tuple[UnitSymbols, List[RelationshipIntent]], ParseFailure]


class BuildState(Enum):
    """Stages of one build, in order. DONE is reached by every build that is not cancelled."""

    IDLE = "idle"
    LOADING = "loading"
    PARSING = "parsing"
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    ASSEMBLING = "assembling"
    DONE = "done"


class CancelToken:
    """Cancellation signal shared between a caller and a running build."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BuildCancelled("build cancelled")


class ProjectBuilder:
    """
    Build a CodeGraph for one project.

    Every stage runs over the full unit set before the next one starts. Loading,
    parsing and extraction are per unit and may run on a thread pool; their
    results land in write-once slots keyed by unit id. Resolution and assembly
    run on the calling thread once every unit has been extracted, because any
    unit's imports may point at any other unit.
    """

    def __init__(
        self,
        config: Optional[BuildConfig] = None,
        adapter: Optional[PythonParseAdapter] = None,
    ) -> None:
        self._config = config or BuildConfig()
        self._config.validate()
        self._adapter = adapter or PythonParseAdapter(
            error_mode=self._config.error_mode, timeout=self._config.parse_timeout
        )
        self._symbols = SymbolExtractor(self._config)
        self._references = ReferenceExtractor()
        self.state = BuildState.IDLE

    @property
    def config(self) -> BuildConfig:
        return self._config

    def _enter(self, state: BuildState) -> None:
        self.state = state
        logger.debug("Build state: %s", state.value)

    def _run_per_unit(
        self,
        fn: Callable[[T], R],
        items: Sequence[T],
        key: Callable[[T], str],
        cancel: Optional[CancelToken],
    ) -> Dict[str, R]:
        """Apply fn to every item, possibly in parallel; results keyed by unit id."""
        results: Dict[str, R] = {}
        if not self._config.parallel or len(items) < 2:
            for item in items:
                results[key(item)] = fn(item)
                if cancel is not None:
                    cancel.raise_if_cancelled()
            return results

        with ThreadPoolExecutor(
            max_workers=self._config.workers, thread_name_prefix="structgraph"
        ) as pool:
            futures = {pool.submit(fn, item): key(item) for item in items}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
                    if cancel is not None:
                        cancel.raise_if_cancelled()
            except BuildCancelled:
                for future in futures:
                    future.cancel()
                raise
        return results

    def _extract(self, syntax: SyntaxTree) -> _Extracted:
        unit_id = syntax.unit.unit_id
        try:
            symbols = self._symbols.extract(syntax)
            intents = self._references.extract(symbols)
        except Exception as exc:
            logger.exception("Extraction failed for %s", unit_id)
            return ParseFailure(unit_id, f"extraction error: {exc}")
        return symbols, intents

    def build(
        self,
        project_root: Union[Path, str],
        files: Optional[Iterable[Union[Path, str]]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> CodeGraph:
        """
        Build the graph for project_root (or an explicit file list under it).

        Returns:
            CodeGraph; per-unit problems are in graph.report.

        Raises:
            ProjectRootNotFoundError: project_root does not exist.
            BuildCancelled: cancel was triggered before the build finished.
        """
        start = time.perf_counter()

        self._enter(BuildState.LOADING)
        loaded = load_units(project_root, self._config, files)
        failures: List[ParseFailure] = list(loaded.failures)
        if cancel is not None:
            cancel.raise_if_cancelled()

        self._enter(BuildState.PARSING)
        outcomes: Dict[str, ParseOutcome] = self._run_per_unit(
            self._adapter.parse, loaded.units, lambda u: u.unit_id, cancel
        )
        trees: List[SyntaxTree] = []
        diagnostics: List[ParseDiagnostic] = []
        for unit in loaded.units:
            outcome = outcomes[unit.unit_id]
            if outcome.tree is not None:
                trees.append(outcome.tree)
                diagnostics.extend(outcome.tree.diagnostics)
            elif outcome.failure is not None:
                failures.append(outcome.failure)

        self._enter(BuildState.EXTRACTING)
        extracted = self._run_per_unit(self._extract, trees, lambda t: t.unit.unit_id, cancel)
        units: List[UnitSymbols] = []
        intents: Dict[str, List[RelationshipIntent]] = {}
        for syntax in trees:
            result = extracted[syntax.unit.unit_id]
            if isinstance(result, ParseFailure):
                failures.append(result)
                continue
            symbols, unit_intents = result
            units.append(symbols)
            intents[symbols.unit_id] = unit_intents

        if cancel is not None:
            cancel.raise_if_cancelled()

        self._enter(BuildState.RESOLVING)
        assembler = GraphAssembler(units, intents)

        self._enter(BuildState.ASSEMBLING)
        buffer = GraphBuffer()
        assembler.assemble(buffer)

        failures.sort(key=lambda f: f.unit_id)
        report = BuildReport(
            failures=tuple(failures),
            diagnostics=tuple(diagnostics),
            unresolved=tuple(buffer.unresolved),
            cycles=tuple(buffer.cycles),
            units_total=len(loaded.units) + len(loaded.failures),
            units_parsed=len(units),
            elapsed=time.perf_counter() - start,
        )
        graph = CodeGraph(buffer.entities, tuple(buffer.edges), report)
        self._enter(BuildState.DONE)
        logger.info(
            "Built graph for %d unit(s) in %.2fs: %d entities, %d edges, %d failed, %d unresolved",
            report.units_total,
            report.elapsed,
            len(graph.entities),
            len(graph.edges),
            report.units_failed,
            len(report.unresolved),
        )
        return graph


def build_graph(
    project_root: Union[Path, str],
    config: Optional[BuildConfig] = None,
    files: Optional[Iterable[Union[Path, str]]] = None,
    cancel: Optional[CancelToken] = None,
) -> CodeGraph:
    """Build a CodeGraph with a fresh ProjectBuilder."""
    return ProjectBuilder(config).build(project_root, files=files, cancel=cancel)
