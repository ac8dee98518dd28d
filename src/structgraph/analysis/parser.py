"""Parse adapter: run tree-sitter on one unit and report a tree or a ParseFailure."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

import tree_sitter_python as tspython
from tree_sitter import Language, Node, Parser, Tree

from .entities import SourceSpan
from .units import ParseDiagnostic, ParseFailure, SourceUnit

logger = logging.getLogger(__name__)

PY_LANGUAGE = Language(tspython.language())

_EXCERPT_LEN = 40


def node_text(node: Node, source_code: bytes) -> str:
    """Get text content of a node."""
    return source_code[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def compact_text(text: str) -> str:
    """Drop all whitespace so multi-line references compare as written on one line."""
    return "".join(text.split())


def span_of(node: Node, unit_id: str) -> SourceSpan:
    """Source span of a node (1-based lines and column)."""
    return SourceSpan(
        unit_id=unit_id,
        start=node.start_byte,
        end=node.end_byte,
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        start_column=node.start_point[1] + 1,
    )


@dataclass(frozen=True)
class SyntaxTree:
    """A usable tree for one unit, with any recovered-error diagnostics."""

    unit: SourceUnit
    tree: Tree
    source: bytes
    diagnostics: tuple[ParseDiagnostic, ...] = ()

    @property
    def root(self) -> Node:
        return self.tree.root_node


@dataclass(frozen=True)
class ParseOutcome:
    """Either a SyntaxTree or a ParseFailure for one unit, never both."""

    unit_id: str
    tree: Optional[SyntaxTree] = None
    failure: Optional[ParseFailure] = None

    @property
    def ok(self) -> bool:
        return self.tree is not None


class ParseTimeout(Exception):
    """The parser did not return within the configured time."""


def _error_nodes(root: Node) -> List[Node]:
    """Top-most ERROR and MISSING nodes in source order."""
    found: List[Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            found.append(node)
            continue
        if node.has_error:
            stack.extend(reversed(node.children))
    return found


def _describe(node: Node, source_code: bytes) -> str:
    line, column = node.start_point[0] + 1, node.start_point[1] + 1
    if node.is_missing:
        return f"missing {node.type!r} at line {line}, column {column}"
    excerpt = node_text(node, source_code).strip().splitlines()
    near = excerpt[0][:_EXCERPT_LEN] if excerpt else ""
    return f"syntax error at line {line}, column {column} near {near!r}"


class PythonParseAdapter:
    """
    Wraps the tree-sitter Python grammar behind a parse-or-fail contract.

    error_mode "strict" rejects any tree containing ERROR/MISSING nodes (first one
    becomes the ParseFailure). "recover" keeps the tree and reports each error
    node as a ParseDiagnostic.
    """

    def __init__(self, error_mode: str = "strict", timeout: Optional[float] = None) -> None:
        self._error_mode = error_mode
        self._timeout = timeout
        self._local = threading.local()

    def _parser(self) -> Parser:
        # tree-sitter parsers are not thread-safe; keep one per thread
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(PY_LANGUAGE)
            self._local.parser = parser
        return parser

    def _parse_bounded(self, source_code: bytes) -> Tree:
        if self._timeout is None:
            return self._parser().parse(source_code)

        box: dict = {}

        # Each worker gets its own parser: a timed-out worker keeps running on
        # it after this call returns, so it cannot come from the per-thread cache.
        def work() -> None:
            try:
                box["tree"] = Parser(PY_LANGUAGE).parse(source_code)
            except Exception as exc:  # re-raised on the calling thread
                box["error"] = exc

        worker = threading.Thread(target=work, name="structgraph-parse", daemon=True)
        worker.start()
        worker.join(self._timeout)
        if worker.is_alive():
            raise ParseTimeout(f"parse timed out after {self._timeout:g} s")
        if "error" in box:
            raise box["error"]
        return box["tree"]

    def parse(self, unit: SourceUnit) -> ParseOutcome:
        """
        Parse one unit. Never raises: every problem becomes a ParseFailure.

        Args:
            unit: The loaded source unit.

        Returns:
            ParseOutcome holding a SyntaxTree or a ParseFailure.
        """
        source_code = unit.source_bytes
        try:
            tree = self._parse_bounded(source_code)
        except ParseTimeout as exc:
            logger.warning("%s: %s", unit.unit_id, exc)
            return ParseOutcome(unit.unit_id, failure=ParseFailure(unit.unit_id, str(exc)))
        except Exception as exc:
            logger.warning("%s: parser error: %s", unit.unit_id, exc)
            return ParseOutcome(
                unit.unit_id, failure=ParseFailure(unit.unit_id, f"parser error: {exc}")
            )

        root = tree.root_node
        if root is None:
            return ParseOutcome(
                unit.unit_id, failure=ParseFailure(unit.unit_id, "parser produced no tree")
            )

        errors = _error_nodes(root) if root.has_error else []
        if errors and self._error_mode == "strict":
            first = errors[0]
            failure = ParseFailure(
                unit.unit_id, _describe(first, source_code), span_of(first, unit.unit_id)
            )
            logger.warning("Parse failed: %s", failure)
            return ParseOutcome(unit.unit_id, failure=failure)

        diagnostics = tuple(
            ParseDiagnostic(unit.unit_id, _describe(node, source_code), span_of(node, unit.unit_id))
            for node in errors
        )
        for diagnostic in diagnostics:
            logger.info("Recovered: %s", diagnostic)
        return ParseOutcome(
            unit.unit_id,
            tree=SyntaxTree(unit=unit, tree=tree, source=source_code, diagnostics=diagnostics),
        )
