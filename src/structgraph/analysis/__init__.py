"""Per-unit analysis: loading, parsing, symbol and reference extraction."""

from .entities import Entity, EntityKind, SourceSpan
from .loader import LoadResult, load_units
from .parser import ParseOutcome, PythonParseAdapter, SyntaxTree
from .references import ReferenceExtractor
from .relationships import CallStyle, Edge, RelationshipIntent, RelationshipKind, Unresolved
from .symbols import SymbolExtractor, UnitSymbols
from .units import ParseDiagnostic, ParseFailure, SourceUnit

__all__ = [
    "CallStyle",
    "Edge",
    "Entity",
    "EntityKind",
    "LoadResult",
    "ParseDiagnostic",
    "ParseFailure",
    "ParseOutcome",
    "PythonParseAdapter",
    "ReferenceExtractor",
    "RelationshipIntent",
    "RelationshipKind",
    "SourceSpan",
    "SourceUnit",
    "SymbolExtractor",
    "SyntaxTree",
    "UnitSymbols",
    "Unresolved",
    "load_units",
]
