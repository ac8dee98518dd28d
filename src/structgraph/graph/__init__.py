"""Cross-unit resolution, graph assembly, queries and export."""

from .assembler import GraphAssembler
from .model import BuildReport, CodeGraph, ResolutionCycle
from .query import GraphQueries
from .scope import ScopeResolver

__all__ = [
    "BuildReport",
    "CodeGraph",
    "GraphAssembler",
    "GraphQueries",
    "ResolutionCycle",
    "ScopeResolver",
]
