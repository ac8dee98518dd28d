"""Exceptions raised at the build boundary.

Per-unit problems (unreadable files, syntax errors, unresolved names) are never
raised; they are recorded in the BuildReport. Only caller-level mistakes and
explicit cancellation surface as exceptions.
"""

from __future__ import annotations


class StructGraphError(Exception):
    """Base class for all structgraph errors."""


class InvalidConfigError(StructGraphError, ValueError):
    """Build configuration failed validation."""


class ProjectRootNotFoundError(StructGraphError, FileNotFoundError):
    """The project root passed to a build does not exist."""

    def __init__(self, root: object) -> None:
        super().__init__(f"Project root does not exist: {root}")
        self.root = root


class BuildCancelled(StructGraphError):
    """The build was cancelled before it finished; no graph is returned."""
