"""Source units and the per-unit failure records that travel with them."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .entities import SourceSpan


@dataclass(frozen=True)
class SourceUnit:
    """One source file: stable id, dotted module name and raw text."""

    unit_id: str  # project-relative posix path, e.g. "models/user.py"
    module_name: str  # e.g. "models.user"
    path: Path
    text: str

    @property
    def source_bytes(self) -> bytes:
        return self.text.encode("utf-8")

    @property
    def is_package(self) -> bool:
        """True for package initializers (pkg/__init__.py)."""
        return self.path.stem == "__init__"


@dataclass(frozen=True)
class ParseFailure:
    """A unit that contributed nothing to the graph: unreadable or unparseable."""

    unit_id: str
    message: str
    source_span: Optional[SourceSpan] = None

    def __str__(self) -> str:
        where = self.source_span.location() if self.source_span else self.unit_id
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class ParseDiagnostic:
    """A problem in a unit whose tree was still usable; reported as a warning."""

    unit_id: str
    message: str
    source_span: Optional[SourceSpan] = None

    def __str__(self) -> str:
        where = self.source_span.location() if self.source_span else self.unit_id
        return f"{where}: {self.message}"
