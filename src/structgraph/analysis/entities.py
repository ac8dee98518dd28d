"""Code entity data models for static analysis."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EntityKind(Enum):
    """Types of code entities we extract."""

    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"


@dataclass(frozen=True)
class SourceSpan:
    """Location of a construct inside one unit (byte offsets, 1-based lines)."""

    unit_id: str
    start: int
    end: int
    start_line: int = 0
    end_line: int = 0
    start_column: int = 0

    def location(self) -> str:
        """Return "unit:line" for diagnostics."""
        return f"{self.unit_id}:{self.start_line}"


@dataclass(frozen=True)
class Entity:
    """A declared module, class, function or method."""

    entity_id: str
    name: str
    kind: EntityKind
    unit_id: str
    scope_path: tuple[str, ...]
    source_span: SourceSpan
    qualified_name: str = ""
    docstring: Optional[str] = None

    # Descriptive metadata only; never turned into edges
    signature: Optional[str] = None
    return_type: Optional[str] = None
    decorators: tuple[str, ...] = ()
    bases: tuple[str, ...] = ()
    instance_binding: Optional[str] = None
    is_async: bool = False
    is_abstract: bool = False
    is_private: bool = False
    is_test: bool = False

    @property
    def parent_id(self) -> Optional[str]:
        """Innermost enclosing entity id, or None for modules."""
        return self.scope_path[-1] if self.scope_path else None

    def to_dict(self) -> dict:
        """Convert to a flat dictionary for export."""
        return {
            "entity_id": self.entity_id,
            "name": self.name,
            "kind": self.kind.value,
            "unit_id": self.unit_id,
            "qualified_name": self.qualified_name,
            "parent_id": self.parent_id,
            "scope_path": list(self.scope_path),
            "start": self.source_span.start,
            "end": self.source_span.end,
            "start_line": self.source_span.start_line,
            "end_line": self.source_span.end_line,
            "docstring": self.docstring,
            "signature": self.signature,
            "return_type": self.return_type,
            "decorators": list(self.decorators),
            "bases": list(self.bases),
            "is_async": self.is_async,
            "is_abstract": self.is_abstract,
            "is_private": self.is_private,
            "is_test": self.is_test,
        }
