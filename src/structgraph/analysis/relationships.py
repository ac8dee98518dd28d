"""Relationship intents (unresolved references) and resolved edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .entities import SourceSpan


class RelationshipKind(Enum):
    """Types of relationships between code entities."""

    CONTAINS = "contains"
    INHERITS = "inherits"
    CALLS = "calls"
    INSTANTIATES = "instantiates"
    IMPORTS = "imports"


class CallStyle(Enum):
    """How a call target was written, which decides how it is resolved."""

    DIRECT = "direct"  # foo()
    SELF_QUALIFIED = "self_qualified"  # self.foo()
    CHAINED = "chained"  # obj.foo(), a.b.c(), make().foo()


@dataclass(frozen=True)
class ImportedName:
    """One name pulled in by a ``from m import name as alias`` statement."""

    name: str
    alias: Optional[str] = None

    @property
    def local_name(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class RelationshipIntent:
    """A reference observed in source text, not yet resolved to an entity."""

    kind: RelationshipKind
    source_entity_id: str
    target_name: str
    span: Optional[SourceSpan] = None
    call_style: Optional[CallStyle] = None

    # Contains intents are born resolved
    target_entity_id: Optional[str] = None

    # Declared type of a call receiver when statically visible (x = Foo(); x.m())
    receiver_hint: Optional[str] = None

    # Imports only
    alias: Optional[str] = None
    imported_names: tuple[ImportedName, ...] = ()
    is_wildcard: bool = False
    is_from_import: bool = False
    # 'from . import x' in a top-level module: each name is a top-level module
    from_project_root: bool = False


@dataclass(frozen=True)
class Unresolved:
    """Edge target for a reference that matched no entity in the project."""

    target_name: str

    def __str__(self) -> str:
        return f"Unresolved({self.target_name})"


EdgeTarget = Union[str, Unresolved]


@dataclass(frozen=True)
class Edge:
    """A directed relationship between two entities (or to an Unresolved sentinel)."""

    kind: RelationshipKind
    from_entity_id: str
    to_entity_id: EdgeTarget
    span: Optional[SourceSpan] = field(default=None, compare=False)

    @property
    def is_resolved(self) -> bool:
        return not isinstance(self.to_entity_id, Unresolved)

    @property
    def target_label(self) -> str:
        """Entity id, or the raw name for unresolved targets."""
        if isinstance(self.to_entity_id, Unresolved):
            return self.to_entity_id.target_name
        return self.to_entity_id

    @property
    def location(self) -> Optional[str]:
        return self.span.location() if self.span else None

    def to_dict(self) -> dict:
        """Convert to a flat dictionary for export."""
        return {
            "kind": self.kind.value,
            "from_entity_id": self.from_entity_id,
            "to_entity_id": self.to_entity_id if self.is_resolved else None,
            "target_name": self.target_label,
            "resolved": self.is_resolved,
            "location": self.location,
        }
