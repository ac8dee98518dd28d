"""The built artifact: CodeGraph (entities + ordered edges) and its BuildReport."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from structgraph.analysis.entities import Entity, EntityKind
from structgraph.analysis.relationships import Edge, RelationshipKind
from structgraph.analysis.units import ParseDiagnostic, ParseFailure


@dataclass(frozen=True)
class ResolutionCycle:
    """An inheritance lookup that came back to a class already on its path."""

    class_id: str
    member: str
    cycle: tuple[str, ...]

    def __str__(self) -> str:
        return f"inheritance cycle while looking up {self.member!r}: {' -> '.join(self.cycle)}"


@dataclass(frozen=True)
class BuildReport:
    """Everything that went wrong (or was approximated) during one build."""

    failures: tuple[ParseFailure, ...] = ()
    diagnostics: tuple[ParseDiagnostic, ...] = ()
    unresolved: tuple[Edge, ...] = ()
    cycles: tuple[ResolutionCycle, ...] = ()
    units_total: int = 0
    units_parsed: int = 0
    elapsed: float = 0.0

    @property
    def units_failed(self) -> int:
        return len(self.failures)

    @property
    def success_rate(self) -> float:
        """Percentage of units that produced a tree (100.0 for an empty project)."""
        if self.units_total == 0:
            return 100.0
        return self.units_parsed / self.units_total * 100.0

    def failure_for(self, unit_id: str) -> Optional[ParseFailure]:
        return next((f for f in self.failures if f.unit_id == unit_id), None)


class CodeGraph:
    """
    Immutable structural graph of one project build.

    Entities are kept in an id-keyed arena; edges refer to entities by id only,
    so cyclic relationships (mutual calls, circular imports) need no special
    handling. Edge order is the deterministic assembly order.
    """

    def __init__(
        self,
        entities: Mapping[str, Entity],
        edges: tuple[Edge, ...],
        report: BuildReport,
    ) -> None:
        self._entities = MappingProxyType(dict(entities))
        self._edges = tuple(edges)
        self._report = report

    @property
    def entities(self) -> Mapping[str, Entity]:
        return self._entities

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def report(self) -> BuildReport:
        return self._report

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities.values())

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def entities_of_kind(self, kind: EntityKind) -> list[Entity]:
        return [e for e in self._entities.values() if e.kind == kind]

    def entities_in_unit(self, unit_id: str) -> list[Entity]:
        return [e for e in self._entities.values() if e.unit_id == unit_id]

    def find(self, qualified_name: str, unit_id: Optional[str] = None) -> list[Entity]:
        """Entities whose qualified name matches, optionally limited to one unit."""
        return [
            e
            for e in self._entities.values()
            if e.qualified_name == qualified_name and (unit_id is None or e.unit_id == unit_id)
        ]

    def edges_of_kind(self, kind: RelationshipKind) -> list[Edge]:
        return [e for e in self._edges if e.kind == kind]

    def outgoing(self, entity_id: str, kind: Optional[RelationshipKind] = None) -> list[Edge]:
        return [
            e for e in self._edges if e.from_entity_id == entity_id and (kind is None or e.kind == kind)
        ]

    def incoming(self, entity_id: str, kind: Optional[RelationshipKind] = None) -> list[Edge]:
        return [
            e for e in self._edges if e.to_entity_id == entity_id and (kind is None or e.kind == kind)
        ]

    def children(self, entity_id: str) -> list[Entity]:
        """Direct children via Contains edges, in declaration order."""
        return [
            self._entities[e.to_entity_id]
            for e in self.outgoing(entity_id, RelationshipKind.CONTAINS)
            if e.is_resolved
        ]

    def stats(self) -> dict[str, int]:
        """Entity counts by kind and edge counts by kind."""
        counts: Counter[str] = Counter()
        for entity in self._entities.values():
            counts[f"entities.{entity.kind.value}"] += 1
        for edge in self._edges:
            counts[f"edges.{edge.kind.value}"] += 1
        counts["edges.unresolved"] = len(self._report.unresolved)
        return dict(sorted(counts.items()))


@dataclass
class GraphBuffer:
    """Mutable accumulator owned by the assembler until the graph is frozen."""

    entities: dict[str, Entity] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    unresolved: list[Edge] = field(default_factory=list)
    cycles: list[ResolutionCycle] = field(default_factory=list)

    def add_entity(self, entity: Entity) -> None:
        if entity.entity_id in self.entities:
            raise ValueError(f"Duplicate entity id: {entity.entity_id}")
        self.entities[entity.entity_id] = entity

    def add_edge(self, edge: Edge) -> None:
        self.edges.append(edge)
        if not edge.is_resolved:
            self.unresolved.append(edge)
