"""Graph assembly: resolve relationship intents into edges over the entity arena."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from structgraph.analysis.entities import Entity, EntityKind
from structgraph.analysis.relationships import Edge, RelationshipIntent, RelationshipKind, Unresolved
from structgraph.analysis.symbols import UnitSymbols

from .model import GraphBuffer
from .scope import ScopeResolver

logger = logging.getLogger(__name__)


class GraphAssembler:
    """
    Turn every unit's intents into edges, in unit load order then intent order.

    Inherits intents are resolved in a first sweep so that self-qualified and
    member lookups in the second sweep can walk the inheritance chain no matter
    which unit declared the base class.
    """

    def __init__(self, units: Sequence[UnitSymbols], intents: Mapping[str, Sequence[RelationshipIntent]]) -> None:
        self._units = list(units)
        self._intents = intents
        self._resolver = ScopeResolver(self._units, intents)

    def assemble(self, buffer: GraphBuffer) -> None:
        """Add all entities and edges to buffer (mutated in place)."""
        for symbols in self._units:
            for entity in symbols.entities:
                buffer.add_entity(entity)

        inherits_targets: dict[tuple[str, int], str | None] = {}
        for symbols in self._units:
            for index, intent in enumerate(self._intents.get(symbols.unit_id, ())):
                if intent.kind != RelationshipKind.INHERITS:
                    continue
                source = self._resolver.entity(intent.source_entity_id)
                target = self._resolver.resolve_base(intent, source)
                if target is not None and self._resolver.entity(target).kind != EntityKind.CLASS:
                    target = None
                if target is not None:
                    self._resolver.add_base(source.entity_id, target)
                inherits_targets[(symbols.unit_id, index)] = target

        for symbols in self._units:
            for index, intent in enumerate(self._intents.get(symbols.unit_id, ())):
                if intent.kind == RelationshipKind.INHERITS:
                    edge = self._edge(intent, intent.kind, inherits_targets[(symbols.unit_id, index)])
                else:
                    edge = self._resolve(intent)
                buffer.add_edge(edge)

        buffer.cycles.extend(self._resolver.cycles)
        logger.debug(
            "Assembled %d edge(s), %d unresolved", len(buffer.edges), len(buffer.unresolved)
        )

    @staticmethod
    def _edge(intent: RelationshipIntent, kind: RelationshipKind, target: str | None) -> Edge:
        return Edge(
            kind=kind,
            from_entity_id=intent.source_entity_id,
            to_entity_id=target if target is not None else Unresolved(intent.target_name),
            span=intent.span,
        )

    def _resolve(self, intent: RelationshipIntent) -> Edge:
        if intent.kind == RelationshipKind.CONTAINS:
            return self._edge(intent, intent.kind, intent.target_entity_id)

        if intent.kind == RelationshipKind.IMPORTS:
            return self._edge(intent, intent.kind, self._resolver.resolve_import(intent))

        source: Entity = self._resolver.entity(intent.source_entity_id)
        target = self._resolver.resolve_call(intent, source)
        kind = intent.kind
        if target is not None and self._resolver.entity(target).kind == EntityKind.CLASS:
            kind = RelationshipKind.INSTANTIATES
        if target is None:
            logger.debug("Unresolved %s from %s", intent.target_name, intent.source_entity_id)
        return self._edge(intent, kind, target)
