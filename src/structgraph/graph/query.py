"""Graph query API: callers, callees, imports, importers, inheritance, find definition."""

from __future__ import annotations

from dataclasses import dataclass
from typing import overload

from structgraph.analysis.entities import Entity, EntityKind
from structgraph.analysis.relationships import Edge, RelationshipKind

from .model import CodeGraph

_CALL_KINDS = (RelationshipKind.CALLS, RelationshipKind.INSTANTIATES)


@dataclass
class CallerInfo:
    """Information about a caller of an entity."""

    entity_id: str
    qualified_name: str
    unit_id: str
    location: str | None
    kind: RelationshipKind


@dataclass
class CalleeInfo:
    """Information about a callee (what an entity calls). entity_id is None when unresolved."""

    target_name: str
    entity_id: str | None
    location: str | None
    kind: RelationshipKind


@dataclass
class InheritanceNode:
    """A node in the inheritance tree."""

    entity: Entity
    qualified_name: str
    unit_id: str
    children: list[InheritanceNode]


class GraphQueries:
    """
    High-level query API over a built CodeGraph.

    Every call site is reported separately, so a function called twice from the
    same caller appears twice.
    """

    def __init__(self, graph: CodeGraph) -> None:
        self._graph = graph

    @staticmethod
    def _entity_id(entity: Entity | str) -> str:
        return entity if isinstance(entity, str) else entity.entity_id

    @overload
    def get_callers(self, entity: Entity) -> list[CallerInfo]: ...
    @overload
    def get_callers(self, entity: str) -> list[CallerInfo]: ...

    def get_callers(self, entity: Entity | str) -> list[CallerInfo]:
        """
        Return who calls (or instantiates) this entity.

        Args:
            entity: Entity or entity id.

        Returns:
            List of CallerInfo in edge order.
        """
        eid = self._entity_id(entity)
        result: list[CallerInfo] = []
        for edge in self._graph.incoming(eid):
            if edge.kind not in _CALL_KINDS:
                continue
            caller = self._graph.get(edge.from_entity_id)
            if caller is None:
                continue
            result.append(
                CallerInfo(
                    entity_id=caller.entity_id,
                    qualified_name=caller.qualified_name,
                    unit_id=caller.unit_id,
                    location=edge.location,
                    kind=edge.kind,
                )
            )
        return result

    @overload
    def get_callees(self, entity: Entity) -> list[CalleeInfo]: ...
    @overload
    def get_callees(self, entity: str) -> list[CalleeInfo]: ...

    def get_callees(self, entity: Entity | str) -> list[CalleeInfo]:
        """
        Return what this entity calls, resolved or not.

        Args:
            entity: Entity or entity id.

        Returns:
            List of CalleeInfo (target_name, entity_id, location, kind).
        """
        eid = self._entity_id(entity)
        return [
            CalleeInfo(
                target_name=edge.target_label,
                entity_id=edge.to_entity_id if edge.is_resolved else None,
                location=edge.location,
                kind=edge.kind,
            )
            for edge in self._graph.outgoing(eid)
            if edge.kind in _CALL_KINDS
        ]

    def get_imports(self, unit_id: str) -> list[str]:
        """
        Return what this unit imports (module names as written, absolute for relative imports).

        Args:
            unit_id: Unit id (project-relative path).

        Returns:
            Imported module names in source order.
        """
        return [
            edge.target_label
            if not edge.is_resolved
            else self._graph.entities[edge.to_entity_id].name
            for edge in self._graph.edges
            if edge.kind == RelationshipKind.IMPORTS
            and self._graph.entities[edge.from_entity_id].unit_id == unit_id
        ]

    def get_importers(self, unit_id: str) -> list[str]:
        """
        Return the unit ids that import this unit.

        Args:
            unit_id: Unit id of the imported module.

        Returns:
            Sorted unit ids of importing units.
        """
        result_set: set[str] = set()
        for edge in self._graph.incoming(unit_id, RelationshipKind.IMPORTS):
            source = self._graph.get(edge.from_entity_id)
            if source is not None:
                result_set.add(source.unit_id)
        return sorted(result_set)

    def get_bases(self, class_entity: Entity | str) -> list[Edge]:
        """Inherits edges leaving this class, resolved or not, in declaration order."""
        return self._graph.outgoing(self._entity_id(class_entity), RelationshipKind.INHERITS)

    def get_subclasses(self, class_entity: Entity | str) -> list[Entity]:
        """Direct subclasses of a class within the project."""
        eid = self._entity_id(class_entity)
        return [
            self._graph.entities[edge.from_entity_id]
            for edge in self._graph.incoming(eid, RelationshipKind.INHERITS)
        ]

    def get_ancestors(self, class_entity: Entity | str) -> list[Entity]:
        """
        All resolved ancestors of a class, nearest first (breadth-first).

        Each class appears once; inheritance cycles terminate.
        """
        start = self._entity_id(class_entity)
        seen = {start}
        queue = [start]
        result: list[Entity] = []
        while queue:
            current = queue.pop(0)
            for edge in self._graph.outgoing(current, RelationshipKind.INHERITS):
                if not edge.is_resolved or edge.to_entity_id in seen:
                    continue
                seen.add(edge.to_entity_id)
                queue.append(edge.to_entity_id)
                result.append(self._graph.entities[edge.to_entity_id])
        return result

    def get_inheritance_tree(self, class_entity: Entity | str) -> InheritanceNode | None:
        """
        Return the inheritance tree rooted at a class (the class and its subclasses).

        Args:
            class_entity: Entity (kind class) or entity id.

        Returns:
            InheritanceNode with recursive children. None if not found or not a class.
        """
        return self._inheritance_tree(self._entity_id(class_entity), set())

    def _inheritance_tree(self, eid: str, seen: set[str]) -> InheritanceNode | None:
        ent = self._graph.get(eid)
        if ent is None or ent.kind != EntityKind.CLASS:
            return None
        seen = seen | {eid}
        children = []
        for sub in self.get_subclasses(eid):
            if sub.entity_id in seen:
                continue
            child_node = self._inheritance_tree(sub.entity_id, seen)
            if child_node is not None:
                children.append(child_node)
        return InheritanceNode(
            entity=ent,
            qualified_name=ent.qualified_name,
            unit_id=ent.unit_id,
            children=children,
        )

    def find_definition(self, name: str, scope_unit: str | None = None) -> list[Entity]:
        """
        Locate entity/entities by name (qualified or simple).

        Args:
            name: Entity name (e.g. "User.login", "greet").
            scope_unit: Optional unit id; definitions from this unit come first.

        Returns:
            List of matching Entity (may be multiple for redeclared names).
        """
        matches = [
            e
            for e in self._graph
            if e.kind != EntityKind.MODULE and (e.qualified_name == name or e.name == name)
        ]
        if scope_unit is not None:
            matches.sort(key=lambda e: e.unit_id != scope_unit)
        return matches
