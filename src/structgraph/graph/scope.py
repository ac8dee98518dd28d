"""Scope resolution: name tables per unit, import tables across units, lookup rules."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from structgraph.analysis.entities import Entity, EntityKind
from structgraph.analysis.relationships import CallStyle, RelationshipIntent, RelationshipKind
from structgraph.analysis.symbols import UnitSymbols

from .model import ResolutionCycle

logger = logging.getLogger(__name__)

_DOTTED_NAME = re.compile(r"[^\W\d]\w*(?:\.[^\W\d]\w*)*")
_SUPER_CALL = re.compile(r"super\([^()]*\)\.([^\W\d]\w*(?:\.[^\W\d]\w*)*)")


@dataclass(frozen=True)
class ImportBinding:
    """A name bound in a unit by an import statement."""

    local_name: str
    module: str
    symbol: Optional[str] = None  # None binds the module itself
    wildcard: bool = False


@dataclass(frozen=True)
class _Namespace:
    """A dotted package prefix with no unit of its own (e.g. a directory without __init__.py)."""

    name: str


_Target = Union[str, _Namespace]


class ScopeResolver:
    """
    Name tables for a whole project and the lookup rules over them.

    Pass 1 (per unit): module-scope names and per-class member tables, taken from
    the symbol pass. Pass 2 (cross unit): module index and import bindings. Base
    classes are registered later by the assembler as Inherits edges resolve;
    inherited members are looked up at read time through them.
    """

    def __init__(
        self,
        units: Sequence[UnitSymbols],
        intents: Mapping[str, Sequence[RelationshipIntent]],
    ) -> None:
        self._entities: Dict[str, Entity] = {}
        self._module_tables: Dict[str, Dict[str, str]] = {}
        self._members: Dict[str, Dict[str, str]] = {}
        for symbols in units:
            for entity in symbols.entities:
                self._entities[entity.entity_id] = entity
            self._module_tables[symbols.unit_id] = symbols.module_table
            self._members.update(symbols.members)

        self._modules: Dict[str, str] = {}
        for symbols in units:
            self._modules.setdefault(symbols.module.name, symbols.module.entity_id)

        self._imports: Dict[str, List[ImportBinding]] = {
            symbols.unit_id: self._import_bindings(intents.get(symbols.unit_id, ()))
            for symbols in units
        }
        self._bases: Dict[str, List[str]] = {}
        self._cycles: List[ResolutionCycle] = []

    @staticmethod
    def _import_bindings(intents: Sequence[RelationshipIntent]) -> List[ImportBinding]:
        bindings: List[ImportBinding] = []
        for intent in intents:
            if intent.kind != RelationshipKind.IMPORTS:
                continue
            module = intent.target_name
            if not intent.is_from_import:
                if intent.alias:
                    bindings.append(ImportBinding(intent.alias, module))
                else:
                    head = module.split(".")[0]
                    bindings.append(ImportBinding(head, head))
            elif intent.from_project_root:
                for item in intent.imported_names:
                    bindings.append(ImportBinding(item.local_name, item.name))
            elif intent.is_wildcard:
                bindings.append(ImportBinding("*", module, wildcard=True))
            else:
                for item in intent.imported_names:
                    bindings.append(ImportBinding(item.local_name, module, symbol=item.name))
        return bindings

    @property
    def cycles(self) -> List[ResolutionCycle]:
        return list(self._cycles)

    def entity(self, entity_id: str) -> Entity:
        return self._entities[entity_id]

    def add_base(self, class_id: str, base_id: str) -> None:
        """Record a resolved Inherits edge so member lookups can follow it."""
        self._bases.setdefault(class_id, []).append(base_id)

    # -- lookups ------------------------------------------------------------

    def resolve_module(self, module_name: str) -> Optional[str]:
        """Module entity id for a dotted module name, if it belongs to the project."""
        return self._modules.get(module_name)

    def lookup_member(self, class_id: str, member: str, include_self: bool = True) -> Optional[str]:
        """
        Find member on class_id or its ancestors (depth-first, bases left to right).

        A base that is already on the current ancestor path is an inheritance
        cycle: the lookup stops, records a ResolutionCycle and returns None.
        Reaching a class twice through different paths (diamonds) is fine.
        """
        stack = [(class_id, (class_id,))]
        visited: set[str] = set()
        while stack:
            current, path = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            if include_self or current != class_id:
                hit = self._members.get(current, {}).get(member)
                if hit is not None:
                    return hit
            for base in reversed(self._bases.get(current, ())):
                if base in path:
                    cycle = ResolutionCycle(class_id, member, path + (base,))
                    if cycle not in self._cycles:
                        self._cycles.append(cycle)
                    logger.debug("%s", cycle)
                    return None
                stack.append((base, path + (base,)))
        return None

    def _lookup_in_module(self, module_name: str, attr: str) -> Optional[_Target]:
        module_id = self._modules.get(module_name)
        if module_id is not None:
            hit = self._module_tables.get(module_id, {}).get(attr)
            if hit is not None:
                return hit
        submodule = f"{module_name}.{attr}"
        if submodule in self._modules:
            return self._modules[submodule]
        prefix = submodule + "."
        if any(name.startswith(prefix) for name in self._modules):
            return _Namespace(submodule)
        return None

    def _module_target(self, module_name: str) -> Optional[_Target]:
        if module_name in self._modules:
            return self._modules[module_name]
        prefix = module_name + "."
        if any(name.startswith(prefix) for name in self._modules):
            return _Namespace(module_name)
        return None

    def _resolve_member(self, target: Optional[_Target], attr: str) -> Optional[_Target]:
        if target is None:
            return None
        if isinstance(target, _Namespace):
            return self._lookup_in_module(target.name, attr)
        entity = self._entities[target]
        if entity.kind == EntityKind.MODULE:
            return self._lookup_in_module(entity.name, attr)
        if entity.kind == EntityKind.CLASS:
            return self.lookup_member(target, attr)
        return None

    def class_scope(self, source: Entity) -> Optional[str]:
        """The class whose own scope is visible from source's body, if any."""
        if source.kind == EntityKind.CLASS:
            return source.entity_id
        if source.kind == EntityKind.METHOD:
            return source.scope_path[-1]
        return None

    def _resolve_bare(self, name: str, unit_id: str, class_id: Optional[str]) -> Optional[_Target]:
        # Enclosing class scope, then module scope, then imports in declaration order
        if class_id is not None:
            hit = self._members.get(class_id, {}).get(name)
            if hit is not None:
                return hit
        hit = self._module_tables.get(unit_id, {}).get(name)
        if hit is not None:
            return hit
        for binding in self._imports.get(unit_id, ()):
            if binding.wildcard:
                module_id = self._modules.get(binding.module)
                found = self._module_tables.get(module_id, {}).get(name) if module_id else None
            elif binding.local_name != name:
                continue
            elif binding.symbol is None:
                found = self._module_target(binding.module)
            else:
                found = self._lookup_in_module(binding.module, binding.symbol)
            if found is not None:
                return found
        return None

    def _resolve_dotted(self, parts: Sequence[str], unit_id: str, class_id: Optional[str]) -> Optional[_Target]:
        current = self._resolve_bare(parts[0], unit_id, class_id)
        for attr in parts[1:]:
            current = self._resolve_member(current, attr)
            if current is None:
                return None
        return current

    @staticmethod
    def _as_entity(target: Optional[_Target]) -> Optional[str]:
        return target if isinstance(target, str) else None

    def resolve_name(self, name: str, source: Entity) -> Optional[str]:
        """Resolve a bare or dotted name as seen from source's body."""
        if not _DOTTED_NAME.fullmatch(name):
            return None
        return self._as_entity(
            self._resolve_dotted(name.split("."), source.unit_id, self.class_scope(source))
        )

    def resolve_base(self, intent: RelationshipIntent, source: Entity) -> Optional[str]:
        """Resolve a base class name of class `source` (its own members are not in scope)."""
        if not _DOTTED_NAME.fullmatch(intent.target_name):
            return None
        enclosing = source.scope_path[-1] if source.scope_path else None
        if enclosing is not None and self._entities[enclosing].kind != EntityKind.CLASS:
            enclosing = None
        return self._as_entity(
            self._resolve_dotted(intent.target_name.split("."), source.unit_id, enclosing)
        )

    def resolve_import(self, intent: RelationshipIntent) -> Optional[str]:
        return self.resolve_module(intent.target_name)

    def resolve_call(self, intent: RelationshipIntent, source: Entity) -> Optional[str]:
        """
        Resolve a call target according to its call style.

        SelfQualified calls go through the enclosing class and its ancestors.
        Chained calls use the receiver's constructor when it was seen in the same
        body (x = Foo(); x.m()), handle super().m(), and otherwise resolve the
        dotted path through modules and classes. Anything else is unresolved.
        """
        name = intent.target_name
        class_id = self.class_scope(source)

        if intent.call_style == CallStyle.SELF_QUALIFIED:
            if source.kind != EntityKind.METHOD or not _DOTTED_NAME.fullmatch(name):
                return None
            current: Optional[_Target] = source.scope_path[-1]
            for attr in name.split(".")[1:]:
                current = self._resolve_member(current, attr)
            return self._as_entity(current)

        match = _SUPER_CALL.fullmatch(name)
        if match:
            if class_id is None:
                return None
            attrs = match.group(1).split(".")
            current = self.lookup_member(class_id, attrs[0], include_self=False)
            for attr in attrs[1:]:
                current = self._resolve_member(current, attr)
            return self._as_entity(current)

        if not _DOTTED_NAME.fullmatch(name):
            return None
        parts = name.split(".")

        if intent.receiver_hint is not None and len(parts) > 1:
            receiver = self.resolve_name(intent.receiver_hint, source)
            if receiver is None or self._entities[receiver].kind != EntityKind.CLASS:
                return None
            current = receiver
            for attr in parts[1:]:
                current = self._resolve_member(current, attr)
            return self._as_entity(current)

        return self._as_entity(self._resolve_dotted(parts, source.unit_id, class_id))
