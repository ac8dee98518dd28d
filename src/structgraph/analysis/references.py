"""Relationship extraction: calls and imports observed in entity bodies."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple, Union

from tree_sitter import Node

from .entities import Entity
from .parser import compact_text, node_text, span_of
from .relationships import CallStyle, ImportedName, RelationshipIntent, RelationshipKind
from .symbols import UnitSymbols


def _attribute_head(node: Node) -> Node:
    """Leftmost object of an attribute chain: a.b.c -> a."""
    while node.type == "attribute":
        obj = node.child_by_field_name("object")
        if obj is None:
            break
        node = obj
    return node


def _constructor_name(value: Optional[Node], source_code: bytes) -> Optional[str]:
    """'Foo(...)' -> 'Foo', 'models.Foo(...)' -> 'models.Foo', anything else -> None."""
    if value is None or value.type != "call":
        return None
    func = value.child_by_field_name("function")
    if func is None or func.type not in ("identifier", "attribute"):
        return None
    if func.type == "attribute" and _attribute_head(func).type != "identifier":
        return None
    return compact_text(node_text(func, source_code))


def _assignment_binding(node: Node, source_code: bytes) -> Optional[tuple[str, Optional[str]]]:
    """(name, constructor) for 'name = Ctor(...)'; constructor None for other plain assignments."""
    left = node.child_by_field_name("left")
    if left is None or left.type != "identifier":
        return None
    return node_text(left, source_code), _constructor_name(node.child_by_field_name("right"), source_code)


def _relative_base(symbols: UnitSymbols, level: int) -> Optional[List[str]]:
    """Package parts that a relative import of this level starts from; None above the root."""
    package = symbols.unit.module_name.split(".")
    if not symbols.unit.is_package:
        package = package[:-1]
    if level - 1 > len(package):
        return None
    return package[: len(package) - (level - 1)]


def _relative_level(relative: str) -> int:
    return len(relative) - len(relative.lstrip("."))


def resolve_relative_module(symbols: UnitSymbols, relative: str) -> str:
    """
    Turn '.models' / '..utils' into an absolute dotted name against the unit's package.

    Returns the text unchanged when it climbs above the project root or names
    the project root itself ('from . import x' in a top-level module).
    """
    level = _relative_level(relative)
    base = _relative_base(symbols, level)
    if base is None:
        return relative
    absolute = ".".join(part for part in base + [relative[level:]] if part)
    return absolute or relative


def is_project_root_import(symbols: UnitSymbols, relative: str) -> bool:
    """True for 'from . import x' style imports whose package is the project root."""
    level = _relative_level(relative)
    return level > 0 and not relative[level:] and _relative_base(symbols, level) == []


def _parameter_names(params: Optional[Node], source_code: bytes) -> List[str]:
    names: List[str] = []
    if params is None:
        return names
    for child in params.named_children:
        if child.type == "identifier":
            names.append(node_text(child, source_code))
        elif child.type in ("default_parameter", "typed_default_parameter"):
            name = child.child_by_field_name("name")
            if name is not None:
                names.append(node_text(name, source_code))
        elif child.type in ("typed_parameter", "list_splat_pattern", "dictionary_splat_pattern"):
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            if ident is not None:
                names.append(node_text(ident, source_code))
    return names


class ReferenceExtractor:
    """
    Collect the relationship intents of one unit in deterministic order.

    For each entity in declaration order: its Contains intents, its Inherits
    intents, then the calls and imports of its body in pre-order. Nested
    declarations are skipped; they own their bodies.
    """

    def extract(self, symbols: UnitSymbols) -> List[RelationshipIntent]:
        module_bindings = self._module_bindings(symbols)
        intents: List[RelationshipIntent] = []
        for entity in symbols.entities:
            intents.extend(symbols.contains.get(entity.entity_id, []))
            intents.extend(symbols.inherits.get(entity.entity_id, []))
            body = symbols.bodies.get(entity.entity_id)
            if body is not None:
                intents.extend(self._walk_body(symbols, entity, body, module_bindings))
        return intents

    def _module_bindings(self, symbols: UnitSymbols) -> Dict[str, str]:
        """Module-level 'x = Ctor(...)' assignments (last one wins)."""
        bindings: Dict[str, str] = {}
        for statement in symbols.syntax.root.children:
            if statement.type != "expression_statement":
                continue
            for child in statement.named_children:
                if child.type != "assignment":
                    continue
                found = _assignment_binding(child, symbols.source)
                if found is None:
                    continue
                name, ctor = found
                if ctor:
                    bindings[name] = ctor
                else:
                    bindings.pop(name, None)
        return bindings

    def _walk_body(
        self,
        symbols: UnitSymbols,
        entity: Entity,
        body: Node,
        module_bindings: Dict[str, str],
    ) -> List[RelationshipIntent]:
        source_code = symbols.source
        # Parameters shadow module-level bindings of the same name
        local: Dict[str, Optional[str]] = {}
        if body.parent is not None and body.parent.type == "function_definition":
            params = body.parent.child_by_field_name("parameters")
            local.update((name, None) for name in _parameter_names(params, source_code))
        result: List[RelationshipIntent] = []

        # A (name, constructor) tuple on the stack is an assignment binding; it is
        # popped after the assignment's right-hand side has been walked.
        stack: List[Union[Node, Tuple[str, Optional[str]]]] = [body]
        while stack:
            item = stack.pop()
            if isinstance(item, tuple):
                local[item[0]] = item[1]
                continue
            node = item
            if node is not body and node.id in symbols.declaration_nodes:
                continue
            if node.type in ("import_statement", "import_from_statement", "future_import_statement"):
                result.extend(self._import_intents(symbols, entity, node))
                continue
            if node.type == "assignment":
                found = _assignment_binding(node, source_code)
                if found is not None:
                    stack.append(found)
            elif node.type == "call":
                intent = self._call_intent(symbols, entity, node, local, module_bindings)
                if intent is not None:
                    result.append(intent)
            stack.extend(reversed(node.children))
        return result

    def _call_intent(
        self,
        symbols: UnitSymbols,
        entity: Entity,
        node: Node,
        local: Dict[str, Optional[str]],
        module_bindings: Dict[str, str],
    ) -> Optional[RelationshipIntent]:
        func = node.child_by_field_name("function")
        if func is None:
            return None
        source_code = symbols.source
        target = compact_text(node_text(func, source_code))
        receiver_hint = None

        if func.type == "identifier":
            style = CallStyle.DIRECT
        elif func.type == "attribute":
            head = _attribute_head(func)
            head_name = node_text(head, source_code) if head.type == "identifier" else None
            if head_name is not None and head_name == entity.instance_binding:
                style = CallStyle.SELF_QUALIFIED
            else:
                style = CallStyle.CHAINED
                obj = func.child_by_field_name("object")
                if head_name is not None and obj is not None and obj.type == "identifier":
                    if head_name in local:
                        receiver_hint = local[head_name]
                    else:
                        receiver_hint = module_bindings.get(head_name)
        else:
            style = CallStyle.CHAINED

        return RelationshipIntent(
            kind=RelationshipKind.CALLS,
            source_entity_id=entity.entity_id,
            target_name=target,
            span=span_of(func, symbols.unit_id),
            call_style=style,
            receiver_hint=receiver_hint,
        )

    def _import_intents(
        self, symbols: UnitSymbols, entity: Entity, node: Node
    ) -> List[RelationshipIntent]:
        source_code = symbols.source
        span = span_of(node, symbols.unit_id)

        if node.type == "import_statement":
            result: List[RelationshipIntent] = []
            for item in node.children_by_field_name("name"):
                if item.type == "aliased_import":
                    name_node = item.child_by_field_name("name")
                    alias_node = item.child_by_field_name("alias")
                    module = compact_text(node_text(name_node, source_code)) if name_node else ""
                    alias = node_text(alias_node, source_code) if alias_node else None
                else:
                    module = compact_text(node_text(item, source_code))
                    alias = None
                if module:
                    result.append(
                        RelationshipIntent(
                            kind=RelationshipKind.IMPORTS,
                            source_entity_id=entity.entity_id,
                            target_name=module,
                            span=span,
                            alias=alias,
                        )
                    )
            return result

        from_project_root = False
        if node.type == "future_import_statement":
            module = "__future__"
        else:
            module_node = node.child_by_field_name("module_name")
            if module_node is None:
                return []
            module = compact_text(node_text(module_node, source_code))
            if module_node.type == "relative_import":
                from_project_root = is_project_root_import(symbols, module)
                module = resolve_relative_module(symbols, module)

        names: List[ImportedName] = []
        for item in node.children_by_field_name("name"):
            if item.type == "aliased_import":
                name_node = item.child_by_field_name("name")
                alias_node = item.child_by_field_name("alias")
                if name_node is not None:
                    names.append(
                        ImportedName(
                            compact_text(node_text(name_node, source_code)),
                            node_text(alias_node, source_code) if alias_node else None,
                        )
                    )
            else:
                names.append(ImportedName(compact_text(node_text(item, source_code))))

        return [
            RelationshipIntent(
                kind=RelationshipKind.IMPORTS,
                source_entity_id=entity.entity_id,
                target_name=module,
                span=span,
                imported_names=tuple(names),
                is_wildcard=any(c.type == "wildcard_import" for c in node.children),
                is_from_import=True,
                from_project_root=from_project_root,
            )
        ]
