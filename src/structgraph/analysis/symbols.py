"""Symbol extraction: declared modules, classes, functions and methods of one unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

from structgraph.config import BuildConfig

from .entities import Entity, EntityKind
from .parser import SyntaxTree, compact_text, node_text, span_of
from .relationships import RelationshipIntent, RelationshipKind
from .units import SourceUnit

# Statements whose blocks still belong to the enclosing module or class scope
_SCOPE_TRANSPARENT = frozenset(
    {
        "if_statement",
        "elif_clause",
        "else_clause",
        "try_statement",
        "except_clause",
        "except_group_clause",
        "finally_clause",
        "with_statement",
        "for_statement",
        "while_statement",
        "block",
        "ERROR",
    }
)

_ABSTRACT_DECORATORS = frozenset(
    {"abstractmethod", "abstractproperty", "abstractclassmethod", "abstractstaticmethod"}
)

_STRING_PREFIX_CHARS = "rRbBuUfF"


def _extract_docstring_from_body(body: Optional[Node], source_code: bytes) -> Optional[str]:
    """Extract docstring from a module/class/function body (first string in block)."""
    if not body or not body.child_count:
        return None
    first = next((c for c in body.children if c.type != "comment"), None)
    if first is None or first.type != "expression_statement":
        return None
    expr = first.child(0)
    if expr is None or expr.type != "string":
        return None
    doc = node_text(expr, source_code).lstrip(_STRING_PREFIX_CHARS)
    for q in ('"""', "'''", '"', "'"):
        if doc.startswith(q) and doc.endswith(q) and len(doc) >= 2 * len(q):
            doc = doc[len(q) : -len(q)]
            break
    return doc.strip() or None


def _decorator_name(decorator: Node, source_code: bytes) -> str:
    """'@app.route("/")' -> 'app.route'; '@abstractmethod' -> 'abstractmethod'."""
    expr = next(iter(decorator.named_children), None)
    if expr is None:
        return compact_text(node_text(decorator, source_code)).lstrip("@")
    if expr.type == "call":
        expr = expr.child_by_field_name("function") or expr
    return compact_text(node_text(expr, source_code))


def _first_parameter(params: Optional[Node], source_code: bytes) -> Optional[str]:
    if params is None:
        return None
    for child in params.named_children:
        if child.type == "identifier":
            return node_text(child, source_code)
        if child.type == "typed_parameter":
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            return node_text(ident, source_code) if ident else None
        if child.type in ("default_parameter", "typed_default_parameter"):
            name = child.child_by_field_name("name")
            return node_text(name, source_code) if name else None
        # *args, **kwargs, bare '*' or '/' as first parameter: no instance binding
        return None
    return None


def _base_names(superclasses: Optional[Node], source_code: bytes) -> List[Tuple[str, Node]]:
    """Base class references as written, skipping keyword arguments (metaclass=...)."""
    if superclasses is None:
        return []
    result: List[Tuple[str, Node]] = []
    for child in superclasses.named_children:
        if child.type in ("identifier", "attribute"):
            result.append((compact_text(node_text(child, source_code)), child))
        elif child.type == "subscript":
            value = child.child_by_field_name("value")
            if value is not None:
                result.append((compact_text(node_text(value, source_code)), child))
    return result


def is_private_name(name: str) -> bool:
    """Single leading underscore is private; dunder names are public."""
    if name.startswith("__") and name.endswith("__"):
        return False
    return name.startswith("_")


def iter_declarations(block: Node) -> Iterator[Tuple[Node, Node, List[Node]]]:
    """
    Yield (outer_node, definition, decorators) for each class/def visible in block.

    outer_node is the decorated_definition wrapper when there is one. Descends
    into compound statements (if/try/with/for/while) but never into definitions.
    """
    for child in block.children:
        if child.type in ("class_definition", "function_definition"):
            yield child, child, []
        elif child.type == "decorated_definition":
            definition = child.child_by_field_name("definition")
            if definition is not None:
                decorators = [c for c in child.children if c.type == "decorator"]
                yield child, definition, decorators
        elif child.type in _SCOPE_TRANSPARENT:
            yield from iter_declarations(child)


@dataclass
class UnitSymbols:
    """Everything the symbol pass learned about one unit."""

    unit: SourceUnit
    syntax: SyntaxTree
    module: Entity
    entities: List[Entity] = field(default_factory=list)  # declaration order, module first
    bodies: Dict[str, Node] = field(default_factory=dict)  # entity id -> node to walk
    contains: Dict[str, List[RelationshipIntent]] = field(default_factory=dict)
    inherits: Dict[str, List[RelationshipIntent]] = field(default_factory=dict)
    declaration_nodes: Set[int] = field(default_factory=set)
    module_table: Dict[str, str] = field(default_factory=dict)  # top-level name -> id
    members: Dict[str, Dict[str, str]] = field(default_factory=dict)  # class id -> name -> id

    @property
    def unit_id(self) -> str:
        return self.unit.unit_id

    @property
    def source(self) -> bytes:
        return self.syntax.source

    def __post_init__(self) -> None:
        self._keys: Dict[str, int] = {}

    def add_entity(self, entity: Entity, body: Optional[Node]) -> None:
        self.entities.append(entity)
        if body is not None:
            self.bodies[entity.entity_id] = body

    def unique_key(self, key: str) -> str:
        count = self._keys.get(key, 0) + 1
        self._keys[key] = count
        return key if count == 1 else f"{key}~{count}"


class SymbolExtractor:
    """Walk one unit's syntax tree and collect its declared entities."""

    def __init__(self, config: Optional[BuildConfig] = None) -> None:
        self._config = config or BuildConfig()

    def extract(self, syntax: SyntaxTree) -> UnitSymbols:
        """
        Extract the module entity and every class, function and method in the unit.

        Contains intents (already resolved) and Inherits intents (unresolved) are
        collected alongside.
        """
        unit = syntax.unit
        root = syntax.root
        docstring = (
            _extract_docstring_from_body(root, syntax.source) if self._config.parse_docs else None
        )
        module = Entity(
            entity_id=unit.unit_id,
            name=unit.module_name,
            kind=EntityKind.MODULE,
            unit_id=unit.unit_id,
            scope_path=(),
            source_span=span_of(root, unit.unit_id),
            qualified_name=unit.module_name,
            docstring=docstring,
        )
        symbols = UnitSymbols(unit=unit, syntax=syntax, module=module)
        symbols.add_entity(module, root)
        self._walk_block(symbols, root, module, key_prefix="", qual_prefix="")
        return symbols

    def _skip(self, name: str, is_test: bool) -> bool:
        if not self._config.include_private and is_private_name(name):
            return True
        if not self._config.include_tests and is_test:
            return True
        return False

    def _walk_block(
        self,
        symbols: UnitSymbols,
        block: Node,
        parent: Entity,
        key_prefix: str,
        qual_prefix: str,
    ) -> None:
        for outer, definition, decorators in iter_declarations(block):
            symbols.declaration_nodes.add(outer.id)
            if definition.type == "class_definition":
                self._declare_class(symbols, outer, definition, decorators, parent, key_prefix, qual_prefix)
            else:
                self._declare_function(symbols, outer, definition, decorators, parent, key_prefix, qual_prefix)

    def _register(self, symbols: UnitSymbols, entity: Entity, parent: Entity, body: Optional[Node]) -> None:
        symbols.add_entity(entity, body)
        symbols.contains.setdefault(parent.entity_id, []).append(
            RelationshipIntent(
                kind=RelationshipKind.CONTAINS,
                source_entity_id=parent.entity_id,
                target_name=entity.name,
                span=entity.source_span,
                target_entity_id=entity.entity_id,
            )
        )
        if parent.kind == EntityKind.MODULE:
            symbols.module_table[entity.name] = entity.entity_id
        elif parent.kind == EntityKind.CLASS:
            symbols.members.setdefault(parent.entity_id, {})[entity.name] = entity.entity_id

    def _declare_class(
        self,
        symbols: UnitSymbols,
        outer: Node,
        node: Node,
        decorators: List[Node],
        parent: Entity,
        key_prefix: str,
        qual_prefix: str,
    ) -> None:
        source_code = symbols.source
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        class_name = node_text(name_node, source_code)
        if self._skip(class_name, class_name.startswith("Test")):
            return

        key = symbols.unique_key(f"{key_prefix}{class_name}")
        body = node.child_by_field_name("body")
        bases = _base_names(node.child_by_field_name("superclasses"), source_code)
        entity = Entity(
            entity_id=f"{symbols.unit_id}::{key}",
            name=class_name,
            kind=EntityKind.CLASS,
            unit_id=symbols.unit_id,
            scope_path=parent.scope_path + (parent.entity_id,),
            source_span=span_of(outer, symbols.unit_id),
            qualified_name=f"{qual_prefix}{class_name}",
            docstring=_extract_docstring_from_body(body, source_code) if self._config.parse_docs else None,
            decorators=tuple(_decorator_name(d, source_code) for d in decorators),
            bases=tuple(name for name, _ in bases),
            is_private=is_private_name(class_name),
            is_test=class_name.startswith("Test"),
        )
        self._register(symbols, entity, parent, body)

        for base_name, base_node in bases:
            symbols.inherits.setdefault(entity.entity_id, []).append(
                RelationshipIntent(
                    kind=RelationshipKind.INHERITS,
                    source_entity_id=entity.entity_id,
                    target_name=base_name,
                    span=span_of(base_node, symbols.unit_id),
                )
            )

        if body is not None:
            self._walk_block(symbols, body, entity, f"{key}.", f"{entity.qualified_name}.")

    def _declare_function(
        self,
        symbols: UnitSymbols,
        outer: Node,
        node: Node,
        decorators: List[Node],
        parent: Entity,
        key_prefix: str,
        qual_prefix: str,
    ) -> None:
        source_code = symbols.source
        name_node = node.child_by_field_name("name")
        func_name = node_text(name_node, source_code) if name_node else "<anonymous>"
        is_test = func_name.startswith("test_")
        if self._skip(func_name, is_test):
            return

        is_method = parent.kind == EntityKind.CLASS
        decorator_names = tuple(_decorator_name(d, source_code) for d in decorators)
        params_node = node.child_by_field_name("parameters")
        return_node = node.child_by_field_name("return_type")
        body = node.child_by_field_name("body")

        instance_binding = None
        if is_method and "staticmethod" not in decorator_names:
            instance_binding = _first_parameter(params_node, source_code)

        key = symbols.unique_key(f"{key_prefix}{func_name}")
        entity = Entity(
            entity_id=f"{symbols.unit_id}::{key}",
            name=func_name,
            kind=EntityKind.METHOD if is_method else EntityKind.FUNCTION,
            unit_id=symbols.unit_id,
            scope_path=parent.scope_path + (parent.entity_id,),
            source_span=span_of(outer, symbols.unit_id),
            qualified_name=f"{qual_prefix}{func_name}",
            docstring=_extract_docstring_from_body(body, source_code) if self._config.parse_docs else None,
            signature=node_text(params_node, source_code) if params_node else "()",
            return_type=node_text(return_node, source_code) if return_node else None,
            decorators=decorator_names,
            instance_binding=instance_binding,
            is_async=any(c.type == "async" for c in node.children),
            is_abstract=any(d.rsplit(".", 1)[-1] in _ABSTRACT_DECORATORS for d in decorator_names),
            is_private=is_private_name(func_name),
            is_test=is_test,
        )
        self._register(symbols, entity, parent, body)
