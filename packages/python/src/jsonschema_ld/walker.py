"""
Schema model walker.

Turns a JSON Schema (or OpenAPI schema object) into a tree of
:class:`NodeView` records, one per rendered node, ready for a
presentation layer.  There is no authoritative discriminant in a schema
node, so each node is first classified into a :class:`Variant` with
this precedence:

    1. ``items`` present                                  → ARRAY
    2. ``properties`` / ``additionalProperties`` present,
       or a composition keyword in an OAS3-style dialect  → OBJECT
    3. anything else (typed scalars, enums, free-form)     → PRIMITIVE

The walk is synchronous and pure: the input is never mutated, the
JSON-LD context is threaded explicitly into every recursive call, and
equal inputs always produce equal trees.  Ontology lookups and RDF
conversion happen later, in :mod:`jsonschema_ld.annotate`.

Malformed nodes never abort the walk; they degrade to a primitive
fallback or a node-level issue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Sequence

from jsonschema_ld.config import DEFAULT_RENDER_CONFIG, RenderConfig
from jsonschema_ld.context import (
    CONTEXT_KEY,
    TYPE_KEY,
    TermDescriptor,
    effective_context,
    lookup_key,
    resolve_term,
)
from jsonschema_ld.errors import MalformedContext
from jsonschema_ld.path import SchemaPath
from jsonschema_ld.rdf import example_to_jsonld
from jsonschema_ld.state import Annotation, Status

logger = logging.getLogger(__name__)

COMBINATORS = ("allOf", "anyOf", "oneOf")

_OBJECT_INFO_KEYS = ("maxProperties", "minProperties", "nullable")
_ARRAY_HIDDEN_KEYS = frozenset({
    "type", "items", "description", "$$ref", "externalDocs", "example", "title",
})
_PRIMITIVE_HIDDEN_KEYS = frozenset({
    "enum", "type", "format", "description", "$$ref", "externalDocs", "example",
    "title", "xml",
})


class Variant(str, Enum):
    ARRAY = "array"
    OBJECT = "object"
    PRIMITIVE = "primitive"


@dataclass(frozen=True)
class Shape:
    """A classified schema node: the variant tag and what it recurses into."""

    variant: Variant
    items: Any = None
    properties: Any = None
    additional_properties: Any = None
    compositions: tuple[tuple[str, Any], ...] = ()
    negated: Any = None


@dataclass(frozen=True)
class NodeView:
    """Resolved view of one schema node.

    ``heading`` is the depth-1 presentation hint (navigation chrome vs.
    compact inline annotation).  ``expanded`` is only set for objects.
    ``role`` is how the node was reached from its parent: ``root``,
    ``property``, ``items``, ``additionalProperties``, a combinator
    name, or ``not``.
    """

    variant: Variant
    path: SchemaPath
    depth: int
    title: str = ""
    name: Optional[str] = None
    role: str = "root"
    index: Optional[int] = None
    heading: bool = False
    required: bool = False
    deprecated: bool = False
    expanded: Optional[bool] = None
    array_element: bool = False
    type: Any = None
    format: Optional[str] = None
    description: Optional[str] = None
    enum: Optional[tuple[Any, ...]] = None
    xml: Optional[dict[str, Any]] = None
    info: tuple[tuple[str, Any], ...] = ()
    extensions: tuple[tuple[str, Any], ...] = ()
    lookup_key: tuple[Any, ...] = ()
    annotation: Annotation = Annotation(Status.UNRESOLVED)
    example: Optional[dict[str, Any]] = None
    children: tuple["NodeView", ...] = ()
    issues: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return self.path.key()

    @property
    def term(self) -> Optional[TermDescriptor]:
        return self.annotation.term


# ═══════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════


def classify_node(schema: Any, supports_composition: bool = True) -> Shape:
    """Classify a schema node; non-mappings classify as PRIMITIVE."""
    if not isinstance(schema, Mapping):
        return Shape(Variant.PRIMITIVE)
    if "items" in schema:
        return Shape(Variant.ARRAY, items=schema["items"])

    compositions: tuple[tuple[str, Any], ...] = ()
    negated = None
    if supports_composition:
        compositions = tuple((c, schema[c]) for c in COMBINATORS if c in schema)
        negated = schema.get("not")

    if (
        "properties" in schema
        or "additionalProperties" in schema
        or compositions
        or negated is not None
    ):
        return Shape(
            Variant.OBJECT,
            properties=schema.get("properties"),
            additional_properties=schema.get("additionalProperties"),
            compositions=compositions,
            negated=negated,
        )
    return Shape(Variant.PRIMITIVE)


# ═══════════════════════════════════════════════════════════════════
# WALK
# ═══════════════════════════════════════════════════════════════════


def walk_schema(
    schema: Any,
    *,
    path: Sequence[Any] = (),
    context: Any = None,
    config: Optional[RenderConfig] = None,
    expanded: frozenset[str] = frozenset(),
    name: Optional[str] = None,
    display_name: Optional[str] = None,
) -> NodeView:
    """Build the :class:`NodeView` tree for *schema*.

    Args:
        schema: The root schema node being rendered.
        path: Location of *schema* in its document, e.g.
            ``("components", "schemas", "Person")``.  Its length is the
            structural prefix dropped from ontology lookup keys.
        context: JSON-LD context inherited from outside the root.
        config: Rendering configuration.
        expanded: Keys of object nodes the user expanded explicitly.
        name: Property name of the root, if any.
        display_name: Fallback title when the schema has none.
    """
    root = SchemaPath(path)
    walker = _Walker(config or DEFAULT_RENDER_CONFIG, frozenset(expanded), len(root))
    return walker.node(schema, root, 1, context, name=name, display_name=display_name)


def iter_nodes(node: NodeView) -> Iterator[NodeView]:
    """Depth-first, pre-order iteration over a view tree."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_node(root: NodeView, path: Sequence[Any]) -> Optional[NodeView]:
    target = SchemaPath(path)
    for node in iter_nodes(root):
        if node.path == target:
            return node
    return None


def toggle_expanded(state: frozenset[str], path: Sequence[Any]) -> frozenset[str]:
    """Return a new expansion state with *path* toggled."""
    key = SchemaPath(path).key()
    return state - {key} if key in state else state | {key}


class _Walker:
    def __init__(self, config: RenderConfig, expanded: frozenset[str], prefix_length: int):
        self.config = config
        self.expanded = expanded
        self.prefix_length = prefix_length

    def node(
        self,
        schema: Any,
        path: SchemaPath,
        depth: int,
        inherited: Any,
        *,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
        role: str = "root",
        index: Optional[int] = None,
        required: bool = False,
    ) -> NodeView:
        placement = dict(name=name, role=role, index=index, required=required)

        if depth > self.config.max_depth:
            return self._fallback(path, depth, f"maximum depth {self.config.max_depth} exceeded", **placement)
        if not isinstance(schema, Mapping):
            return self._fallback(
                path, depth, f"schema node must be an object, got {type(schema).__name__}", **placement,
            )

        context = effective_context(schema, inherited)
        shape = classify_node(schema, self.config.supports_composition)
        issues: list[str] = []
        annotation = self._annotation(context, shape.variant, path, issues)

        if shape.variant is Variant.ARRAY:
            children: tuple[NodeView, ...] = (
                self.node(shape.items, path.append("items"), depth + 1, context, role="items"),
            )
            info = self._info(schema, _ARRAY_HIDDEN_KEYS)
        elif shape.variant is Variant.OBJECT:
            children = self._object_children(schema, shape, path, depth, context, issues)
            info = tuple((k, schema[k]) for k in _OBJECT_INFO_KEYS if k in schema)
        else:
            children = ()
            info = self._info(schema, _PRIMITIVE_HIDDEN_KEYS)

        title = schema.get("title") or display_name or name or ""
        enum = schema.get("enum")
        xml = schema.get("xml")

        return NodeView(
            variant=shape.variant,
            path=path,
            depth=depth,
            title=str(title),
            heading=depth == 1,
            deprecated=self.config.supports_composition and bool(schema.get("deprecated")),
            expanded=self._expanded(path, depth) if shape.variant is Variant.OBJECT else None,
            array_element=role == "items",
            type=schema.get("type"),
            format=schema.get("format"),
            description=schema.get("description"),
            enum=tuple(enum) if isinstance(enum, (list, tuple)) else None,
            xml=dict(xml) if isinstance(xml, Mapping) and xml else None,
            info=info,
            extensions=self._extensions(schema),
            lookup_key=lookup_key(path, self.prefix_length),
            annotation=annotation,
            example=example_to_jsonld(schema, context),
            children=children,
            issues=tuple(issues),
            **placement,
        )

    # ── Variant rules ─────────────────────────────────────────────

    def _object_children(
        self,
        schema: Mapping[str, Any],
        shape: Shape,
        path: SchemaPath,
        depth: int,
        context: Any,
        issues: list[str],
    ) -> tuple[NodeView, ...]:
        children: list[NodeView] = []

        required_keys = schema.get("required") or ()
        if not isinstance(required_keys, (list, tuple)):
            issues.append("required must be an array of property names")
            required_keys = ()

        properties = shape.properties
        if properties is not None and not isinstance(properties, Mapping):
            issues.append("properties must be an object")
        elif properties:
            for key, value in properties.items():
                if not self._visible(value):
                    continue
                children.append(self.node(
                    value, path.append("properties", key), depth + 1, context,
                    name=key, role="property", required=key in required_keys,
                ))

        additional = shape.additional_properties
        if isinstance(additional, Mapping) and additional:
            children.append(self.node(
                additional, path.append("additionalProperties"), depth + 1, context,
                role="additionalProperties",
            ))

        for combinator, members in shape.compositions:
            if not isinstance(members, (list, tuple)):
                issues.append(f"{combinator} must be an array of schemas")
                continue
            for i, member in enumerate(members):
                children.append(self.node(
                    member, path.append(combinator, i), depth + 1, context,
                    role=combinator, index=i,
                ))

        if shape.negated is not None:
            children.append(self.node(
                shape.negated, path.append("not"), depth + 1, context, role="not",
            ))

        return tuple(children)

    def _visible(self, value: Any) -> bool:
        if not isinstance(value, Mapping):
            return True
        return (
            (not value.get("readOnly") or self.config.include_read_only)
            and (not value.get("writeOnly") or self.config.include_write_only)
        )

    def _expanded(self, path: SchemaPath, depth: int) -> bool:
        return path.key() in self.expanded or depth <= self.config.expand_depth

    # ── Annotation and presentation helpers ───────────────────────

    def _annotation(
        self,
        context: Any,
        variant: Variant,
        path: SchemaPath,
        issues: list[str],
    ) -> Annotation:
        try:
            # Unstripped, so a property named "items" or "2024" stays a name
            term = resolve_term(path[self.prefix_length:], context)
        except MalformedContext as exc:
            logger.warning("Malformed JSON-LD context at %s: %s", path.key() or "<root>", exc)
            issues.append(str(exc))
            return Annotation(Status.ERROR, error=str(exc))
        if term is None:
            return Annotation(Status.UNRESOLVED)
        # Only primitives fetch ontology metadata in the annotation pass
        if variant is Variant.PRIMITIVE:
            return Annotation(Status.PENDING, term=term)
        return Annotation(Status.SUCCESS, term=term)

    def _extensions(self, schema: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
        if not self.config.show_extensions:
            return ()
        return tuple(
            (k, v) for k, v in schema.items()
            if isinstance(k, str) and k.startswith("x-") and k not in (CONTEXT_KEY, TYPE_KEY)
        )

    @staticmethod
    def _info(schema: Mapping[str, Any], hidden: frozenset[str]) -> tuple[tuple[str, Any], ...]:
        return tuple(
            (k, v) for k, v in schema.items()
            if k not in hidden and not (isinstance(k, str) and k.startswith("x-"))
        )

    def _fallback(
        self,
        path: SchemaPath,
        depth: int,
        issue: str,
        *,
        name: Optional[str],
        role: str,
        index: Optional[int],
        required: bool,
    ) -> NodeView:
        logger.warning("Malformed schema node at %s: %s", path.key() or "<root>", issue)
        return NodeView(
            variant=Variant.PRIMITIVE,
            path=path,
            depth=depth,
            title=name or "",
            name=name,
            role=role,
            index=index,
            heading=depth == 1,
            required=required,
            array_element=role == "items",
            lookup_key=lookup_key(path, self.prefix_length),
            issues=(issue,),
        )


# ═══════════════════════════════════════════════════════════════════
# PROPERTY PATHS
# ═══════════════════════════════════════════════════════════════════


def collect_property_paths(
    schema: Any,
    *,
    supports_composition: bool = True,
    max_depth: int = DEFAULT_RENDER_CONFIG.max_depth,
) -> list[SchemaPath]:
    """Leaf property paths of *schema*, relative to *schema* itself.

    Nested objects (directly, through array ``items`` or through
    composition members) are descended into; every other property is
    a leaf.  ``additionalProperties`` and ``not`` describe no named
    properties and are skipped.
    """
    paths: list[SchemaPath] = []

    def visit(node: Any, path: SchemaPath, depth: int) -> None:
        if depth > max_depth:
            return
        shape = classify_node(node, supports_composition)
        if shape.variant is Variant.ARRAY:
            visit(shape.items, path.append("items"), depth + 1)
            return
        if shape.variant is not Variant.OBJECT:
            return
        if isinstance(shape.properties, Mapping):
            for key, value in shape.properties.items():
                child = path.append("properties", key)
                if _has_named_members(value, supports_composition):
                    visit(value, child, depth + 1)
                else:
                    paths.append(child)
        for combinator, members in shape.compositions:
            if isinstance(members, (list, tuple)):
                for i, member in enumerate(members):
                    visit(member, path.append(combinator, i), depth + 1)

    visit(schema, SchemaPath(), 1)
    return paths


def _has_named_members(node: Any, supports_composition: bool) -> bool:
    # Arrays are transparent: look at what the items are.
    for _ in range(DEFAULT_RENDER_CONFIG.max_depth):
        if not (isinstance(node, Mapping) and "items" in node):
            break
        node = node["items"]
    shape = classify_node(node, supports_composition)
    if shape.variant is not Variant.OBJECT:
        return False
    return bool(
        (isinstance(shape.properties, Mapping) and shape.properties)
        or shape.compositions
    )
