"""JSON-LD context resolution for schema property paths.

A schema node may carry an ``x-jsonld-context``: a JSON-LD
``@context`` describing how its properties map to ontology terms.
Given the path of a property inside that schema, :func:`resolve_term`
finds the term bound to the property's leaf name.

Resolution rules:
    - structural path segments (``properties`` markers, ``items``,
      ``additionalProperties``, composition keywords, indexes) are not
      property names and are skipped;
    - property-scoped ``@context`` definitions of ancestor terms apply
      to their descendants;
    - dotted keys (``"address.city"``) bind a term to a specific path,
      and the longest matching candidate wins over the bare leaf name;
    - ``@vocab`` supplies an IRI for otherwise unbound names;
    - a term mapped to ``null`` or to a keyword (``"id": "@id"``) is
      unbound.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from jsonschema_ld.errors import MalformedContext, UnresolvedContext

logger = logging.getLogger(__name__)

CONTEXT_KEY = "x-jsonld-context"
TYPE_KEY = "x-jsonld-type"

STRUCTURAL_SEGMENTS = frozenset({
    "properties", "items", "additionalProperties",
    "allOf", "anyOf", "oneOf", "not",
})


@dataclass(frozen=True)
class TermDescriptor:
    """The JSON-LD term bound to a schema property."""

    term: str
    field_uri: str
    container_type: Optional[str] = None  # "list" or "set"
    value_type: Optional[str] = None
    vocabulary_uri: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════
# PATHS
# ═══════════════════════════════════════════════════════════════════


def property_keys(path: Sequence[Any]) -> tuple[str, ...]:
    """Return the property names along *path*, dropping structural segments.

    A segment right after a ``properties`` marker is always a property
    name, even if it looks structural (a property called ``items``).
    """
    keys: list[str] = []
    segments = list(path)
    i = 0
    while i < len(segments):
        seg = segments[i]
        if seg == "properties" and i + 1 < len(segments):
            keys.append(str(segments[i + 1]))
            i += 2
            continue
        if isinstance(seg, int) or seg in STRUCTURAL_SEGMENTS or (
            isinstance(seg, str) and seg.isdigit()
        ):
            i += 1
            continue
        keys.append(str(seg))
        i += 1
    return tuple(keys)


def lookup_key(path: Sequence[Any], prefix_length: int = 0) -> tuple[Any, ...]:
    """Drop the first *prefix_length* segments, then every ``properties`` segment.

    With ``prefix_length=3`` the OpenAPI prefix ``components/schemas/<Name>``
    disappears and ``.../properties/address/properties/city`` becomes
    ``("address", "city")``.
    """
    return tuple(s for s in list(path)[prefix_length:] if s != "properties")


def effective_context(node: Any, inherited: Any) -> Any:
    """The node's own ``x-jsonld-context`` if present, else *inherited*.

    The two are never merged: a local context fully shadows the parent's.
    """
    if isinstance(node, Mapping):
        own = node.get(CONTEXT_KEY)
        if own is not None:
            return own
    return inherited


# ═══════════════════════════════════════════════════════════════════
# CONTEXT NORMALIZATION
# ═══════════════════════════════════════════════════════════════════


def unwrap_context(context: Any) -> Any:
    """Accept both a bare ``@context`` value and ``{"@context": ...}``."""
    if isinstance(context, Mapping) and "@context" in context:
        return context["@context"]
    return context


def normalize_context(context: Any) -> dict[str, Any]:
    """Flatten a JSON-LD context value into a single term dict.

    Lists are merged left to right.  Remote context references (strings)
    are not dereferenced here and contribute no terms.

    Raises:
        MalformedContext: For values that cannot be a JSON-LD context.
    """
    context = unwrap_context(context)
    if context is None:
        return {}
    if isinstance(context, str):
        logger.debug("Remote context %s is not dereferenced for term lookup", context)
        return {}
    if isinstance(context, Mapping):
        return dict(context)
    if isinstance(context, (list, tuple)):
        merged: dict[str, Any] = {}
        for item in context:
            merged.update(normalize_context(item))
        return merged
    raise MalformedContext(
        f"JSON-LD context must be an object, array or IRI, got: {type(context).__name__}"
    )


# ═══════════════════════════════════════════════════════════════════
# TERM RESOLUTION
# ═══════════════════════════════════════════════════════════════════


def resolve_term(path: Sequence[Any], context: Any) -> Optional[TermDescriptor]:
    """Resolve the JSON-LD term bound to the leaf of *path*.

    Args:
        path: A schema path with its ``properties`` markers intact; a
            stripped key loses properties named like schema keywords.
        context: The effective JSON-LD context for the node.

    Returns:
        A :class:`TermDescriptor`, or ``None`` when no term is bound.

    Raises:
        MalformedContext: If the context or a term definition is malformed.
    """
    keys = property_keys(path)
    if not keys:
        return None
    active = normalize_context(context)
    if not active:
        return None

    # Property-scoped contexts of ancestors apply to their descendants
    for key in keys[:-1]:
        definition = active.get(key)
        if isinstance(definition, Mapping) and "@context" in definition:
            active = {**active, **normalize_context(definition["@context"])}

    leaf = keys[-1]
    for start in range(len(keys)):
        candidate = ".".join(keys[start:])
        if candidate in active:
            return _describe(candidate, leaf, active[candidate], active)

    vocab = _expand_iri(active.get("@vocab"), active)
    if vocab and not leaf.startswith("@"):
        return TermDescriptor(term=leaf, field_uri=vocab + leaf)
    return None


def require_term(path: Sequence[Any], context: Any) -> TermDescriptor:
    """Like :func:`resolve_term` but raise :class:`UnresolvedContext` when unbound."""
    descriptor = resolve_term(path, context)
    if descriptor is None:
        raise UnresolvedContext(f"No JSON-LD term bound to {'.'.join(property_keys(path)) or '<root>'}")
    return descriptor


def expand_iri(value: Any, context: Any) -> Optional[str]:
    """Expand a compact IRI or term against *context*; ``None`` if it cannot be."""
    return _expand_iri(value, normalize_context(context))


# -- Helpers ------------------------------------------------------------------


def _describe(
    term: str,
    leaf: str,
    definition: Any,
    active: Mapping[str, Any],
) -> Optional[TermDescriptor]:
    if definition is None:
        return None  # explicitly unbound
    if isinstance(definition, str):
        iri = _expand_iri(definition, active)
        return TermDescriptor(term=term, field_uri=iri) if iri else None
    if not isinstance(definition, Mapping):
        raise MalformedContext(f"Invalid term definition for {term!r}: {definition!r}")

    if "@reverse" in definition:
        iri = _expand_iri(definition["@reverse"], active)
    elif "@id" in definition:
        iri = _expand_iri(definition["@id"], active)
    else:
        # No @id: the term itself is the IRI (compact IRI or @vocab-relative)
        iri = _expand_iri(term if ":" in term else leaf, active, {term})
    if not iri:
        return None

    container = definition.get("@container")
    if isinstance(container, str):
        containers = [container]
    elif isinstance(container, (list, tuple)):
        containers = list(container)
    else:
        containers = []
    container_type = "list" if "@list" in containers else "set" if "@set" in containers else None

    value_type = definition.get("@type")
    if isinstance(value_type, str) and not value_type.startswith("@"):
        value_type = _expand_iri(value_type, active) or value_type
    elif not isinstance(value_type, str):
        value_type = None

    vocabulary_uri = None
    scoped = definition.get("@context")
    if isinstance(scoped, Mapping) and value_type in ("@id", "@vocab"):
        base = scoped.get("@base")
        if isinstance(base, str) and base:
            vocabulary_uri = base

    return TermDescriptor(
        term=term,
        field_uri=iri,
        container_type=container_type,
        value_type=value_type,
        vocabulary_uri=vocabulary_uri,
    )


def _expand_iri(
    value: Any,
    active: Mapping[str, Any],
    seen: frozenset[str] | set[str] = frozenset(),
) -> Optional[str]:
    if not isinstance(value, str) or not value or value.startswith("@"):
        return None

    if ":" in value:
        prefix, _, suffix = value.partition(":")
        if prefix == "_":
            return None  # blank node identifiers are not field URIs
        if suffix.startswith("//") or prefix in seen:
            return value
        namespace = _term_iri(active.get(prefix))
        if namespace is not None:
            expanded = _expand_iri(namespace, active, {*seen, prefix}) or namespace
            return expanded + suffix
        return value  # already absolute, e.g. urn:...

    if value in active and value not in seen:
        target = _term_iri(active[value])
        if target is not None:
            return _expand_iri(target, active, {*seen, value})
        if active[value] is None:
            return None

    vocab = active.get("@vocab")
    if isinstance(vocab, str) and vocab and "@vocab" not in seen:
        expanded_vocab = _expand_iri(vocab, active, {*seen, "@vocab"}) or vocab
        return expanded_vocab + value
    return None


def _term_iri(definition: Any) -> Optional[str]:
    if isinstance(definition, str):
        return definition
    if isinstance(definition, Mapping) and isinstance(definition.get("@id"), str):
        return definition["@id"]
    return None
