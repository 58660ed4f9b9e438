"""
JSON-LD → Turtle conversion with CURIE shortening.

Conversion runs through PyLD (``to_rdf`` as N-Quads, then PyLD's own
N-Quads parser) and writes the resulting triples as Turtle grouped by
subject.  IRIs are shortened with the namespaces actually used by the
document, so the prefix table shown next to the Turtle stays minimal.

:class:`RDFConverter` is the asynchronous, memoized entry point used by
the annotation pass; :func:`jsonld_to_turtle` is the synchronous core.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pyld import jsonld

from jsonschema_ld.config import ontology_settings
from jsonschema_ld.context import unwrap_context
from jsonschema_ld.curie import PREFIX_CC, extract_namespaces, longest_match
from jsonschema_ld.errors import ConversionError, MissingContextError

logger = logging.getLogger(__name__)

RDF_TYPE = "http://www.w3.org/1999/02/22-rdf-syntax-ns#type"
RDF_LANGSTRING = "http://www.w3.org/1999/02/22-rdf-syntax-ns#langString"
XSD_STRING = "http://www.w3.org/2001/XMLSchema#string"

# Conservative PN_LOCAL: anything else is written as a full <IRI>.
_LOCAL_NAME = re.compile(r"^(?:[A-Za-z0-9_](?:[A-Za-z0-9_.\-]*[A-Za-z0-9_\-])?)?$")

_INDENT = "    "


# ── Data Structures ────────────────────────────────────────────────


@dataclass(frozen=True)
class RDFResult:
    """Shortened Turtle plus the prefixes it relies on."""

    namespaces: dict[str, str] = field(default_factory=dict)
    shortened_turtle: str = ""
    triples: int = 0

    def prefix_block(self) -> str:
        """``@prefix`` declarations, one per line."""
        return "".join(f"@prefix {p}: <{ns}> .\n" for p, ns in self.namespaces.items())

    def turtle(self) -> str:
        """Complete Turtle document: prefixes followed by the triples."""
        if not self.namespaces:
            return self.shortened_turtle
        return f"{self.prefix_block()}\n{self.shortened_turtle}"


# ═══════════════════════════════════════════════════════════════════
# EXAMPLES AS JSON-LD
# ═══════════════════════════════════════════════════════════════════


def example_to_jsonld(
    schema: Mapping[str, Any],
    context: Any = None,
) -> Optional[dict[str, Any]]:
    """Build the JSON-LD document for a schema node's ``example``.

    The example's own keys win over the injected ``@context``;
    ``x-jsonld-type`` becomes ``@type`` when the example has none.
    Returns ``None`` when the node has no object example.
    """
    example = schema.get("example") if isinstance(schema, Mapping) else None
    if not isinstance(example, Mapping):
        return None

    doc: dict[str, Any] = {}
    if context is not None:
        doc["@context"] = unwrap_context(context)
    doc.update(example)

    jsonld_type = schema.get("x-jsonld-type")
    if jsonld_type and "@type" not in doc:
        doc["@type"] = jsonld_type
    return doc


# ═══════════════════════════════════════════════════════════════════
# N-QUADS → TURTLE
# ═══════════════════════════════════════════════════════════════════


def to_nquads(doc: Mapping[str, Any]) -> str:
    """Convert a JSON-LD document to N-Quads with PyLD."""
    try:
        return jsonld.to_rdf(dict(doc), {"format": "application/n-quads"})
    except jsonld.JsonLdError as exc:
        raise ConversionError(f"JSON-LD to RDF conversion failed: {exc}") from exc


def parse_nquads(text: str) -> list[dict[str, Any]]:
    """Parse N-Quads into PyLD triples; named graphs are folded in after the default graph."""
    try:
        dataset = jsonld.JsonLdProcessor.parse_nquads(text)
    except jsonld.JsonLdError as exc:
        raise ConversionError(f"Invalid N-Quads: {exc}") from exc

    triples = list(dataset.get("@default", []))
    for name, graph in dataset.items():
        if name == "@default":
            continue
        logger.debug("Folding named graph %s into the default graph", name)
        triples.extend(graph)
    return triples


def write_turtle(
    triples: list[dict[str, Any]],
    registry: Mapping[str, str] = PREFIX_CC,
) -> RDFResult:
    """Serialize PyLD triples as Turtle, shortening IRIs with *registry*."""
    candidates = [iri for iri in _iter_iris(triples) if _shortenable(iri, registry)]
    namespaces = extract_namespaces(candidates, registry)

    # subject -> predicate -> objects, in order of first appearance
    subjects: dict[str, dict[str, list[str]]] = {}
    for triple in triples:
        subject = _format_node(triple["subject"], namespaces)
        predicate = triple["predicate"]["value"]
        obj = _format_object(triple["object"], namespaces)
        objects = subjects.setdefault(subject, {}).setdefault(predicate, [])
        if obj not in objects:
            objects.append(obj)

    blocks: list[str] = []
    for subject, predicates in subjects.items():
        ordered = sorted(predicates.items(), key=lambda item: item[0] != RDF_TYPE)
        parts = [
            f"{_format_predicate(p, namespaces)} {', '.join(objs)}"
            for p, objs in ordered
        ]
        blocks.append(f"{subject} " + f" ;\n{_INDENT}".join(parts) + " .")

    turtle = "\n\n".join(blocks)
    if turtle:
        turtle += "\n"
    return RDFResult(namespaces=namespaces, shortened_turtle=turtle, triples=len(triples))


def shorten_rdf(nquads: str, registry: Mapping[str, str] = PREFIX_CC) -> RDFResult:
    """Turn N-Quads text into shortened Turtle."""
    if not nquads or not nquads.strip():
        return RDFResult()
    return write_turtle(parse_nquads(nquads), registry)


def jsonld_to_turtle(
    doc: Any,
    registry: Mapping[str, str] = PREFIX_CC,
) -> RDFResult:
    """Synchronous JSON-LD → shortened Turtle.

    Raises:
        MissingContextError: If *doc* is not an object with ``@context``.
        ConversionError: If PyLD rejects the document.
    """
    _require_context(doc)
    return shorten_rdf(to_nquads(doc), registry)


# ═══════════════════════════════════════════════════════════════════
# ASYNC CONVERTER
# ═══════════════════════════════════════════════════════════════════


class RDFConverter:
    """Asynchronous JSON-LD → Turtle converter memoized by document content.

    Conversion may dereference remote contexts, so PyLD runs in a
    worker thread.  Concurrent calls for the same document share one
    in-flight task; failures are not cached.  At most *cache_size*
    results are kept, least recently used first out.
    """

    def __init__(
        self,
        registry: Optional[Mapping[str, str]] = None,
        cache_size: Optional[int] = None,
    ):
        self._registry = PREFIX_CC if registry is None else registry
        self.cache_size = ontology_settings()["cache_size"] if cache_size is None else cache_size
        self._cache: dict[str, RDFResult] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    async def convert(self, doc: Any) -> RDFResult:
        _require_context(doc)
        key = _cache_key(doc)
        if key in self._cache:
            result = self._cache.pop(key)
            self._cache[key] = result  # most recently used last
            return result

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._convert(key))
            self._inflight[key] = task
        return await asyncio.shield(task)

    def cached(self, doc: Any) -> Optional[RDFResult]:
        try:
            return self._cache.get(_cache_key(doc))
        except ConversionError:
            return None

    def clear(self) -> None:
        self._cache.clear()

    async def _convert(self, key: str) -> RDFResult:
        try:
            # A JSON round-trip gives PyLD plain dicts and lists.
            plain = json.loads(key)
            result = await asyncio.to_thread(jsonld_to_turtle, plain, self._registry)
            self._cache[key] = result
            while len(self._cache) > self.cache_size:
                self._cache.pop(next(iter(self._cache)))
            return result
        finally:
            self._inflight.pop(key, None)


# -- Helpers ------------------------------------------------------------------


def _require_context(doc: Any) -> None:
    if not isinstance(doc, Mapping):
        raise MissingContextError(
            f"JSON-LD document must be an object, got: {type(doc).__name__}"
        )
    if not doc.get("@context"):
        raise MissingContextError("JSON-LD document has no @context")


def _cache_key(doc: Mapping[str, Any]) -> str:
    try:
        return json.dumps(doc, sort_keys=True, default=_json_default)
    except (TypeError, ValueError) as exc:
        raise ConversionError(f"Document is not JSON-serializable: {exc}") from exc


def _json_default(value: Any) -> Any:
    # MappingProxyType and other read-only mappings
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (tuple, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _iter_iris(triples: list[dict[str, Any]]):
    for triple in triples:
        for position in ("subject", "predicate", "object"):
            node = triple[position]
            if position == "predicate" and node["value"] == RDF_TYPE:
                continue
            if node["type"] == "IRI":
                yield node["value"]
            elif node["type"] == "literal":
                datatype = node.get("datatype")
                if datatype and datatype not in (XSD_STRING, RDF_LANGSTRING):
                    yield datatype


def _shortenable(iri: str, registry: Mapping[str, str]) -> bool:
    match = longest_match(iri, registry)
    return match is not None and bool(_LOCAL_NAME.match(iri[len(match[1]):]))


def _shorten(iri: str, namespaces: Mapping[str, str]) -> str:
    match = longest_match(iri, namespaces)
    if match is not None:
        local = iri[len(match[1]):]
        if _LOCAL_NAME.match(local):
            return f"{match[0]}:{local}"
    return f"<{iri}>"


def _format_node(node: Mapping[str, Any], namespaces: Mapping[str, str]) -> str:
    if node["type"] == "IRI":
        return _shorten(node["value"], namespaces)
    return node["value"]  # blank node label


def _format_predicate(iri: str, namespaces: Mapping[str, str]) -> str:
    return "a" if iri == RDF_TYPE else _shorten(iri, namespaces)


def _format_object(node: Mapping[str, Any], namespaces: Mapping[str, str]) -> str:
    if node["type"] != "literal":
        return _format_node(node, namespaces)
    literal = f'"{_escape_literal(node["value"])}"'
    datatype = node.get("datatype")
    if datatype == RDF_LANGSTRING and node.get("language"):
        return f"{literal}@{node['language']}"
    if datatype and datatype != XSD_STRING:
        return f"{literal}^^{_shorten(datatype, namespaces)}"
    return literal


def _escape_literal(s: str) -> str:
    """Escape a string for a Turtle/N-Triples literal."""
    return (
        s.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
