"""CURIE conversion and namespace extraction.

A registry maps prefixes to namespace IRIs.  When several registered
namespaces are prefixes of the same URI the longest one wins, so a
generic namespace never masks a more specific one; equally long
namespaces resolve to the first registered entry.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional

from jsonschema_ld.errors import UnknownPrefix

# ── Default registry ───────────────────────────────────────────────

PREFIX_CC: dict[str, str] = {
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
    "skos": "http://www.w3.org/2004/02/skos/core#",
    "skosxl": "http://www.w3.org/2008/05/skos-xl#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "dcat": "http://www.w3.org/ns/dcat#",
    "foaf": "http://xmlns.com/foaf/0.1/",
    "schema": "http://schema.org/",
    "prov": "http://www.w3.org/ns/prov#",
    "sh": "http://www.w3.org/ns/shacl#",
    "vcard": "http://www.w3.org/2006/vcard/ns#",
    "geo": "http://www.w3.org/2003/01/geo/wgs84_pos#",
    "time": "http://www.w3.org/2006/time#",
    "org": "http://www.w3.org/ns/org#",
    "adms": "http://www.w3.org/ns/adms#",
    "locn": "http://www.w3.org/ns/locn#",
    "odrl": "http://www.w3.org/ns/odrl/2/",
    "ldp": "http://www.w3.org/ns/ldp#",
    "void": "http://rdfs.org/ns/void#",
    "sosa": "http://www.w3.org/ns/sosa/",
    "ssn": "http://www.w3.org/ns/ssn/",
    "qudt": "http://qudt.org/schema/qudt/",
    "gr": "http://purl.org/goodrelations/v1#",
    "dbo": "http://dbpedia.org/ontology/",
    "dbr": "http://dbpedia.org/resource/",
    "wd": "http://www.wikidata.org/entity/",
    "eli": "http://data.europa.eu/eli/ontology#",
    # Italian public administration ontologies (OntoPiA)
    "l0": "https://w3id.org/italia/onto/l0/",
    "CPV": "https://w3id.org/italia/onto/CPV/",
    "CLV": "https://w3id.org/italia/onto/CLV/",
    "COV": "https://w3id.org/italia/onto/COV/",
    "TI": "https://w3id.org/italia/onto/TI/",
    "RO": "https://w3id.org/italia/onto/RO/",
    "SM": "https://w3id.org/italia/onto/SM/",
    "POT": "https://w3id.org/italia/onto/POT/",
    "ACCO": "https://w3id.org/italia/onto/ACCO/",
    "MU": "https://w3id.org/italia/onto/MU/",
    "ADMSAPIT": "https://w3id.org/italia/onto/ADMS/",
}

_SCHEME_AUTHORITY = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:(//[^/?#]*)?")


def make_registry(
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Return a new registry: *base* (default :data:`PREFIX_CC`) updated with *overrides*.

    Raises:
        TypeError: If a prefix or namespace is not a string.
        ValueError: If a prefix is empty or contains ``:``, or a
            namespace is empty.
    """
    registry = dict(PREFIX_CC if base is None else base)
    for prefix, namespace in (overrides or {}).items():
        if not isinstance(prefix, str) or not isinstance(namespace, str):
            raise TypeError(f"Registry entries must be strings, got: {prefix!r} -> {namespace!r}")
        if not prefix or ":" in prefix:
            raise ValueError(f"Invalid CURIE prefix: {prefix!r}")
        if not namespace:
            raise ValueError(f"Empty namespace for prefix {prefix!r}")
        registry[prefix] = namespace
    return registry


def longest_match(uri: str, registry: Mapping[str, str]) -> Optional[tuple[str, str]]:
    """Return the ``(prefix, namespace)`` whose namespace is the longest prefix of *uri*."""
    best: Optional[tuple[str, str]] = None
    for prefix, namespace in registry.items():
        if not namespace or not uri.startswith(namespace):
            continue
        if best is None or len(namespace) > len(best[1]):
            best = (prefix, namespace)
    return best


# ═══════════════════════════════════════════════════════════════════
# CURIE CONVERSION
# ═══════════════════════════════════════════════════════════════════


def uri_to_curie(uri: str, registry: Mapping[str, str] = PREFIX_CC) -> str:
    """Shorten *uri* to ``prefix:localName``, or return it unchanged.

    >>> uri_to_curie("http://www.w3.org/2004/02/skos/core#Concept")
    'skos:Concept'
    """
    match = longest_match(uri, registry)
    if match is None:
        return uri
    prefix, namespace = match
    return f"{prefix}:{uri[len(namespace):]}"


def uri_to_short_uri(uri: str, registry: Mapping[str, str] = PREFIX_CC) -> str:
    """Best-effort short form of *uri* for display.

    Registered namespaces are used first.  Otherwise the local name is
    whatever follows the last ``#`` (or, without a ``#``, the last
    ``/``) and the prefix is the path or host segment just before it::

        http://example.org/unknown#Property       -> unknown:Property
        http://example.org/unknown/Property       -> unknown:Property
        http://example.org/unknown#/foo/bar/Prop  -> unknown:/foo/bar/Prop

    The input is returned unchanged when no ``#`` or ``/`` follows the
    scheme and authority, or when the local name would be empty.
    """
    curie = uri_to_curie(uri, registry)
    if curie != uri:
        return curie

    m = _SCHEME_AUTHORITY.match(uri)
    if m is None:
        return uri
    authority = (m.group(1) or "")[2:]
    rest = uri[m.end():]

    if "#" in rest:
        head, local = rest.rsplit("#", 1)
    elif "/" in rest:
        head, local = rest.rsplit("/", 1)
    else:
        return uri
    if not local:
        return uri

    segments = [s for s in [authority, *head.split("/")] if s]
    if not segments:
        return uri
    return f"{segments[-1]}:{local}"


def curie_to_uri(curie: str, registry: Mapping[str, str] = PREFIX_CC) -> str:
    """Expand ``prefix:localName`` with *registry*.

    Raises:
        ValueError: If *curie* has no ``:`` separator.
        UnknownPrefix: If the prefix is not registered.
    """
    prefix, sep, local = curie.partition(":")
    if not sep:
        raise ValueError(f"Not a CURIE: {curie!r}")
    if prefix not in registry:
        raise UnknownPrefix(prefix)
    return registry[prefix] + local


# ═══════════════════════════════════════════════════════════════════
# NAMESPACE EXTRACTION
# ═══════════════════════════════════════════════════════════════════


def extract_namespaces(
    uris: Iterable[str],
    registry: Mapping[str, str] = PREFIX_CC,
) -> dict[str, str]:
    """Return the registry entries needed to shorten *uris*.

    One entry per distinct longest match, ordered by first use.  URIs
    that no registered namespace covers contribute nothing.
    """
    used: dict[str, str] = {}
    for uri in uris:
        match = longest_match(uri, registry)
        if match is not None and match[0] not in used:
            used[match[0]] = match[1]
    return used
