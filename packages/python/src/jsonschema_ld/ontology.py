"""
Ontology metadata resolution for field URIs.

A field URI found through the JSON-LD context is looked up in an
ontology backend to obtain its human label, comment and the class it
belongs to (``rdfs:domain``).  Lookups are network-bound, so
:class:`OntologyMetadataResolver` is asynchronous and memoized by URI.

Backends:
  - :class:`StaticOntologyBackend`: an in-memory table of terms.
  - :class:`SparqlOntologyBackend`: a SPARQL endpoint queried over HTTP
    with ``httpx``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import httpx

from jsonschema_ld.config import ontology_settings
from jsonschema_ld.errors import OntologyLookupFailure

logger = logging.getLogger(__name__)

RDFS = "http://www.w3.org/2000/01/rdf-schema#"

# Characters that would let an IRI escape <...> in a SPARQL query
_UNSAFE_IRI = re.compile(r'[\s<>"{}|\\^`]')


@dataclass(frozen=True)
class OntologyTerm:
    """Vocabulary metadata for a field URI."""

    uri: str
    label: Optional[str] = None
    comment: Optional[str] = None
    parent_class_uri: Optional[str] = None


class OntologyBackend(Protocol):
    """Lookup service reachable by field URI.

    ``lookup`` returns a mapping with optional ``label``, ``comment``
    and ``parent_class_uri`` keys, or ``None`` when the URI is unknown.
    """

    async def lookup(self, uri: str) -> Optional[Mapping[str, Any]]:
        ...


# ═══════════════════════════════════════════════════════════════════
# BACKENDS
# ═══════════════════════════════════════════════════════════════════


class StaticOntologyBackend:
    """Backend over a fixed ``uri -> metadata`` table."""

    def __init__(self, terms: Mapping[str, Mapping[str, Any]]):
        self._terms = {uri: dict(meta) for uri, meta in terms.items()}

    async def lookup(self, uri: str) -> Optional[Mapping[str, Any]]:
        meta = self._terms.get(uri)
        return dict(meta) if meta is not None else None


def build_property_query(uri: str, language: Optional[str] = "en") -> str:
    """SPARQL query for the label, comment and domain of a property."""
    if not uri or _UNSAFE_IRI.search(uri):
        raise ValueError(f"Refusing to query unsafe IRI: {uri!r}")
    if language and not re.fullmatch(r"[A-Za-z]+(?:-[A-Za-z0-9]+)*", language):
        raise ValueError(f"Invalid language tag: {language!r}")
    return (
        f"PREFIX rdfs: <{RDFS}>\n"
        "SELECT ?label ?comment ?domain WHERE {\n"
        f"  OPTIONAL {{ <{uri}> rdfs:label ?label . {_lang_filter('label', language)}}}\n"
        f"  OPTIONAL {{ <{uri}> rdfs:comment ?comment . {_lang_filter('comment', language)}}}\n"
        f"  OPTIONAL {{ <{uri}> rdfs:domain ?domain . }}\n"
        "}\nLIMIT 1"
    )


def _lang_filter(var: str, language: Optional[str]) -> str:
    if not language:
        return ""
    return f'FILTER(lang(?{var}) = "" || langMatches(lang(?{var}), "{language}")) '


class SparqlOntologyBackend:
    """Backend querying a SPARQL endpoint for ``rdfs`` metadata.

    An ``httpx.AsyncClient`` may be injected (tests use
    ``httpx.MockTransport``); otherwise one is created lazily and closed
    by :meth:`aclose` or ``async with``.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        language: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = ontology_settings()
        self.endpoint = endpoint or settings["sparql_endpoint"]
        self.language = language if language is not None else settings["language"]
        self.timeout = timeout if timeout is not None else settings["timeout"]
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "SparqlOntologyBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def lookup(self, uri: str) -> Optional[Mapping[str, Any]]:
        try:
            query = build_property_query(uri, self.language)
        except ValueError as exc:
            raise OntologyLookupFailure(uri, str(exc)) from exc

        try:
            response = await self.client.get(
                self.endpoint,
                params={"query": query, "format": "json"},
                headers={"Accept": "application/sparql-results+json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise OntologyLookupFailure(uri, f"SPARQL request failed: {exc}") from exc
        except ValueError as exc:
            raise OntologyLookupFailure(uri, f"Invalid SPARQL response: {exc}") from exc

        try:
            return _parse_bindings(payload)
        except ValueError as exc:
            raise OntologyLookupFailure(uri, str(exc)) from exc


# ═══════════════════════════════════════════════════════════════════
# RESOLVER
# ═══════════════════════════════════════════════════════════════════


class OntologyMetadataResolver:
    """Memoized asynchronous ``field_uri -> OntologyTerm`` resolution.

    Successful results are cached, least recently used first out once
    *cache_size* entries are held; failures are not cached, so retrying
    is left to the caller.  Concurrent calls for the same URI share one
    in-flight lookup.
    """

    def __init__(
        self,
        backend: OntologyBackend,
        timeout: Optional[float] = None,
        cache_size: Optional[int] = None,
    ):
        settings = ontology_settings()
        self.backend = backend
        self.timeout = timeout if timeout is not None else settings["timeout"]
        self.cache_size = cache_size if cache_size is not None else settings["cache_size"]
        self._cache: dict[str, OntologyTerm] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    async def resolve(self, field_uri: Optional[str]) -> Optional[OntologyTerm]:
        """Resolve *field_uri*; ``None`` in, ``None`` out.

        Raises:
            OntologyLookupFailure: On timeout, backend error, or an
                unknown URI.
        """
        if not field_uri:
            return None
        if field_uri in self._cache:
            term = self._cache.pop(field_uri)
            self._cache[field_uri] = term  # most recently used last
            return term

        task = self._inflight.get(field_uri)
        if task is None:
            task = asyncio.ensure_future(self._lookup(field_uri))
            self._inflight[field_uri] = task
        return await asyncio.shield(task)

    def cached(self, field_uri: str) -> Optional[OntologyTerm]:
        return self._cache.get(field_uri)

    def clear(self) -> None:
        self._cache.clear()

    async def _lookup(self, uri: str) -> OntologyTerm:
        try:
            try:
                meta = await asyncio.wait_for(self.backend.lookup(uri), self.timeout)
            except asyncio.TimeoutError as exc:
                raise OntologyLookupFailure(uri, f"timed out after {self.timeout}s") from exc
            except OntologyLookupFailure:
                raise
            except Exception as exc:
                raise OntologyLookupFailure(uri, f"backend error: {exc}") from exc
            if meta is None:
                raise OntologyLookupFailure(uri, "unknown vocabulary term")

            term = OntologyTerm(
                uri=uri,
                label=meta.get("label"),
                comment=meta.get("comment"),
                parent_class_uri=meta.get("parent_class_uri"),
            )
            self._cache[uri] = term
            while len(self._cache) > self.cache_size:
                self._cache.pop(next(iter(self._cache)))
            logger.debug("Resolved ontology term %s", uri)
            return term
        finally:
            self._inflight.pop(uri, None)


# -- Helpers ------------------------------------------------------------------


def _parse_bindings(payload: Any) -> Optional[dict[str, Any]]:
    """Map SPARQL JSON results to lookup metadata; ``None`` if nothing is bound."""
    try:
        bindings = payload["results"]["bindings"]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed SPARQL results: {exc}") from exc

    for row in bindings:
        meta = {
            "label": _binding_value(row, "label"),
            "comment": _binding_value(row, "comment"),
            "parent_class_uri": _binding_value(row, "domain"),
        }
        if any(v is not None for v in meta.values()):
            return meta
    return None


def _binding_value(row: Mapping[str, Any], name: str) -> Optional[str]:
    cell = row.get(name)
    if isinstance(cell, Mapping):
        return cell.get("value")
    return None
