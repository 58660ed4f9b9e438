"""Tests for rdf module — JSON-LD examples rendered as shortened Turtle."""

import asyncio

import pytest

from jsonschema_ld.errors import ConversionError, MissingContextError
from jsonschema_ld.rdf import (
    RDFConverter,
    RDFResult,
    example_to_jsonld,
    jsonld_to_turtle,
    parse_nquads,
    shorten_rdf,
    _escape_literal,
)


CONTEXT = {
    "name": "http://schema.org/name",
    "Person": "http://schema.org/Person",
}

ALICE = {
    "@context": CONTEXT,
    "@id": "http://example.org/alice",
    "@type": "Person",
    "name": "Alice",
}


def person(local_name):
    return {**ALICE, "@id": f"http://example.org/{local_name}", "name": local_name}


# ═══════════════════════════════════════════════════════════════════
# example_to_jsonld
# ═══════════════════════════════════════════════════════════════════


class TestExampleToJsonLd:
    """example_to_jsonld() builds a JSON-LD document from a schema example."""

    def test_injects_context_and_type(self):
        """Context and x-jsonld-type are added to the example."""
        schema = {"example": {"name": "Alice"}, "x-jsonld-type": "Person"}
        doc = example_to_jsonld(schema, CONTEXT)
        assert doc == {"@context": CONTEXT, "name": "Alice", "@type": "Person"}

    def test_unwraps_context_wrapper(self):
        """{"@context": ...} wrapper is unwrapped."""
        doc = example_to_jsonld({"example": {"name": "A"}}, {"@context": CONTEXT})
        assert doc["@context"] == CONTEXT

    def test_example_type_wins(self):
        """@type already in the example beats x-jsonld-type."""
        schema = {"example": {"@type": "Thing"}, "x-jsonld-type": "Person"}
        assert example_to_jsonld(schema, CONTEXT)["@type"] == "Thing"

    def test_no_context(self):
        """No context → example returned as is."""
        assert example_to_jsonld({"example": {"name": "A"}}) == {"name": "A"}

    @pytest.mark.parametrize("example", [None, "text", 42, ["a"]])
    def test_non_object_example(self, example):
        """Missing or non-object example → None."""
        assert example_to_jsonld({"example": example}, CONTEXT) is None

    def test_does_not_mutate_schema(self):
        """The schema node is left untouched."""
        schema = {"example": {"name": "Alice"}, "x-jsonld-type": "Person"}
        example_to_jsonld(schema, CONTEXT)
        assert schema == {"example": {"name": "Alice"}, "x-jsonld-type": "Person"}


# ═══════════════════════════════════════════════════════════════════
# jsonld_to_turtle
# ═══════════════════════════════════════════════════════════════════


class TestJsonLdToTurtle:
    """jsonld_to_turtle() converts a document to CURIE-shortened Turtle."""

    def test_shortened_turtle(self):
        """Subject grouped with ; and IRIs shortened to CURIEs."""
        result = jsonld_to_turtle(ALICE)
        assert result.namespaces == {"schema": "http://schema.org/"}
        assert result.shortened_turtle == (
            "<http://example.org/alice> a schema:Person ;\n"
            '    schema:name "Alice" .\n'
        )
        assert result.triples == 2

    def test_full_turtle_has_prefixes(self):
        """turtle() prepends an @prefix line per namespace used."""
        result = jsonld_to_turtle(ALICE)
        assert result.prefix_block() == "@prefix schema: <http://schema.org/> .\n"
        assert result.turtle().startswith("@prefix schema: <http://schema.org/> .\n\n<http")

    def test_multiple_objects_share_predicate(self):
        """Objects of one predicate joined with a comma."""
        doc = {"@context": CONTEXT, "@id": "http://example.org/a", "name": ["A", "B"]}
        result = jsonld_to_turtle(doc)
        assert 'schema:name "A", "B" .' in result.shortened_turtle

    def test_language_tagged_literal(self):
        """@language in the context → "..."@lang literal."""
        doc = {
            "@context": {
                "label": {"@id": "http://www.w3.org/2000/01/rdf-schema#label", "@language": "it"},
            },
            "@id": "http://example.org/a",
            "label": "Ciao",
        }
        assert 'rdfs:label "Ciao"@it' in jsonld_to_turtle(doc).shortened_turtle

    def test_typed_literal_adds_datatype_namespace(self):
        """Typed literal → ^^xsd:... and xsd among the namespaces."""
        doc = {
            "@context": {
                "age": {
                    "@id": "http://schema.org/age",
                    "@type": "http://www.w3.org/2001/XMLSchema#integer",
                },
            },
            "@id": "http://example.org/a",
            "age": "42",
        }
        result = jsonld_to_turtle(doc)
        assert '"42"^^xsd:integer' in result.shortened_turtle
        assert "xsd" in result.namespaces

    def test_blank_node_subject(self):
        """No @id → blank node subject."""
        doc = {"@context": CONTEXT, "name": "Anonymous"}
        assert jsonld_to_turtle(doc).shortened_turtle.startswith("_:b0 schema:name")

    def test_unregistered_iris_stay_absolute(self):
        """IRIs outside the registry stay in <...>."""
        doc = {"@context": {"p": "http://example.org/vocab/p"}, "@id": "http://example.org/x", "p": "v"}
        result = jsonld_to_turtle(doc)
        assert result.namespaces == {}
        assert "<http://example.org/vocab/p>" in result.shortened_turtle

    def test_unmapped_terms_produce_no_triples(self):
        """Only unmapped terms → empty result."""
        result = jsonld_to_turtle({"@context": CONTEXT, "unmapped": "x"})
        assert result == RDFResult()

    @pytest.mark.parametrize("doc", [
        {"name": "no context"},
        {"@context": {}, "name": "empty context"},
        ["not", "an", "object"],
        None,
    ])
    def test_missing_context(self, doc):
        """No usable @context → MissingContextError."""
        with pytest.raises(MissingContextError):
            jsonld_to_turtle(doc)

    def test_missing_context_is_conversion_error(self):
        """MissingContextError is a ConversionError."""
        assert issubclass(MissingContextError, ConversionError)

    def test_invalid_jsonld(self):
        """PyLD rejection → ConversionError."""
        with pytest.raises(ConversionError):
            jsonld_to_turtle({"@context": {"name": {"@id": 42}}, "name": "x"})


class TestNQuads:
    """N-Quads parsing helpers."""

    def test_parse_nquads_folds_named_graphs(self):
        """Graph labels dropped; every quad kept as a triple."""
        text = (
            '<http://ex.org/a> <http://ex.org/p> "1" .\n'
            '<http://ex.org/b> <http://ex.org/p> "2" <http://ex.org/g> .\n'
        )
        triples = parse_nquads(text)
        assert [t["subject"]["value"] for t in triples] == ["http://ex.org/a", "http://ex.org/b"]

    def test_empty_input(self):
        """Empty N-Quads → empty result."""
        assert shorten_rdf("") == RDFResult()

    def test_escape_literal(self):
        """Quotes, backslashes and control characters escaped."""
        assert _escape_literal('a"b\\c\nd\te') == 'a\\"b\\\\c\\nd\\te'


# ═══════════════════════════════════════════════════════════════════
# RDFConverter
# ═══════════════════════════════════════════════════════════════════


class TestRDFConverter:
    """RDFConverter.convert() memoizes conversions by document content."""

    @pytest.mark.asyncio
    async def test_convert(self):
        """Document → shortened Turtle."""
        result = await RDFConverter().convert(ALICE)
        assert "schema:name" in result.shortened_turtle

    @pytest.mark.asyncio
    async def test_memoized_by_content(self):
        """Same content in a different key order → same cached result."""
        converter = RDFConverter()
        first = await converter.convert(ALICE)
        second = await converter.convert(dict(reversed(list(ALICE.items()))))
        assert first is second
        assert converter.cached(ALICE) is first

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_result(self):
        """Concurrent converts of one document share the result."""
        converter = RDFConverter()
        first, second = await asyncio.gather(converter.convert(ALICE), converter.convert(ALICE))
        assert first is second

    @pytest.mark.asyncio
    async def test_custom_registry(self):
        """A custom registry replaces the default prefixes."""
        converter = RDFConverter({"ex": "http://example.org/"})
        result = await converter.convert(ALICE)
        assert result.namespaces == {"ex": "http://example.org/"}
        assert result.shortened_turtle.startswith("ex:alice a <http://schema.org/Person>")

    @pytest.mark.asyncio
    async def test_missing_context_raises(self):
        """No @context → MissingContextError."""
        with pytest.raises(MissingContextError):
            await RDFConverter().convert({"name": "x"})

    @pytest.mark.asyncio
    async def test_failures_not_cached(self):
        """A failed conversion leaves no cache entry."""
        converter = RDFConverter()
        bad = {"@context": {"name": {"@id": 42}}, "name": "x"}
        with pytest.raises(ConversionError):
            await converter.convert(bad)
        assert converter.cached(bad) is None

    def test_clear(self):
        """clear() empties the cache."""
        converter = RDFConverter()
        converter.clear()
        assert converter.cached(ALICE) is None


class TestConverterCacheBound:
    """The converter keeps at most cache_size results, least recently used out."""

    def test_default_size(self, monkeypatch):
        """No explicit size → the ontology settings value."""
        assert RDFConverter().cache_size == 1024
        monkeypatch.setenv("JSONSCHEMA_LD_CACHE_SIZE", "5")
        assert RDFConverter().cache_size == 5

    @pytest.mark.asyncio
    async def test_oldest_evicted(self):
        """Converting a third document with room for two drops the first."""
        converter = RDFConverter(cache_size=2)
        for local_name in ("alice", "bob", "carol"):
            await converter.convert(person(local_name))
        assert converter.cached(person("alice")) is None
        assert converter.cached(person("bob")) is not None
        assert converter.cached(person("carol")) is not None

    @pytest.mark.asyncio
    async def test_hit_refreshes_entry(self):
        """A cache hit moves the document to the back of the eviction order."""
        converter = RDFConverter(cache_size=2)
        await converter.convert(person("alice"))
        await converter.convert(person("bob"))
        await converter.convert(person("alice"))
        await converter.convert(person("carol"))
        assert converter.cached(person("alice")) is not None
        assert converter.cached(person("bob")) is None

    @pytest.mark.asyncio
    async def test_many_documents_stay_bounded(self):
        """Converting many distinct examples never grows past the bound."""
        converter = RDFConverter(cache_size=3)
        for i in range(12):
            await converter.convert(person(f"p{i}"))
        assert len(converter._cache) == 3
        assert 'schema:name "p11"' in converter.cached(person("p11")).shortened_turtle
