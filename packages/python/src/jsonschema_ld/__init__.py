"""
jsonschema-ld: semantic annotation of JSON Schemas with JSON-LD contexts.

Walks JSON Schema / OpenAPI schema objects, resolves their properties to
ontology terms through ``x-jsonld-context``, scores semantic coverage
(OntoScore) and renders embedded JSON-LD examples as compacted Turtle.
Wraps PyLD for JSON-LD to RDF conversion.
"""

import logging

__version__ = "0.1.0"

from jsonschema_ld.errors import (
    SchemaLdError,
    MalformedSchema,
    MalformedContext,
    UnresolvedContext,
    OntologyLookupFailure,
    ResolutionError,
    ConversionError,
    MissingContextError,
    UnknownPrefix,
)
from jsonschema_ld.config import (
    RenderConfig,
    DEFAULT_RENDER_CONFIG,
    DEFAULT_ONTOLOGY_SETTINGS,
    ontology_settings,
)
from jsonschema_ld.path import SchemaPath
from jsonschema_ld.curie import (
    PREFIX_CC,
    make_registry,
    uri_to_curie,
    uri_to_short_uri,
    curie_to_uri,
    extract_namespaces,
)
from jsonschema_ld.rdf import (
    RDFConverter,
    RDFResult,
    example_to_jsonld,
    jsonld_to_turtle,
)
from jsonschema_ld.context import (
    TermDescriptor,
    resolve_term,
    require_term,
    effective_context,
    lookup_key,
)
from jsonschema_ld.ontology import (
    OntologyTerm,
    OntologyMetadataResolver,
    StaticOntologyBackend,
    SparqlOntologyBackend,
)
from jsonschema_ld.score import OntoScore, compute_onto_score, score_tier
from jsonschema_ld.state import Annotation, RdfState, Status
from jsonschema_ld.walker import (
    NodeView,
    Variant,
    Shape,
    classify_node,
    walk_schema,
    iter_nodes,
    find_node,
    toggle_expanded,
    collect_property_paths,
)
from jsonschema_ld.annotate import AnnotationSession
from jsonschema_ld.engine import SchemaAnnotationEngine

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Errors
    "SchemaLdError",
    "MalformedSchema",
    "MalformedContext",
    "UnresolvedContext",
    "OntologyLookupFailure",
    "ResolutionError",
    "ConversionError",
    "MissingContextError",
    "UnknownPrefix",
    # Configuration
    "RenderConfig",
    "DEFAULT_RENDER_CONFIG",
    "DEFAULT_ONTOLOGY_SETTINGS",
    "ontology_settings",
    # Paths
    "SchemaPath",
    # CURIEs
    "PREFIX_CC",
    "make_registry",
    "uri_to_curie",
    "uri_to_short_uri",
    "curie_to_uri",
    "extract_namespaces",
    # RDF
    "RDFConverter",
    "RDFResult",
    "example_to_jsonld",
    "jsonld_to_turtle",
    # Contexts
    "TermDescriptor",
    "resolve_term",
    "require_term",
    "effective_context",
    "lookup_key",
    # Ontology
    "OntologyTerm",
    "OntologyMetadataResolver",
    "StaticOntologyBackend",
    "SparqlOntologyBackend",
    # OntoScore
    "OntoScore",
    "compute_onto_score",
    "score_tier",
    # Walker
    "NodeView",
    "Variant",
    "Shape",
    "classify_node",
    "walk_schema",
    "iter_nodes",
    "find_node",
    "toggle_expanded",
    "collect_property_paths",
    # Annotation
    "Annotation",
    "RdfState",
    "Status",
    "AnnotationSession",
    "SchemaAnnotationEngine",
]
