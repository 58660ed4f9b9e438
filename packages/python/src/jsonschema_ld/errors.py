"""Error taxonomy for schema annotation.

Every failure is contained at the node or operation that produced it:
the walker turns them into node-level issues, the annotation pass turns
them into ``error`` states, and nothing here is fatal to a render.
"""

from __future__ import annotations


class SchemaLdError(Exception):
    """Base class for all jsonschema-ld errors."""


class MalformedSchema(SchemaLdError, ValueError):
    """A structural assumption about a schema node was violated."""


class MalformedContext(MalformedSchema):
    """An ``x-jsonld-context`` value is not a usable JSON-LD context."""


class UnresolvedContext(SchemaLdError, LookupError):
    """No JSON-LD term is bound to a property path.

    Only raised by strict helpers such as
    :func:`jsonschema_ld.context.require_term`; the regular resolver
    returns ``None`` instead.
    """


class OntologyLookupFailure(SchemaLdError):
    """Ontology metadata could not be fetched for a field URI."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"Cannot resolve {uri}: {reason}")
        self.uri = uri
        self.reason = reason


ResolutionError = OntologyLookupFailure


class ConversionError(SchemaLdError):
    """A JSON-LD document could not be serialized to Turtle."""


class MissingContextError(ConversionError):
    """The JSON-LD document has no ``@context`` to interpret it with."""


class UnknownPrefix(SchemaLdError, LookupError):
    """A CURIE uses a prefix that is not in the registry."""

    def __init__(self, prefix: str):
        super().__init__(f"Unknown CURIE prefix: {prefix!r}")
        self.prefix = prefix
