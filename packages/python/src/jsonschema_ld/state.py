"""Per-node annotation states.

Every node's semantic annotation moves from ``pending`` to ``success``
or ``error`` independently of its siblings.  ``unresolved`` means no
JSON-LD term is bound (expected, not a failure) and ``no-context``
means an example exists but there is no context to read it as RDF.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jsonschema_ld.context import TermDescriptor
from jsonschema_ld.ontology import OntologyTerm
from jsonschema_ld.rdf import RDFResult


class Status(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    UNRESOLVED = "unresolved"
    NO_CONTEXT = "no-context"


@dataclass(frozen=True)
class Annotation:
    """Semantic annotation of one schema node."""

    status: Status
    term: Optional[TermDescriptor] = None
    ontology: Optional[OntologyTerm] = None
    error: Optional[str] = None

    @property
    def field_uri(self) -> Optional[str]:
        return self.term.field_uri if self.term is not None else None


@dataclass(frozen=True)
class RdfState:
    """Turtle rendering of one node's JSON-LD example."""

    status: Status
    result: Optional[RDFResult] = None
    error: Optional[str] = None
