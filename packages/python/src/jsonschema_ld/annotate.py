"""
Asynchronous annotation pass over a walked schema tree.

The walk (:func:`jsonschema_ld.walker.walk_schema`) is synchronous and
leaves primitive nodes with a bound field URI in the ``pending`` state.
:class:`AnnotationSession` then resolves ontology metadata for those
nodes, and Turtle for every node carrying a JSON-LD example, all
concurrently.  Each job settles its own node: one failing lookup never
blocks or fails its siblings.

Every :meth:`AnnotationSession.load` bumps a generation token.  A job
started for an older generation still runs to completion (so the
resolver caches stay warm) but its result is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Optional, Sequence, Union

from jsonschema_ld.errors import ConversionError, MissingContextError, OntologyLookupFailure
from jsonschema_ld.ontology import OntologyMetadataResolver
from jsonschema_ld.path import SchemaPath
from jsonschema_ld.rdf import RDFConverter
from jsonschema_ld.state import Annotation, RdfState, Status
from jsonschema_ld.walker import NodeView, iter_nodes

logger = logging.getLogger(__name__)

NodeState = Union[Annotation, RdfState]
UpdateCallback = Callable[[str, NodeState], None]


class AnnotationSession:
    """Per-node annotation and RDF states for the most recently loaded tree.

    ``on_update(key, state)`` is called for every applied result, where
    ``key`` is the node's :meth:`SchemaPath.key`.
    """

    def __init__(
        self,
        ontology_resolver: OntologyMetadataResolver,
        rdf_converter: RDFConverter,
        on_update: Optional[UpdateCallback] = None,
    ):
        self.ontology_resolver = ontology_resolver
        self.rdf_converter = rdf_converter
        self.on_update = on_update
        self.generation = 0
        self.tree: Optional[NodeView] = None
        self.annotations: dict[str, Annotation] = {}
        self.rdf_states: dict[str, RdfState] = {}

    def load(self, tree: NodeView) -> int:
        """Seed states from *tree* and return its generation token."""
        self.generation += 1
        self.tree = tree
        self.annotations = {}
        self.rdf_states = {}
        for node in iter_nodes(tree):
            self.annotations[node.key] = node.annotation
            if node.example is not None:
                self.rdf_states[node.key] = RdfState(Status.PENDING)
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    async def run(self) -> int:
        """Settle every pending state of the loaded tree.

        Returns the generation that was processed.  If :meth:`load` is
        called while this runs, the remaining results are discarded.
        """
        generation = self.generation
        if self.tree is None:
            return generation

        jobs = []
        for node in iter_nodes(self.tree):
            if node.annotation.status is Status.PENDING:
                jobs.append(self._annotate(generation, node))
            if node.example is not None:
                jobs.append(self._convert(generation, node))
        if jobs:
            logger.debug("Annotating generation %d: %d jobs", generation, len(jobs))
            await asyncio.gather(*jobs)
        return generation

    def annotation(self, path: Sequence[Any]) -> Optional[Annotation]:
        return self.annotations.get(SchemaPath(path).key())

    def rdf_state(self, path: Sequence[Any]) -> Optional[RdfState]:
        return self.rdf_states.get(SchemaPath(path).key())

    def snapshot(self) -> Optional[NodeView]:
        """The loaded tree with every node's current annotation applied."""
        if self.tree is None:
            return None
        return self._with_annotations(self.tree)

    # ── Jobs ──────────────────────────────────────────────────────

    async def _annotate(self, generation: int, node: NodeView) -> None:
        term = node.annotation.term
        field_uri = term.field_uri if term is not None else None
        try:
            ontology = await self.ontology_resolver.resolve(field_uri)
        except OntologyLookupFailure as exc:
            logger.debug("Ontology lookup failed for %s: %s", field_uri, exc.reason)
            state = Annotation(Status.ERROR, term=term, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error resolving %s", field_uri)
            state = Annotation(Status.ERROR, term=term, error=str(exc))
        else:
            state = Annotation(Status.SUCCESS, term=term, ontology=ontology)
        self._apply(generation, node.key, self.annotations, state)

    async def _convert(self, generation: int, node: NodeView) -> None:
        try:
            result = await self.rdf_converter.convert(node.example)
        except MissingContextError as exc:
            state = RdfState(Status.NO_CONTEXT, error=str(exc))
        except ConversionError as exc:
            logger.debug("RDF conversion failed at %s: %s", node.key or "<root>", exc)
            state = RdfState(Status.ERROR, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error converting the example at %s", node.key or "<root>")
            state = RdfState(Status.ERROR, error=str(exc))
        else:
            state = RdfState(Status.SUCCESS, result=result)
        self._apply(generation, node.key, self.rdf_states, state)

    def _apply(self, generation: int, key: str, table: dict, state: NodeState) -> bool:
        if not self.is_current(generation):
            logger.debug("Dropping stale result for %s (generation %d)", key or "<root>", generation)
            return False
        table[key] = state
        if self.on_update is not None:
            self.on_update(key, state)
        return True

    def _with_annotations(self, node: NodeView) -> NodeView:
        return replace(
            node,
            annotation=self.annotations.get(node.key, node.annotation),
            children=tuple(self._with_annotations(child) for child in node.children),
        )
