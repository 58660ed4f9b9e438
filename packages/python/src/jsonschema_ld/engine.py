"""
Schema annotation engine.

:class:`SchemaAnnotationEngine` wires the walker, the context resolver,
the ontology resolver and the RDF converter behind one object owned by
the rendering layer::

    async with SchemaAnnotationEngine(ontology_backend=backend) as engine:
        tree = engine.render(schema)         # synchronous view tree
        tree = await engine.annotate()       # ontology metadata + Turtle
        score = engine.onto_score(schema)    # semantic coverage
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from jsonschema_ld.annotate import AnnotationSession, UpdateCallback
from jsonschema_ld.config import (
    DEFAULT_RENDER_CONFIG,
    RenderConfig,
    ontology_settings as resolve_ontology_settings,
)
from jsonschema_ld.context import CONTEXT_KEY
from jsonschema_ld.curie import curie_to_uri, make_registry, uri_to_curie, uri_to_short_uri
from jsonschema_ld.ontology import (
    OntologyBackend,
    OntologyMetadataResolver,
    SparqlOntologyBackend,
)
from jsonschema_ld.rdf import RDFConverter, RDFResult
from jsonschema_ld.score import OntoScore, compute_onto_score
from jsonschema_ld.walker import NodeView, collect_property_paths, toggle_expanded, walk_schema

logger = logging.getLogger(__name__)


class SchemaAnnotationEngine:
    """Render, annotate and score JSON Schemas carrying JSON-LD contexts.

    Args:
        config: A :class:`RenderConfig` or a mapping accepted by
            :meth:`RenderConfig.from_mapping`.
        registry: Extra ``prefix -> namespace`` entries merged over the
            default prefix table.
        ontology_backend: Where field URIs are looked up.  Defaults to a
            :class:`SparqlOntologyBackend` built from *ontology_settings*,
            which the engine then owns and closes.
        ontology_settings: Overrides for the ontology settings
            (``sparql_endpoint``, ``timeout``, ``language``, ``cache_size``).
        on_update: Called with ``(key, state)`` as annotation results land.
    """

    def __init__(
        self,
        config: Union[RenderConfig, Mapping[str, Any], None] = None,
        registry: Optional[Mapping[str, str]] = None,
        ontology_backend: Optional[OntologyBackend] = None,
        ontology_settings: Optional[Mapping[str, Any]] = None,
        on_update: Optional[UpdateCallback] = None,
    ):
        if config is None:
            config = DEFAULT_RENDER_CONFIG
        elif not isinstance(config, RenderConfig):
            config = RenderConfig.from_mapping(config)
        self.config = config
        self.registry = make_registry(registry)
        self.settings = resolve_ontology_settings(ontology_settings)

        self._owns_backend = ontology_backend is None
        if ontology_backend is None:
            ontology_backend = SparqlOntologyBackend(
                self.settings["sparql_endpoint"],
                language=self.settings["language"],
                timeout=self.settings["timeout"],
            )
        self.backend = ontology_backend
        self.ontology = OntologyMetadataResolver(
            ontology_backend,
            timeout=self.settings["timeout"],
            cache_size=self.settings["cache_size"],
        )
        self.rdf = RDFConverter(self.registry, cache_size=self.settings["cache_size"])
        self.session = AnnotationSession(self.ontology, self.rdf, on_update=on_update)
        self.expanded: frozenset[str] = frozenset()

    async def __aenter__(self) -> "SchemaAnnotationEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ── Rendering ─────────────────────────────────────────────────

    def render(
        self,
        schema: Any,
        *,
        path: Sequence[Any] = (),
        context: Any = None,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> NodeView:
        """Walk *schema* and load the result into the annotation session.

        Any annotation still running for a previous render is discarded.
        """
        tree = walk_schema(
            schema,
            path=path,
            context=context,
            config=self.config,
            expanded=self.expanded,
            name=name,
            display_name=display_name,
        )
        generation = self.session.load(tree)
        logger.debug("Rendered %s as generation %d", tree.key or "<root>", generation)
        return tree

    def toggle(self, path: Sequence[Any]) -> frozenset[str]:
        """Flip the expansion of the object at *path* for the next render."""
        self.expanded = toggle_expanded(self.expanded, path)
        return self.expanded

    async def annotate(self) -> Optional[NodeView]:
        """Settle the rendered tree's annotations and return the updated tree."""
        await self.session.run()
        return self.session.snapshot()

    # ── Semantics ─────────────────────────────────────────────────

    def onto_score(self, schema: Any, context: Any = None) -> OntoScore:
        """OntoScore of *schema* against *context* (default: its own ``x-jsonld-context``)."""
        if context is None and isinstance(schema, Mapping):
            context = schema.get(CONTEXT_KEY)
        paths = collect_property_paths(
            schema,
            supports_composition=self.config.supports_composition,
            max_depth=self.config.max_depth,
        )
        return compute_onto_score(context, paths)

    async def to_turtle(self, jsonld: Any) -> RDFResult:
        return await self.rdf.convert(jsonld)

    def uri_to_curie(self, uri: str) -> str:
        return uri_to_curie(uri, self.registry)

    def uri_to_short_uri(self, uri: str) -> str:
        return uri_to_short_uri(uri, self.registry)

    def curie_to_uri(self, curie: str) -> str:
        return curie_to_uri(curie, self.registry)

    async def aclose(self) -> None:
        if self._owns_backend and hasattr(self.backend, "aclose"):
            await self.backend.aclose()
