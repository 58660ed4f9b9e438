"""OntoScore: how much of a schema is bound to ontology terms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

from jsonschema_ld.context import resolve_term
from jsonschema_ld.walker import collect_property_paths  # noqa: F401

ScoreTier = Literal["high", "medium", "low"]


@dataclass(frozen=True)
class OntoScore:
    """Ratio of semantically bound properties to all inspected properties."""

    raw_properties_count: int = 0
    semantic_properties_count: int = 0
    score: float = 0.0

    @property
    def tier(self) -> ScoreTier:
        return score_tier(self.score)


def score_tier(score: float) -> ScoreTier:
    """Presentation tier: ``> 0.9`` high, ``> 0.5`` medium, otherwise low."""
    if score > 0.9:
        return "high"
    if score > 0.5:
        return "medium"
    return "low"


def compute_onto_score(
    context: Any,
    property_paths: Sequence[Sequence[Any]],
) -> OntoScore:
    """Count the paths of *property_paths* that resolve to a term in *context*.

    No properties means zero coverage (``score == 0.0``), not an error.

    Raises:
        MalformedContext: If *context* is not a usable JSON-LD context.
    """
    raw = len(property_paths)
    if raw == 0:
        return OntoScore()
    semantic = sum(1 for path in property_paths if resolve_term(path, context) is not None)
    return OntoScore(
        raw_properties_count=raw,
        semantic_properties_count=semantic,
        score=semantic / raw,
    )
