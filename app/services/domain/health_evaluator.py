"""
Domain service: health evaluation strategies.

The entity store and the ingestion step receive one of these at
construction time and use it to derive the evaluation embedded in
analysis snapshots and archived results.
"""
from typing import Optional, Protocol

from app.domain.models import (
    HealthEvaluation,
    HealthStatus,
    IndexStatsSet,
    IndicesEvaluation,
)
from app.services.domain.vegetation_indices import (
    aggregate_simple_status,
    diagnose_overall,
    evaluate_indices,
    status_badge,
)


class HealthEvaluator(Protocol):
    """Turns index statistics into a HealthEvaluation."""

    def evaluate(
        self,
        stats: Optional[IndexStatsSet],
        crop_type: Optional[str] = None,
    ) -> HealthEvaluation:
        ...


def unknown_evaluation() -> HealthEvaluation:
    """Evaluation used when no statistics are available."""
    indices = evaluate_indices({})
    return _build(indices, HealthStatus.UNKNOWN)


def _build(indices: IndicesEvaluation, overall: HealthStatus, diagnosis=None) -> HealthEvaluation:
    return HealthEvaluation(
        overall=status_badge(overall),
        ndvi=indices.vegetation,
        ndmi=indices.moisture,
        ndre=indices.nutrition,
        diagnosis=diagnosis,
    )


def _all_unknown(indices: IndicesEvaluation) -> bool:
    return all(
        assessment.status == HealthStatus.UNKNOWN
        for assessment in (indices.vegetation, indices.moisture, indices.nutrition)
    )


class ScoreAverageEvaluator:
    """Per-index crop thresholds, overall status from the score average."""

    def evaluate(
        self,
        stats: Optional[IndexStatsSet],
        crop_type: Optional[str] = None,
    ) -> HealthEvaluation:
        if stats is None:
            return unknown_evaluation()

        indices = evaluate_indices(stats.to_flat_map(), crop_type)
        overall = aggregate_simple_status([
            indices.vegetation.status,
            indices.moisture.status,
            indices.nutrition.status,
        ])
        return _build(indices, overall)


class DiagnosticEvaluator:
    """Per-index crop thresholds, overall status from the diagnosis rules."""

    def evaluate(
        self,
        stats: Optional[IndexStatsSet],
        crop_type: Optional[str] = None,
    ) -> HealthEvaluation:
        if stats is None:
            return unknown_evaluation()

        indices = evaluate_indices(stats.to_flat_map(), crop_type)
        if _all_unknown(indices):
            return _build(indices, HealthStatus.UNKNOWN)

        diagnosis = diagnose_overall(indices)
        return _build(indices, diagnosis.status, diagnosis)


EVALUATORS = {
    "score_average": ScoreAverageEvaluator,
    "diagnostic": DiagnosticEvaluator,
}


def create_evaluator(name: str) -> HealthEvaluator:
    """
    Build the evaluation strategy named in settings.

    Raises:
        ValueError: If ``name`` is not a known strategy
    """
    try:
        return EVALUATORS[name]()
    except KeyError:
        raise ValueError(f"Unknown health evaluator: {name}") from None
