"""
Domain service: vegetation index evaluation and diagnosis.

This module maps pre-aggregated index means to health categories using:
- Crop-specific NDVI / NDMI / NDRE thresholds
- A score-average aggregation for the overall status
- A rule-based diagnosis producing issues and recommended actions

All functions are pure: no state, no clocks, no exceptions on bad input.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from app.domain.models import (
    Diagnosis,
    HealthStatus,
    IndexAssessment,
    IndicesEvaluation,
    StatusBadge,
    to_optional_float,
)


@dataclass(frozen=True)
class IndexThreshold:
    """Lower bounds (inclusive) of the Good and Moderate categories."""
    good: float
    moderate: float


@dataclass(frozen=True)
class CropThresholds:
    """Thresholds for the three indices of one crop."""
    ndvi: IndexThreshold
    ndmi: IndexThreshold
    ndre: IndexThreshold


DEFAULT_CROP = "default"

CROP_THRESHOLDS: dict[str, CropThresholds] = {
    DEFAULT_CROP: CropThresholds(
        ndvi=IndexThreshold(good=0.6, moderate=0.4),
        ndmi=IndexThreshold(good=0.3, moderate=0.1),
        ndre=IndexThreshold(good=0.2, moderate=0.1),
    ),
    "rice": CropThresholds(
        ndvi=IndexThreshold(good=0.7, moderate=0.5),
        ndmi=IndexThreshold(good=0.4, moderate=0.2),
        ndre=IndexThreshold(good=0.25, moderate=0.15),
    ),
    "tomato": CropThresholds(
        ndvi=IndexThreshold(good=0.6, moderate=0.4),
        ndmi=IndexThreshold(good=0.3, moderate=0.1),
        ndre=IndexThreshold(good=0.2, moderate=0.1),
    ),
    "potato": CropThresholds(
        ndvi=IndexThreshold(good=0.65, moderate=0.45),
        ndmi=IndexThreshold(good=0.35, moderate=0.15),
        ndre=IndexThreshold(good=0.22, moderate=0.12),
    ),
}

# Crop names stored by earlier releases
CROP_ALIASES = {
    "デフォルト": DEFAULT_CROP,
    "稲": "rice",
    "paddy": "rice",
    "トマト": "tomato",
    "じゃがいも": "potato",
    "potatoes": "potato",
}

STATUS_STYLES = {
    HealthStatus.GOOD: "bg-green-100 text-green-800",
    HealthStatus.MODERATE: "bg-yellow-100 text-yellow-800",
    HealthStatus.POOR: "bg-red-100 text-red-800",
    HealthStatus.UNKNOWN: "bg-gray-100 text-gray-800",
}

STATUS_SCORES = {
    HealthStatus.GOOD: 3,
    HealthStatus.MODERATE: 2,
    HealthStatus.POOR: 1,
    HealthStatus.UNKNOWN: 0,
}

DESCRIPTIONS = {
    "ndvi": {
        HealthStatus.GOOD: "Vegetation is in good condition. Photosynthetic activity is high and growth is healthy.",
        HealthStatus.MODERATE: "Vegetation is in average condition. Plants are growing but not at their optimum.",
        HealthStatus.POOR: "Vegetation is in poor condition. Growth problems or reduced canopy cover are visible.",
        HealthStatus.UNKNOWN: "No NDVI data is available.",
    },
    "ndmi": {
        HealthStatus.GOOD: "Moisture is in good condition. Sufficient water is available.",
        HealthStatus.MODERATE: "Moisture is average. Mild water stress is possible.",
        HealthStatus.POOR: "Moisture is poor. Signs of water stress are present; irrigation is recommended.",
        HealthStatus.UNKNOWN: "No NDMI data is available.",
    },
    "ndre": {
        HealthStatus.GOOD: "Nutrition is in good condition. Nitrogen content is sufficient.",
        HealthStatus.MODERATE: "Nutrition is average. Nitrogen levels may not be optimal.",
        HealthStatus.POOR: "Nutrition is poor. Signs of nitrogen deficiency are present; fertilisation is recommended.",
        HealthStatus.UNKNOWN: "No NDRE data is available.",
    },
}

ISSUE_LOW_VIGOUR = "Reduced overall vegetation vigour"
ISSUE_WATER_STRESS = "Water stress"
ISSUE_NUTRIENT_DEFICIENCY = "Nutrient deficiency (especially nitrogen)"
ACTION_IRRIGATE = "Consider irrigation"
ACTION_REVIEW_WATER = "Review water management"
ACTION_FERTILISE = "Consider fertilisation"
ACTION_REVIEW_NUTRIENTS = "Review nutrient management"


def normalize_crop_type(crop_type: Optional[str]) -> str:
    """Return the threshold table key for a crop name."""
    if not crop_type or not isinstance(crop_type, str):
        return DEFAULT_CROP
    name = crop_type.strip()
    name = CROP_ALIASES.get(name, name).lower()
    name = CROP_ALIASES.get(name, name)
    return name if name in CROP_THRESHOLDS else DEFAULT_CROP


def resolve_crop_thresholds(crop_type: Optional[str]) -> CropThresholds:
    """Thresholds for a crop, falling back to the default entry."""
    return CROP_THRESHOLDS[normalize_crop_type(crop_type)]


def classify_index(value: Any, threshold: IndexThreshold) -> HealthStatus:
    """
    Classify one index mean.

    ``value >= good`` is Good, ``moderate <= value < good`` is Moderate,
    anything lower is Poor. Missing or non-numeric values are Unknown.
    """
    number = to_optional_float(value)
    if number is None:
        return HealthStatus.UNKNOWN
    if number >= threshold.good:
        return HealthStatus.GOOD
    if number >= threshold.moderate:
        return HealthStatus.MODERATE
    return HealthStatus.POOR


def status_badge(status: HealthStatus) -> StatusBadge:
    return StatusBadge(status=status, style_class=STATUS_STYLES[status])


def assess_index(index: str, value: Any, threshold: IndexThreshold) -> IndexAssessment:
    """Classify an index and attach its value, style and description."""
    status = classify_index(value, threshold)
    return IndexAssessment(
        status=status,
        style_class=STATUS_STYLES[status],
        value=to_optional_float(value),
        description=DESCRIPTIONS[index][status],
    )


def evaluate_indices(
    stats: Mapping[str, Any],
    crop_type: Optional[str] = None,
) -> IndicesEvaluation:
    """
    Evaluate vegetation, moisture and nutrition from index statistics.

    Args:
        stats: Flat statistics map keyed by ``<INDEX>_<stat>`` (e.g. ``NDVI_mean``)
        crop_type: Crop name selecting the threshold table entry

    Returns:
        IndicesEvaluation with one assessment per index
    """
    thresholds = resolve_crop_thresholds(crop_type)
    return IndicesEvaluation(
        vegetation=assess_index("ndvi", stats.get("NDVI_mean"), thresholds.ndvi),
        moisture=assess_index("ndmi", stats.get("NDMI_mean"), thresholds.ndmi),
        nutrition=assess_index("ndre", stats.get("NDRE_mean"), thresholds.ndre),
    )


def aggregate_simple_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """
    Overall status from the mean of per-index scores.

    Good=3, Moderate=2, Poor=1, Unknown=0; a mean of at least 2.5 is Good,
    at least 1.5 is Moderate, anything lower is Poor. When no index is
    known at all the result is Unknown.
    """
    statuses = list(statuses)
    if not statuses or all(s == HealthStatus.UNKNOWN for s in statuses):
        return HealthStatus.UNKNOWN

    average = sum(STATUS_SCORES[s] for s in statuses) / len(statuses)
    if average >= 2.5:
        return HealthStatus.GOOD
    if average >= 1.5:
        return HealthStatus.MODERATE
    return HealthStatus.POOR


def diagnose_overall(evaluation: IndicesEvaluation) -> Diagnosis:
    """
    Rule-based diagnosis with issues and recommended actions.

    Overall is Good only when all three indices are Good, Poor when
    vegetation is Poor or both moisture and nutrition are Poor, and
    Moderate otherwise.
    """
    vegetation = evaluation.vegetation.status
    moisture = evaluation.moisture.status
    nutrition = evaluation.nutrition.status

    issues = []
    actions = []

    if vegetation == HealthStatus.POOR:
        issues.append(ISSUE_LOW_VIGOUR)

    if moisture == HealthStatus.POOR:
        issues.append(ISSUE_WATER_STRESS)
        actions.append(ACTION_IRRIGATE)
    elif moisture == HealthStatus.MODERATE and vegetation != HealthStatus.GOOD:
        actions.append(ACTION_REVIEW_WATER)

    if nutrition == HealthStatus.POOR:
        issues.append(ISSUE_NUTRIENT_DEFICIENCY)
        actions.append(ACTION_FERTILISE)
    elif nutrition == HealthStatus.MODERATE and vegetation != HealthStatus.GOOD:
        actions.append(ACTION_REVIEW_NUTRIENTS)

    if vegetation == moisture == nutrition == HealthStatus.GOOD:
        status = HealthStatus.GOOD
    elif vegetation == HealthStatus.POOR or (
        moisture == HealthStatus.POOR and nutrition == HealthStatus.POOR
    ):
        status = HealthStatus.POOR
    else:
        status = HealthStatus.MODERATE

    return Diagnosis(status=status, issues=issues, actions=actions)
