"""
Domain models for fields, directories and analysis results.

These models represent the core domain entities and should be independent
of any infrastructure concerns (storage backends, API clients, etc.).
Persisted JSON uses camelCase keys; Python code uses snake_case names.
Unknown extra properties are kept so newer documents survive a round trip.
"""
import math
from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field as PField, field_validator
from pydantic.alias_generators import to_camel

from app.utils.geometry import validate_polygon_coordinates


DEFAULT_DIRECTORY_ID = "directory_default"
DEFAULT_FIELD_NAME = "Untitled field"
DEFAULT_DIRECTORY_NAME = "New list"

# Bumped whenever a persisted record needs an upgrade step on load.
FIELD_SCHEMA_VERSION = 2
DIRECTORY_SCHEMA_VERSION = 2

INDEX_NAMES = ("ndvi", "ndmi", "ndre")
STAT_NAMES = ("mean", "min", "max", "stdDev")


def to_optional_float(value: Any) -> Optional[float]:
    """Coerce a raw statistic to a finite float, or None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"


class HealthStatus(str, Enum):
    """Health category of a single index or of a whole field."""
    GOOD = "Good"
    MODERATE = "Moderate"
    POOR = "Poor"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        # Labels written by earlier releases of the web client
        legacy = {
            "良好": cls.GOOD,
            "excellent": cls.GOOD,
            "good": cls.GOOD,
            "普通": cls.MODERATE,
            "moderate": cls.MODERATE,
            "要注意": cls.POOR,
            "poor": cls.POOR,
            "不明": cls.UNKNOWN,
            "unknown": cls.UNKNOWN,
        }
        if isinstance(value, str):
            return legacy.get(value.strip().lower(), legacy.get(value.strip(), cls.UNKNOWN))
        return cls.UNKNOWN


def coerce_health_status(value: Any) -> Any:
    """Map legacy status labels onto ``HealthStatus``."""
    if isinstance(value, HealthStatus):
        return value
    if value is None:
        return HealthStatus.UNKNOWN
    return HealthStatus(value)


class ComparisonStatus(str, Enum):
    """Agreement between a measured mean and one reference value."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    QUESTIONABLE = "Questionable"
    POOR = "Poor"
    UNKNOWN = "Unknown"


# ============================================================
# Geometry
# ============================================================

class PolygonGeometry(CamelModel):
    """GeoJSON Polygon geometry with [lon, lat] positions."""
    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[list[float]]]

    @field_validator("coordinates")
    @classmethod
    def _check_rings(cls, value: list[list[list[float]]]) -> list[list[list[float]]]:
        validate_polygon_coordinates(value)
        return value

    @property
    def exterior(self) -> list[list[float]]:
        return self.coordinates[0]


# ============================================================
# Analysis snapshot
# ============================================================

class DateRange(CamelModel):
    """Acquisition dates of the imagery behind an analysis."""
    start: Optional[date] = None
    end: Optional[date] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value


class IndexStats(CamelModel):
    """Pre-aggregated statistics of one index over a polygon."""
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    std_dev: Optional[float] = None

    @field_validator("mean", "min", "max", "std_dev", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[float]:
        return to_optional_float(value)


class IndexStatsSet(CamelModel):
    """Statistics for NDVI, NDMI and NDRE."""
    ndvi: IndexStats = PField(default_factory=IndexStats)
    ndmi: IndexStats = PField(default_factory=IndexStats)
    ndre: IndexStats = PField(default_factory=IndexStats)

    def to_flat_map(self) -> dict[str, Optional[float]]:
        """Return the ``<INDEX>_<stat>`` map used by the analysis service."""
        flat = {}
        for index in INDEX_NAMES:
            stats = getattr(self, index)
            flat[f"{index.upper()}_mean"] = stats.mean
            flat[f"{index.upper()}_min"] = stats.min
            flat[f"{index.upper()}_max"] = stats.max
            flat[f"{index.upper()}_stdDev"] = stats.std_dev
        return flat


class TileUrls(CamelModel):
    """Opaque map tile URL templates, one per index."""
    ndvi: Optional[str] = None
    ndmi: Optional[str] = None
    ndre: Optional[str] = None


class StatusBadge(CamelModel):
    """Status with its display style hint."""
    status: HealthStatus = HealthStatus.UNKNOWN
    style_class: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value: Any) -> Any:
        return coerce_health_status(value)


class IndexAssessment(StatusBadge):
    """Classification of a single index mean."""
    value: Optional[float] = None
    description: str = ""


class IndicesEvaluation(CamelModel):
    """Crop-aware classification of the three indices."""
    vegetation: IndexAssessment
    moisture: IndexAssessment
    nutrition: IndexAssessment


class Diagnosis(CamelModel):
    """Overall diagnosis with detected issues and recommended actions."""
    status: HealthStatus
    issues: list[str] = PField(default_factory=list)
    actions: list[str] = PField(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value: Any) -> Any:
        return coerce_health_status(value)


class HealthEvaluation(CamelModel):
    """Derived health evaluation embedded in snapshots and results."""
    overall: StatusBadge
    ndvi: IndexAssessment
    ndmi: IndexAssessment
    ndre: IndexAssessment
    diagnosis: Optional[Diagnosis] = None


class AnalysisSnapshot(CamelModel):
    """Result of one analysis run, embedded in a field."""
    date_range: Optional[DateRange] = None
    stats: IndexStatsSet = PField(default_factory=IndexStatsSet)
    tile_urls: TileUrls = PField(default_factory=TileUrls)
    evaluation: Optional[HealthEvaluation] = None
    advice: Optional[str] = None
    analyzed_at: Optional[int] = None
    data_source: Optional[str] = None


# ============================================================
# Fields and directories
# ============================================================

class Field(CamelModel):
    """A user-drawn area of interest."""
    id: str
    name: str = DEFAULT_FIELD_NAME
    memo: str = ""
    crop: str = ""
    created_at: int
    updated_at: int
    center: list[float]
    geometry: Optional[PolygonGeometry] = None
    color: str = ""
    directory_id: str = DEFAULT_DIRECTORY_ID
    last_analysis: Optional[AnalysisSnapshot] = None
    order: Optional[float] = None
    schema_version: int = FIELD_SCHEMA_VERSION


class FieldCreate(CamelModel):
    """Input for creating a field."""
    name: Optional[str] = None
    memo: Optional[str] = None
    crop: Optional[str] = None
    center: Optional[list[float]] = None
    geometry: PolygonGeometry
    color: Optional[str] = None
    directory_id: Optional[str] = None
    order: Optional[float] = None

    @field_validator("center")
    @classmethod
    def _check_center(cls, value: Optional[list[float]]) -> Optional[list[float]]:
        if value is not None and len(value) != 2:
            raise ValueError("center must be a [latitude, longitude] pair")
        return value


class FieldUpdate(CamelModel):
    """Partial update of a field."""
    name: Optional[str] = None
    memo: Optional[str] = None
    crop: Optional[str] = None
    center: Optional[list[float]] = None
    geometry: Optional[PolygonGeometry] = None
    color: Optional[str] = None
    directory_id: Optional[str] = None
    order: Optional[float] = None


class Directory(CamelModel):
    """A named grouping of fields sharing a default crop."""
    id: str
    name: str = DEFAULT_DIRECTORY_NAME
    crop: str = ""
    created_at: int
    updated_at: int
    schema_version: int = DIRECTORY_SCHEMA_VERSION


class DirectoryCreate(CamelModel):
    """Input for creating a directory."""
    name: Optional[str] = None
    crop: Optional[str] = None


class DirectoryUpdate(CamelModel):
    """Partial update of a directory."""
    name: Optional[str] = None
    crop: Optional[str] = None


# ============================================================
# Analysis archive
# ============================================================

class AnalysisFieldInfo(CamelModel):
    """Field details captured at the time of an analysis."""
    id: Optional[str] = None
    name: str = "Selected field"
    location: Optional[list[float]] = None
    crop: str = ""
    area_hectares: Optional[float] = None


class AnalysisResult(CamelModel):
    """Archived analysis result."""
    id: str
    timestamp: int
    date: str
    field: AnalysisFieldInfo
    date_range: Optional[DateRange] = None
    stats: IndexStatsSet = PField(default_factory=IndexStatsSet)
    tile_urls: TileUrls = PField(default_factory=TileUrls)
    evaluation: HealthEvaluation
    advice: Optional[str] = None
    metadata: dict[str, Any] = PField(default_factory=dict)


class AnalysisHistoryEntry(CamelModel):
    """Lightweight summary of an archived result."""
    id: str
    timestamp: int
    date: str
    field_name: str
    health_status: HealthStatus = HealthStatus.UNKNOWN
    ndvi_average: Optional[float] = None

    @field_validator("health_status", mode="before")
    @classmethod
    def _legacy_status(cls, value: Any) -> Any:
        return coerce_health_status(value)

    @field_validator("ndvi_average", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[float]:
        return to_optional_float(value)


class AnalysisStatistics(CamelModel):
    """Aggregate figures over the analysis archive."""
    total: int
    health_status_counts: dict[str, int] = PField(default_factory=dict)
    average_ndvi: Optional[float] = None
    oldest_date: Optional[str] = None
    newest_date: Optional[str] = None


class ImportSummary(CamelModel):
    """Outcome of a successful import."""
    added: int
    total: int
    directories_added: int = 0
    results_added: int = 0


class StoreCounts(CamelModel):
    """Number of records in each collection."""
    fields: int
    directories: int
    analyses: int


# ============================================================
# Reference comparison
# ============================================================

class ReferenceSample(CamelModel):
    """One dated reference NDVI value."""
    date: date
    ndvi: float


class ReferenceRecord(CamelModel):
    """Reference NDVI data for a location from one external source."""
    source: str
    source_full_name: str
    average: Optional[float] = None
    reliability: str = "medium"
    crop_type: str = "unknown"
    location: Optional[dict[str, float]] = None
    date_range: Optional[DateRange] = None
    values: list[ReferenceSample] = PField(default_factory=list)
    note: Optional[str] = None

    @field_validator("average", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[float]:
        return to_optional_float(value)

    @property
    def is_fallback(self) -> bool:
        return self.source == "REFERENCE_DB"


class ReferenceComparison(CamelModel):
    """Comparison of the measured mean against one reference."""
    reference_name: str
    source: str
    is_fallback: bool = False
    reference_value: Optional[float] = None
    measured_value: Optional[float] = None
    absolute_difference: Optional[float] = None
    percentage_difference: Optional[float] = None
    tolerance_threshold: float
    status: ComparisonStatus
    is_within_tolerance: bool
    crop_type: str = "unknown"


class ComparisonSummary(CamelModel):
    """Aggregate agreement across all references."""
    overall_status: ComparisonStatus
    match_percentage: int
    summary_message: str
    references_count: int


class ComparisonReport(CamelModel):
    """Per-reference comparisons with their summary."""
    comparison_results: list[ReferenceComparison]
    summary: ComparisonSummary
