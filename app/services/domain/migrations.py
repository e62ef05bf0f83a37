"""
Domain service: schema upgrades for persisted records.

Each step takes the raw JSON records of one collection and returns a
``MigrationResult``. Steps never mutate their input and are idempotent:
running them on already upgraded records reports ``migrated=False``.
"""
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional
import json
import logging

from app.domain.models import (
    DEFAULT_DIRECTORY_ID,
    DIRECTORY_SCHEMA_VERSION,
    FIELD_SCHEMA_VERSION,
    to_optional_float,
)
from app.utils.geometry import (
    calculate_field_center,
    extract_polygon_geometry,
    validate_polygon_coordinates,
)

logger = logging.getLogger(__name__)

LEGACY_GEOJSON_KEY = "geoJSON"
LEGACY_ANALYSIS_KEY = "analysis"
LEGACY_ADVICE_KEY = "aiAdvice"
EVALUATION_BADGES = ("overall", "ndvi", "ndmi", "ndre")


@dataclass
class MigrationResult:
    """Upgraded records and whether anything changed."""
    migrated: bool
    records: list[dict[str, Any]] = field(default_factory=list)


def _is_valid_polygon(geometry: dict[str, Any]) -> bool:
    try:
        validate_polygon_coordinates(geometry["coordinates"])
    except (KeyError, TypeError, ValueError):
        return False
    return True


def build_default_directory(name: str, crop: str, now: int) -> dict[str, Any]:
    """Raw record of the reserved default directory."""
    return {
        "id": DEFAULT_DIRECTORY_ID,
        "name": name,
        "crop": crop,
        "createdAt": now,
        "updatedAt": now,
        "schemaVersion": DIRECTORY_SCHEMA_VERSION,
    }


def migrate_directories(
    records: list[dict[str, Any]],
    default_name: str,
    default_crop: str,
    now: int,
) -> MigrationResult:
    """
    Ensure the default directory exists and backfill missing crops.

    Args:
        records: Raw directory records
        default_name: Name for a synthesised default directory
        default_crop: Crop for the default directory and legacy directories
        now: Current time in epoch milliseconds

    Returns:
        MigrationResult with the upgraded directory records
    """
    upgraded = deepcopy(records)
    migrated = False

    for record in upgraded:
        if record.get("schemaVersion", 1) >= DIRECTORY_SCHEMA_VERSION:
            continue
        if "crop" not in record:
            record["crop"] = default_crop
        record["schemaVersion"] = DIRECTORY_SCHEMA_VERSION
        migrated = True

    if not any(record.get("id") == DEFAULT_DIRECTORY_ID for record in upgraded):
        logger.info("Default directory missing, creating it")
        upgraded.append(build_default_directory(default_name, default_crop, now))
        migrated = True

    return MigrationResult(migrated=migrated, records=upgraded)


def migrate_fields(
    records: list[dict[str, Any]],
    directories: list[dict[str, Any]],
    default_center: Optional[list[float]] = None,
) -> MigrationResult:
    """
    Upgrade legacy field records.

    - ``crop`` is backfilled from the parent directory (empty if unknown)
    - a legacy ``geoJSON`` Feature becomes a ``geometry`` Polygon
    - a missing ``directoryId`` points at the default directory
    - a missing ``center`` is computed from the polygon, or set to
      ``default_center`` when there is no usable polygon

    Args:
        records: Raw field records
        directories: Raw directory records, used for the crop backfill
        default_center: Fallback [lat, lon] centre

    Returns:
        MigrationResult with the upgraded field records
    """
    crops = {d.get("id"): d.get("crop") or "" for d in directories}
    upgraded = deepcopy(records)
    migrated = False

    for record in upgraded:
        if record.get("schemaVersion", 1) >= FIELD_SCHEMA_VERSION:
            continue

        if not record.get("directoryId"):
            record["directoryId"] = DEFAULT_DIRECTORY_ID
        if "crop" not in record:
            record["crop"] = crops.get(record["directoryId"], "")
        if LEGACY_GEOJSON_KEY in record and not record.get("geometry"):
            geometry = extract_polygon_geometry(record[LEGACY_GEOJSON_KEY])
            if geometry is not None and _is_valid_polygon(geometry):
                record["geometry"] = geometry
                del record[LEGACY_GEOJSON_KEY]
            else:
                logger.warning(f"Field {record.get('id')} has an unusable legacy polygon, left as is")
        if "center" not in record:
            if record.get("geometry") and _is_valid_polygon(record["geometry"]):
                record["center"] = calculate_field_center(record["geometry"]["coordinates"])
            elif default_center is not None:
                record["center"] = list(default_center)

        record["schemaVersion"] = FIELD_SCHEMA_VERSION
        migrated = True

    if migrated:
        logger.info("Upgraded legacy field records")
    return MigrationResult(migrated=migrated, records=upgraded)


def _legacy_location(location: dict[str, Any]) -> Optional[list[float]]:
    latitude = to_optional_float(location.get("latitude"))
    longitude = to_optional_float(location.get("longitude"))
    if latitude is None or longitude is None:
        return None
    return [latitude, longitude]


def _upgrade_result(record: dict[str, Any]) -> bool:
    changed = False

    analysis = record.get(LEGACY_ANALYSIS_KEY)
    if isinstance(analysis, dict):
        for key in ("dateRange", "stats", "tileUrls"):
            if key in analysis and key not in record:
                record[key] = analysis[key]
        del record[LEGACY_ANALYSIS_KEY]
        changed = True

    field_info = record.get("field")
    if isinstance(field_info, dict) and isinstance(field_info.get("location"), dict):
        field_info["location"] = _legacy_location(field_info["location"])
        changed = True

    if LEGACY_ADVICE_KEY in record:
        advice = record.pop(LEGACY_ADVICE_KEY)
        if "advice" not in record:
            if advice is None or isinstance(advice, str):
                record["advice"] = advice
            else:
                record["advice"] = json.dumps(advice, ensure_ascii=False)
        changed = True

    evaluation = record.get("evaluation")
    if isinstance(evaluation, dict):
        for name in EVALUATION_BADGES:
            badge = evaluation.get(name)
            if isinstance(badge, dict) and "class" in badge:
                badge.setdefault("styleClass", badge["class"])
                del badge["class"]
                changed = True

    return changed


def migrate_analysis_results(records: list[dict[str, Any]]) -> MigrationResult:
    """
    Upgrade archived results written by the legacy browser client.

    - ``analysis.{dateRange, stats, tileUrls}`` move to the top level
    - ``field.location`` ``{latitude, longitude}`` becomes ``[lat, lon]``,
      or null when either coordinate is missing
    - ``aiAdvice`` becomes ``advice``; structured advice is kept as JSON text
    - evaluation badges rename ``class`` to ``styleClass``

    Legacy records are recognised by shape, so there is no version marker.
    Japanese status labels are left alone; the models read them directly.

    Args:
        records: Raw analysis result records

    Returns:
        MigrationResult with the upgraded result records
    """
    upgraded = deepcopy(records)
    migrated = False
    for record in upgraded:
        if _upgrade_result(record):
            migrated = True

    if migrated:
        logger.info("Upgraded legacy analysis results")
    return MigrationResult(migrated=migrated, records=upgraded)
