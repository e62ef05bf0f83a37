"""
Domain service: ingestion of analysis service payloads.

The analysis service returns a flat statistics map keyed by
``<INDEX>_<stat>`` (``NDVI_mean``, ``NDMI_stdDev``...). Unknown keys are
ignored and absent keys leave the statistic undefined.
"""
from collections.abc import Mapping
from typing import Any, Optional
import logging

from pydantic import ValidationError

from app.domain.errors import InvalidFormatError
from app.domain.models import (
    INDEX_NAMES,
    STAT_NAMES,
    AnalysisSnapshot,
    DateRange,
    IndexStatsSet,
    TileUrls,
    to_optional_float,
)
from app.services.domain.health_evaluator import HealthEvaluator

logger = logging.getLogger(__name__)


def parse_index_statistics(flat: Mapping[str, Any]) -> IndexStatsSet:
    """
    Build per-index statistics from a flat ``<INDEX>_<stat>`` map.

    Args:
        flat: Statistics map returned by the analysis service

    Returns:
        IndexStatsSet; missing statistics stay None
    """
    values: dict[str, dict[str, Optional[float]]] = {index: {} for index in INDEX_NAMES}
    for key, raw in flat.items():
        if not isinstance(key, str):
            continue
        index, _, stat = key.partition("_")
        index = index.lower()
        if index not in values or stat not in STAT_NAMES:
            continue
        values[index][stat] = to_optional_float(raw)
    return IndexStatsSet.model_validate(values)


def _parse_stats(raw: Any) -> IndexStatsSet:
    if not isinstance(raw, Mapping):
        return IndexStatsSet()
    # Already grouped per index, e.g. an archived snapshot
    if any(isinstance(raw.get(index), Mapping) for index in INDEX_NAMES):
        return IndexStatsSet.model_validate(raw)
    return parse_index_statistics(raw)


def _parse_tile_urls(body: Mapping[str, Any]) -> TileUrls:
    if isinstance(body.get("tileUrls"), Mapping):
        return TileUrls.model_validate(body["tileUrls"])
    map_tiles = body.get("mapTiles") if isinstance(body.get("mapTiles"), Mapping) else {}
    return TileUrls(
        ndvi=body.get("ndviTileUrlTemplate") or map_tiles.get("NDVI"),
        ndmi=body.get("ndmiTileUrlTemplate") or map_tiles.get("NDMI"),
        ndre=body.get("ndreTileUrlTemplate") or map_tiles.get("NDRE"),
    )


def _parse_date_range(body: Mapping[str, Any]) -> Optional[DateRange]:
    if isinstance(body.get("dateRange"), Mapping):
        return DateRange.model_validate(body["dateRange"])
    metadata = body.get("metadata")
    if isinstance(metadata, Mapping) and metadata.get("date"):
        return DateRange(start=metadata["date"], end=metadata["date"])
    return None


def build_snapshot(
    payload: Mapping[str, Any],
    evaluator: HealthEvaluator,
    crop_type: Optional[str] = None,
    advice: Optional[str] = None,
) -> AnalysisSnapshot:
    """
    Convert an analysis service response into an evaluated snapshot.

    Accepts both the flat response (``dateRange``, ``stats``,
    ``<index>TileUrlTemplate``) and the wrapped one (``data`` holding
    ``statistics`` and ``mapTiles``).

    Args:
        payload: Decoded JSON response of the analysis service
        evaluator: Strategy deriving the health evaluation
        crop_type: Crop of the analysed field
        advice: Optional advisory text to attach

    Returns:
        AnalysisSnapshot with its evaluation filled in

    Raises:
        InvalidFormatError: If the payload has malformed dates or URLs
    """
    body = payload.get("data") if isinstance(payload.get("data"), Mapping) else payload
    raw_stats = body.get("stats", body.get("statistics"))

    try:
        stats = _parse_stats(raw_stats)
        snapshot = AnalysisSnapshot(
            date_range=_parse_date_range(body),
            stats=stats,
            tile_urls=_parse_tile_urls(body),
            advice=advice,
            data_source=body.get("dataSource") or payload.get("dataSource"),
        )
    except ValidationError as e:
        raise InvalidFormatError(f"Malformed analysis payload: {e}") from e

    snapshot.evaluation = evaluator.evaluate(stats, crop_type)
    logger.debug(f"Built snapshot with overall status {snapshot.evaluation.overall.status.value}")
    return snapshot
