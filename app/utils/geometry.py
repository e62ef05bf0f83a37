"""
Polygon helpers for field geometries.

Provides utilities for:
- GeoJSON polygon ring validation
- Centroid calculation
- Extraction of polygons from legacy GeoJSON features
"""
from collections.abc import Mapping
from typing import Any, Optional
import logging

import numpy as np
from shapely.geometry import Polygon

logger = logging.getLogger(__name__)

MIN_RING_POSITIONS = 4


def validate_ring(ring: list[list[float]]) -> None:
    """
    Check that a linear ring is closed and has enough positions.

    Args:
        ring: List of [longitude, latitude] pairs

    Raises:
        ValueError: If the ring is too short, open, or has malformed positions
    """
    if len(ring) < MIN_RING_POSITIONS:
        raise ValueError(
            f"Polygon ring needs at least {MIN_RING_POSITIONS} positions, got {len(ring)}"
        )
    for position in ring:
        if len(position) < 2:
            raise ValueError("Each position must be a [longitude, latitude] pair")
    if list(ring[0][:2]) != list(ring[-1][:2]):
        raise ValueError("Polygon ring must be closed (first and last positions equal)")


def validate_polygon_coordinates(coordinates: list[list[list[float]]]) -> None:
    """
    Validate every ring of GeoJSON Polygon coordinates.

    Raises:
        ValueError: If there is no ring or any ring is invalid
    """
    if not coordinates:
        raise ValueError("Polygon must contain at least one ring")
    for ring in coordinates:
        validate_ring(ring)


def to_shapely_polygon(coordinates: list[list[list[float]]]) -> Polygon:
    """Build a shapely polygon from GeoJSON Polygon coordinates."""
    exterior = [(position[0], position[1]) for position in coordinates[0]]
    holes = [
        [(position[0], position[1]) for position in ring]
        for ring in coordinates[1:]
    ]
    return Polygon(exterior, holes)


def calculate_field_center(coordinates: list[list[list[float]]]) -> list[float]:
    """
    Calculate the [latitude, longitude] centre of a polygon.

    Uses the polygon centroid; degenerate polygons with zero area fall back
    to the mean of the exterior ring positions.

    Args:
        coordinates: GeoJSON Polygon coordinates

    Returns:
        [latitude, longitude]
    """
    polygon = to_shapely_polygon(coordinates)
    if polygon.area > 0:
        centroid = polygon.centroid
        return [centroid.y, centroid.x]

    logger.debug("Zero-area polygon, using vertex mean as centre")
    positions = np.asarray([position[:2] for position in coordinates[0]], dtype=float)
    lon, lat = positions.mean(axis=0)
    return [float(lat), float(lon)]


def extract_polygon_geometry(geojson: Any) -> Optional[dict[str, Any]]:
    """
    Extract a Polygon geometry from a GeoJSON Feature or geometry object.

    Args:
        geojson: GeoJSON Feature, Polygon geometry, or anything else

    Returns:
        ``{"type": "Polygon", "coordinates": ...}`` or None if not a polygon
    """
    if not isinstance(geojson, Mapping):
        return None
    if geojson.get("type") == "Feature":
        geojson = geojson.get("geometry")
        if not isinstance(geojson, Mapping):
            return None
    if geojson.get("type") != "Polygon" or not geojson.get("coordinates"):
        return None
    return {"type": "Polygon", "coordinates": geojson["coordinates"]}
