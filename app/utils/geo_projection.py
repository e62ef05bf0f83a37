"""
Geospatial projection utilities for field area measurement.
"""
from typing import Tuple, List, Optional
from pyproj import Transformer
from shapely.geometry import Polygon

SQUARE_METERS_PER_HECTARE = 10_000.0


def get_utm_zone(longitude: float) -> int:
    """
    Calculate the UTM zone number from longitude.

    Args:
        longitude: Longitude in degrees

    Returns:
        UTM zone number (1-60)
    """
    return min(int((longitude + 180) / 6) + 1, 60)


def get_utm_crs(longitude: float, latitude: float) -> str:
    """
    Get the appropriate UTM CRS (Coordinate Reference System) for a location.

    Args:
        longitude: Longitude in degrees
        latitude: Latitude in degrees

    Returns:
        EPSG code for the UTM zone
    """
    zone = get_utm_zone(longitude)
    # Northern hemisphere: EPSG:326XX, Southern hemisphere: EPSG:327XX
    hemisphere = "6" if latitude >= 0 else "7"
    return f"EPSG:32{hemisphere}{zone:02d}"


def project_ring_to_meters(
    ring: List[List[float]],
    crs: Optional[str] = None,
) -> List[Tuple[float, float]]:
    """
    Project a polygon ring from [lon, lat] positions to UTM metres.

    Args:
        ring: List of [longitude, latitude] pairs
        crs: Target CRS; defaults to the UTM zone of the first position

    Returns:
        List of (x, y) coordinates in meters
    """
    if not ring:
        raise ValueError("Coordinates list cannot be empty")

    if crs is None:
        crs = get_utm_crs(ring[0][0], ring[0][1])
    transformer = Transformer.from_crs(
        "EPSG:4326",
        crs,
        always_xy=True  # Ensure (lon, lat) -> (x, y) order
    )
    return [transformer.transform(position[0], position[1]) for position in ring]


def polygon_area_hectares(coordinates: List[List[List[float]]]) -> float:
    """
    Compute the planar area of a GeoJSON polygon in hectares.

    Interior rings are subtracted from the exterior ring.

    Args:
        coordinates: GeoJSON Polygon coordinates ([lon, lat] rings)

    Returns:
        Area in hectares
    """
    if not coordinates:
        raise ValueError("Polygon must contain at least one ring")

    crs = get_utm_crs(coordinates[0][0][0], coordinates[0][0][1])
    exterior = project_ring_to_meters(coordinates[0], crs)
    holes = [project_ring_to_meters(ring, crs) for ring in coordinates[1:]]
    return Polygon(exterior, holes).area / SQUARE_METERS_PER_HECTARE
