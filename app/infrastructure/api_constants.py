"""
External API endpoint constants and configuration.

Endpoint paths of the vegetation analysis service and the query parameter
names used by reference NDVI sources.
"""


class AnalysisAPIEndpoints:
    """Vegetation analysis service endpoint paths."""

    API_BASE = "/api"

    ANALYSIS = f"{API_BASE}/analysis"
    HEALTH = f"{API_BASE}/health"


class ReferenceQueryParams:
    """Query parameters sent to reference NDVI sources."""

    LATITUDE = "lat"
    LONGITUDE = "lon"
    START_DATE = "startDate"
    END_DATE = "endDate"

    @classmethod
    def build(cls, lat: float, lon: float, start: str, end: str) -> dict[str, str]:
        """
        Build the query string for a reference request.

        Args:
            lat: Latitude of the field centre
            lon: Longitude of the field centre
            start: First day of the period (YYYY-MM-DD)
            end: Last day of the period (YYYY-MM-DD)

        Returns:
            Query parameter mapping
        """
        return {
            cls.LATITUDE: f"{lat:.6f}",
            cls.LONGITUDE: f"{lon:.6f}",
            cls.START_DATE: start,
            cls.END_DATE: end,
        }


class APIConstants:
    """General API configuration constants."""

    CONTENT_TYPE_JSON = "application/json"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0
    # Earth Engine computations over large polygons can be slow
    ANALYSIS_TIMEOUT = 120.0
