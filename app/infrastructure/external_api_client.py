"""
Infrastructure layer: External API client with retry logic.

Talks to the vegetation analysis service and to reference NDVI sources.
"""
from datetime import date
from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.config import ReferenceSourceConfig, settings
from app.domain.models import DateRange, PolygonGeometry, ReferenceRecord, ReferenceSample
from app.infrastructure.api_constants import (
    AnalysisAPIEndpoints,
    APIConstants,
    ReferenceQueryParams,
)

logger = logging.getLogger(__name__)


class ExternalAPIError(Exception):
    """Custom exception for external API errors."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ExternalAPIClient:
    """
    Client for the vegetation analysis service and reference sources.
    Implements retry logic with exponential backoff.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        """Initialize the API client with configuration."""
        self.base_url = base_url or settings.external_api_base_url
        self.api_key = api_key if api_key is not None else settings.external_api_key
        headers = {"accept": APIConstants.CONTENT_TYPE_JSON}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=APIConstants.DEFAULT_TIMEOUT,
        )

    async def __aenter__(self) -> "ExternalAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic.

        Server errors (5xx) and transport errors are retried; client errors
        fail immediately.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path or absolute URL
            **kwargs: Additional arguments for the request

        Returns:
            Response data as dictionary

        Raises:
            ExternalAPIError: If the request fails with a client error
            httpx.HTTPStatusError: If server errors persist after retries
            httpx.RequestError: If transport errors persist after retries
        """
        response = await self.client.request(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500:
                raise
            raise ExternalAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise ExternalAPIError(f"API returned invalid JSON from {endpoint}")
        if not isinstance(data, dict):
            raise ExternalAPIError(f"API returned an unexpected payload from {endpoint}")
        return data

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Run a request and turn exhausted retries into ExternalAPIError."""
        try:
            return await self._make_request(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ExternalAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=502,
            )
        except httpx.RequestError as e:
            raise ExternalAPIError(f"API request error: {str(e)}", status_code=503)

    async def run_analysis(
        self,
        geometry: PolygonGeometry,
        start: date,
        end: date,
    ) -> Dict[str, Any]:
        """
        Request an NDVI/NDMI/NDRE analysis for a polygon.

        Args:
            geometry: Polygon to analyse
            start: First day of the imagery period
            end: Last day of the imagery period

        Returns:
            Raw analysis payload (date range, flat statistics, tile URLs)

        Raises:
            ExternalAPIError: If the request fails or the service reports an error
        """
        payload = {
            "aoiGeoJSON": {
                "type": "Feature",
                "properties": {},
                "geometry": geometry.model_dump(mode="json"),
            },
            "dateStart": start.isoformat(),
            "dateEnd": end.isoformat(),
        }
        data = await self._request(
            "POST",
            AnalysisAPIEndpoints.ANALYSIS,
            json=payload,
            timeout=APIConstants.ANALYSIS_TIMEOUT,
        )
        if data.get("success") is False or data.get("error"):
            raise ExternalAPIError(
                f"Analysis service error: {data.get('error') or data.get('message')}"
            )
        return data

    async def get_reference_ndvi(
        self,
        source: ReferenceSourceConfig,
        lat: float,
        lon: float,
        start: date,
        end: date,
    ) -> ReferenceRecord:
        """
        Fetch reference NDVI values for a location from one source.

        Args:
            source: Reference source configuration
            lat: Latitude of the field centre
            lon: Longitude of the field centre
            start: First day of the period
            end: Last day of the period

        Returns:
            ReferenceRecord tagged with the source

        Raises:
            ExternalAPIError: If the request fails or the payload is unusable
        """
        data = await self._request(
            "GET",
            source.url,
            params=ReferenceQueryParams.build(lat, lon, start.isoformat(), end.isoformat()),
        )
        samples = data.get("values", data.get("ndviValues")) or []

        try:
            return ReferenceRecord(
                source=source.source,
                source_full_name=source.name,
                average=data.get("average"),
                reliability=data.get("reliability") or source.reliability,
                crop_type=data.get("cropType") or "unknown",
                location={"lat": lat, "lon": lon},
                date_range=DateRange(start=start, end=end),
                values=[ReferenceSample.model_validate(s) for s in samples],
                note=data.get("note"),
            )
        except ValidationError as e:
            raise ExternalAPIError(f"Invalid reference data from {source.source}: {e}")


# Singleton instance
_api_client: Optional[ExternalAPIClient] = None


def get_api_client() -> ExternalAPIClient:
    """
    Get or create the singleton API client instance.

    Returns:
        ExternalAPIClient instance
    """
    global _api_client
    if _api_client is None:
        _api_client = ExternalAPIClient()
    return _api_client
