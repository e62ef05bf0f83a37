"""
Application service: Orchestration layer for field analysis operations.
"""
from datetime import date, timedelta
from typing import List, Optional
import asyncio
import logging

from app.config import ReferenceSourceConfig
from app.domain.errors import InvalidFormatError, NotFoundError
from app.domain.models import AnalysisResult, ComparisonReport, Field, ReferenceRecord
from app.infrastructure.external_api_client import ExternalAPIClient
from app.services.domain.analysis_ingestion import build_snapshot
from app.services.domain.entity_store import EntityStore
from app.services.domain.reference_comparator import (
    build_fallback_reference,
    compare_with_reference,
)

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_PERIOD_DAYS = 30


class FieldAnalysisService:
    """
    Application service for field analysis operations.

    Coordinates the external analysis service, the entity store and the
    reference comparator. No business rules live here.
    """

    def __init__(
        self,
        api_client: ExternalAPIClient,
        store: EntityStore,
        reference_sources: Optional[List[ReferenceSourceConfig]] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            api_client: External API client for analyses and reference data
            store: Entity store holding fields and analysis results
            reference_sources: Reference NDVI sources (store settings if omitted)
        """
        self.api_client = api_client
        self.store = store
        if reference_sources is None:
            reference_sources = store.settings.reference_sources
        self.reference_sources = reference_sources

    def _require_field(self, field_id: str) -> Field:
        field = self.store.get_field(field_id)
        if field is None:
            raise NotFoundError(f"Field '{field_id}' not found", {"id": field_id})
        return field

    async def analyze_field(
        self,
        field_id: str,
        date_start: date,
        date_end: date,
        advice: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Analyse a field end to end.

        This method orchestrates:
        1. Requesting the index statistics from the analysis service
        2. Building and evaluating the snapshot for the field's crop
        3. Storing the snapshot as the field's latest analysis
        4. Archiving the result with its history entry

        Args:
            field_id: Field to analyse
            date_start: First day of the imagery period
            date_end: Last day of the imagery period
            advice: Optional advisory text stored with the result

        Returns:
            The archived AnalysisResult

        Raises:
            NotFoundError: If the field does not exist
            InvalidFormatError: If the field has no polygon or the dates are reversed
            ExternalAPIError: If the analysis service fails
        """
        if date_end < date_start:
            raise InvalidFormatError("dateEnd must not be before dateStart")

        field = self._require_field(field_id)
        if field.geometry is None:
            raise InvalidFormatError(f"Field '{field_id}' has no polygon", {"id": field_id})

        logger.info(f"Analysing field {field_id} from {date_start} to {date_end}")
        payload = await self.api_client.run_analysis(field.geometry, date_start, date_end)

        snapshot = build_snapshot(payload, self.store.evaluator, field.crop, advice)
        updated = self.store.save_field_analysis(field_id, snapshot)
        return self.store.record_analysis_result(updated.last_analysis, field=updated, advice=advice)

    async def fetch_references(
        self,
        lat: float,
        lon: float,
        start: date,
        end: date,
    ) -> List[ReferenceRecord]:
        """
        Fetch reference NDVI data from every enabled source concurrently.

        Sources that fail are logged and skipped. When none succeeds a single
        synthetic fallback record is returned instead.

        Returns:
            Reference records, never empty
        """
        sources = [s for s in self.reference_sources if s.enabled]
        outcomes = await asyncio.gather(
            *(self.api_client.get_reference_ndvi(s, lat, lon, start, end) for s in sources),
            return_exceptions=True,
        )

        references = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Reference source {source.source} failed: {outcome}")
                continue
            references.append(outcome)

        if not references:
            logger.warning("No reference source available, using fallback reference data")
            references.append(build_fallback_reference(lat, lon, start, end))
        return references

    async def validate_field(
        self,
        field_id: str,
        date_start: Optional[date] = None,
        date_end: Optional[date] = None,
    ) -> ComparisonReport:
        """
        Compare a field's latest NDVI mean with reference data.

        The period defaults to the date range of the latest analysis, or to
        the last 30 days when it has none.

        Raises:
            NotFoundError: If the field does not exist or was never analysed
        """
        field = self._require_field(field_id)
        snapshot = field.last_analysis
        if snapshot is None:
            raise NotFoundError(f"Field '{field_id}' has no analysis", {"id": field_id})

        if snapshot.date_range is not None:
            date_start = date_start or snapshot.date_range.start
            date_end = date_end or snapshot.date_range.end
        date_end = date_end or date.today()
        date_start = date_start or date_end - timedelta(days=DEFAULT_VALIDATION_PERIOD_DAYS)

        lat, lon = field.center
        references = await self.fetch_references(lat, lon, date_start, date_end)
        return compare_with_reference(snapshot.stats.ndvi.mean, references)
