"""
Unit tests for the field analysis application service.
"""
from datetime import date

import pytest

from app.config import ReferenceSourceConfig
from app.domain.errors import InvalidFormatError, NotFoundError
from app.domain.models import ComparisonStatus, ReferenceRecord
from app.infrastructure.external_api_client import ExternalAPIError
from app.services.application.field_analysis_service import FieldAnalysisService
from app.services.domain.reference_comparator import FALLBACK_SOURCE

SOURCES = [
    ReferenceSourceConfig(source="NARO", name="NARO agricultural data",
                          url="https://naro.test/ndvi", reliability="high"),
    ReferenceSourceConfig(source="COPERNICUS", name="Copernicus Global Land Service",
                          url="https://copernicus.test/ndvi", reliability="medium"),
    ReferenceSourceConfig(source="OFFLINE", name="Disabled source",
                          url="https://offline.test/ndvi", enabled=False),
]


def reference_for(source, average=0.7):
    return ReferenceRecord(
        source=source.source,
        source_full_name=source.name,
        average=average,
        reliability=source.reliability,
        crop_type="rice",
    )


@pytest.fixture
def service(mock_api_client, store):
    return FieldAnalysisService(mock_api_client, store, reference_sources=SOURCES)


@pytest.fixture
def field(store, field_payload):
    return store.add_field(field_payload)


# ============================================================
# Analysis Tests
# ============================================================

class TestAnalyzeField:
    """Tests for the end-to-end analysis flow."""

    async def test_stores_and_archives_analysis(self, service, store, field, mock_api_client):
        result = await service.analyze_field(field.id, date(2025, 5, 1), date(2025, 5, 31), advice="Check drains")

        mock_api_client.run_analysis.assert_awaited_once_with(field.geometry, date(2025, 5, 1), date(2025, 5, 31))
        stored = store.get_field(field.id)
        assert stored.last_analysis is not None
        assert stored.last_analysis.stats.ndvi.mean == 0.72
        assert stored.last_analysis.analyzed_at == store.clock()
        assert result.field.id == field.id
        assert result.field.name == "North paddy"
        assert result.advice == "Check drains"
        assert store.list_analysis_results() == [result]
        assert store.list_analysis_history()[0].id == result.id

    async def test_unknown_field(self, service):
        with pytest.raises(NotFoundError):
            await service.analyze_field("field_missing", date(2025, 5, 1), date(2025, 5, 31))

    async def test_reversed_dates(self, service, field, mock_api_client):
        with pytest.raises(InvalidFormatError):
            await service.analyze_field(field.id, date(2025, 5, 31), date(2025, 5, 1))

        mock_api_client.run_analysis.assert_not_awaited()

    async def test_external_failure_leaves_store_untouched(self, service, store, field, mock_api_client):
        mock_api_client.run_analysis.side_effect = ExternalAPIError("Analysis service error: quota")

        with pytest.raises(ExternalAPIError):
            await service.analyze_field(field.id, date(2025, 5, 1), date(2025, 5, 31))

        assert store.get_field(field.id).last_analysis is None
        assert store.list_analysis_results() == []


# ============================================================
# Reference Tests
# ============================================================

class TestFetchReferences:
    """Tests for concurrent reference fetching."""

    async def test_queries_enabled_sources_only(self, service, mock_api_client):
        mock_api_client.get_reference_ndvi.side_effect = lambda source, *args: reference_for(source)

        references = await service.fetch_references(35.6, 139.7, date(2025, 5, 1), date(2025, 5, 31))

        assert [r.source for r in references] == ["NARO", "COPERNICUS"]
        assert mock_api_client.get_reference_ndvi.await_count == 2

    async def test_failed_source_is_skipped(self, service, mock_api_client):
        def fetch(source, *args):
            if source.source == "NARO":
                raise ExternalAPIError("NARO down", status_code=503)
            return reference_for(source)

        mock_api_client.get_reference_ndvi.side_effect = fetch

        references = await service.fetch_references(35.6, 139.7, date(2025, 5, 1), date(2025, 5, 31))

        assert [r.source for r in references] == ["COPERNICUS"]

    async def test_fallback_when_every_source_fails(self, service, mock_api_client):
        mock_api_client.get_reference_ndvi.side_effect = ExternalAPIError("offline")

        references = await service.fetch_references(35.6, 139.7, date(2025, 5, 1), date(2025, 5, 31))

        assert len(references) == 1
        assert references[0].source == FALLBACK_SOURCE
        assert references[0].is_fallback is True


# ============================================================
# Validation Tests
# ============================================================

class TestValidateField:
    """Tests for comparing a field with reference data."""

    async def test_compares_latest_mean(self, service, field, mock_api_client):
        await service.analyze_field(field.id, date(2025, 5, 1), date(2025, 5, 31))
        mock_api_client.get_reference_ndvi.side_effect = lambda source, *args: reference_for(source, 0.72)

        report = await service.validate_field(field.id)

        assert report.summary.references_count == 2
        assert report.summary.match_percentage == 100
        assert report.summary.overall_status == ComparisonStatus.EXCELLENT
        source, lat, lon, start, end = mock_api_client.get_reference_ndvi.await_args.args
        assert (start, end) == (date(2025, 5, 1), date(2025, 5, 31))
        assert [lat, lon] == field.center

    async def test_explicit_period_wins(self, service, field, mock_api_client):
        await service.analyze_field(field.id, date(2025, 5, 1), date(2025, 5, 31))
        mock_api_client.get_reference_ndvi.side_effect = lambda source, *args: reference_for(source)

        await service.validate_field(field.id, date(2025, 4, 1), date(2025, 4, 30))

        _, _, _, start, end = mock_api_client.get_reference_ndvi.await_args.args
        assert (start, end) == (date(2025, 4, 1), date(2025, 4, 30))

    async def test_requires_previous_analysis(self, service, field):
        with pytest.raises(NotFoundError):
            await service.validate_field(field.id)

    async def test_unknown_field(self, service):
        with pytest.raises(NotFoundError):
            await service.validate_field("field_missing")
