"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle with an in-memory store and a
mocked analysis service.
"""
import pytest

from app.config import Settings
from app.domain.models import DEFAULT_DIRECTORY_ID
from app.infrastructure.external_api_client import ExternalAPIError
from app.infrastructure.storage import InMemoryStorage
from app.services.domain.entity_store import EntityStore
from app.services.domain.health_evaluator import DiagnosticEvaluator

API = "/api/v1"


def create_field(test_client, payload):
    response = test_client.post(f"{API}/fields", json=payload)
    assert response.status_code == 201
    return response.json()


def run_analysis(test_client, field_id):
    response = test_client.post(
        f"{API}/fields/{field_id}/analysis",
        json={"dateStart": "2025-05-01", "dateEnd": "2025-05-31"},
    )
    assert response.status_code == 201
    return response.json()


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "AgriLens Field Health"
        assert "version" in data
        assert data["api"] == API
        assert set(data["resources"]) == {"fields", "directories", "analyses", "data"}
        assert test_client.get(data["docs"]).status_code == 200

    def test_health_endpoint(self, test_client):
        """Health endpoint should return healthy status."""
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["counts"] == {"fields": 0, "directories": 1, "analyses": 0}


# ============================================================
# Field Endpoint Tests
# ============================================================

class TestFieldEndpoints:
    """Tests for field CRUD endpoints."""

    def test_create_and_get_field(self, test_client, field_payload):
        created = create_field(test_client, field_payload)

        response = test_client.get(f"{API}/fields/{created['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "North paddy"
        assert data["directoryId"] == DEFAULT_DIRECTORY_ID
        assert data["center"] == pytest.approx([35.6005, 139.7005])
        assert data["createdAt"] == data["updatedAt"]

    def test_create_field_with_open_ring(self, test_client, field_payload):
        field_payload["geometry"]["coordinates"][0].pop()

        response = test_client.post(f"{API}/fields", json=field_payload)

        assert response.status_code == 422

    def test_create_field_in_unknown_directory(self, test_client, field_payload):
        response = test_client.post(f"{API}/fields", json={**field_payload, "directoryId": "directory_x"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_get_unknown_field(self, test_client):
        response = test_client.get(f"{API}/fields/field_missing")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_update_field(self, test_client, field_payload, clock):
        created = create_field(test_client, field_payload)
        clock.advance()

        response = test_client.patch(f"{API}/fields/{created['id']}", json={"name": "South paddy"})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "South paddy"
        assert data["memo"] == field_payload["memo"]
        assert data["updatedAt"] > created["updatedAt"]

    def test_update_field_clears_with_null(self, test_client, field_payload):
        created = create_field(test_client, {**field_payload, "order": 2})

        response = test_client.patch(f"{API}/fields/{created['id']}", json={"order": None, "memo": None})

        assert response.status_code == 200
        data = response.json()
        assert data["order"] is None
        assert data["memo"] == ""
        assert data["name"] == created["name"]

    def test_delete_field(self, test_client, field_payload):
        created = create_field(test_client, field_payload)

        response = test_client.delete(f"{API}/fields/{created['id']}")

        assert response.status_code == 200
        assert response.json() == {"id": created["id"], "deleted": True}
        assert test_client.get(f"{API}/fields/{created['id']}").status_code == 404

    def test_search_and_filter(self, test_client, field_payload):
        create_field(test_client, field_payload)
        create_field(test_client, {**field_payload, "name": "Orchard", "memo": ""})

        response = test_client.get(f"{API}/fields", params={"q": "PADDY"})

        assert [f["name"] for f in response.json()] == ["North paddy"]

    def test_sort_by_name(self, test_client, field_payload):
        for name in ["banana", "Apple", "cherry"]:
            create_field(test_client, {**field_payload, "name": name})

        response = test_client.get(f"{API}/fields", params={"sortBy": "name", "ascending": True})

        assert [f["name"] for f in response.json()] == ["Apple", "banana", "cherry"]

    def test_unknown_sort_key(self, test_client):
        response = test_client.get(f"{API}/fields", params={"sortBy": "colour"})

        assert response.status_code == 400


# ============================================================
# Directory Endpoint Tests
# ============================================================

class TestDirectoryEndpoints:
    """Tests for directory endpoints."""

    def test_default_directory_exists(self, test_client):
        response = test_client.get(f"{API}/directories")

        assert response.status_code == 200
        assert [d["id"] for d in response.json()] == [DEFAULT_DIRECTORY_ID]

    def test_default_directory_cannot_be_deleted(self, test_client):
        response = test_client.delete(f"{API}/directories/{DEFAULT_DIRECTORY_ID}")

        assert response.status_code == 409
        assert response.json()["error"] == "protected"

    def test_move_and_delete_directory(self, test_client, field_payload):
        directory = test_client.post(f"{API}/directories", json={"name": "Greenhouse"}).json()
        field = create_field(test_client, field_payload)

        moved = test_client.post(f"{API}/fields/{field['id']}/move", json={"directoryId": directory["id"]})
        listed = test_client.get(f"{API}/directories/{directory['id']}/fields")
        deleted = test_client.delete(f"{API}/directories/{directory['id']}")

        assert moved.json()["directoryId"] == directory["id"]
        assert [f["id"] for f in listed.json()] == [field["id"]]
        assert deleted.json()["deleted"] is True
        refreshed = test_client.get(f"{API}/fields/{field['id']}").json()
        assert refreshed["directoryId"] == DEFAULT_DIRECTORY_ID


# ============================================================
# Analysis Endpoint Tests
# ============================================================

class TestAnalysisEndpoints:
    """Tests for analysis, archive and validation endpoints."""

    def test_run_analysis(self, test_client, field_payload, mock_api_client):
        field = create_field(test_client, field_payload)

        result = run_analysis(test_client, field["id"])

        assert result["id"].startswith(f"analysis_{field['id']}_")
        assert result["field"]["name"] == "North paddy"
        assert result["stats"]["ndvi"]["mean"] == 0.72
        mock_api_client.run_analysis.assert_awaited_once()
        refreshed = test_client.get(f"{API}/fields/{field['id']}").json()
        assert refreshed["lastAnalysis"]["stats"]["ndvi"]["mean"] == 0.72

        archived = test_client.get(f"{API}/analyses/{result['id']}")
        history = test_client.get(f"{API}/analyses/history")
        statistics = test_client.get(f"{API}/analyses/statistics")
        assert archived.json()["id"] == result["id"]
        assert [h["id"] for h in history.json()] == [result["id"]]
        assert statistics.json()["total"] == 1

    def test_run_analysis_with_diagnostic_evaluator(self, test_client, field_payload, clock):
        from app.main import app
        from app.api.dependencies import get_entity_store

        settings = Settings(storage_backend="memory", health_evaluator="diagnostic")
        store = EntityStore(InMemoryStorage(), settings, clock=clock)
        app.dependency_overrides[get_entity_store] = lambda: store
        field = create_field(test_client, field_payload)

        result = run_analysis(test_client, field["id"])

        assert result["evaluation"]["diagnosis"]["status"] == result["evaluation"]["overall"]["status"]
        assert isinstance(result["evaluation"]["diagnosis"]["actions"], list)

    def test_analysis_service_failure(self, test_client, field_payload, mock_api_client):
        field = create_field(test_client, field_payload)
        mock_api_client.run_analysis.side_effect = ExternalAPIError("Analysis service error: quota")

        response = test_client.post(
            f"{API}/fields/{field['id']}/analysis",
            json={"dateStart": "2025-05-01", "dateEnd": "2025-05-31"},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "external_api_error"

    def test_analysis_reversed_dates(self, test_client, field_payload):
        field = create_field(test_client, field_payload)

        response = test_client.post(
            f"{API}/fields/{field['id']}/analysis",
            json={"dateStart": "2025-05-31", "dateEnd": "2025-05-01"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_format"

    def test_validation_falls_back_when_sources_fail(self, test_client, field_payload, mock_api_client):
        field = create_field(test_client, field_payload)
        run_analysis(test_client, field["id"])
        mock_api_client.get_reference_ndvi.side_effect = ExternalAPIError("offline", status_code=503)

        response = test_client.post(f"{API}/fields/{field['id']}/validation")

        assert response.status_code == 200
        report = response.json()
        assert report["summary"]["referencesCount"] == 1
        assert report["comparisonResults"][0]["isFallback"] is True

    def test_validation_without_analysis(self, test_client, field_payload):
        field = create_field(test_client, field_payload)

        response = test_client.post(f"{API}/fields/{field['id']}/validation")

        assert response.status_code == 404

    def test_delete_analysis(self, test_client, field_payload):
        field = create_field(test_client, field_payload)
        result = run_analysis(test_client, field["id"])

        deleted = test_client.delete(f"{API}/analyses/{result['id']}")
        missing = test_client.delete(f"{API}/analyses/{result['id']}")

        assert deleted.json() == {"id": result["id"], "deleted": True}
        assert missing.status_code == 404


# ============================================================
# Data Endpoint Tests
# ============================================================

class TestDataEndpoints:
    """Tests for export, import and reset."""

    def test_export_then_import(self, test_client, field_payload):
        field = create_field(test_client, field_payload)
        document = test_client.get(f"{API}/data/export").json()
        test_client.delete(f"{API}/fields/{field['id']}")

        response = test_client.post(f"{API}/data/import", json=document)

        assert response.status_code == 200
        assert response.json()["added"] == 1
        assert response.json()["total"] == 1
        assert test_client.get(f"{API}/fields/{field['id']}").json() == field

    def test_import_malformed_document(self, test_client):
        response = test_client.post(f"{API}/data/import", json={"fields": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_format"

    def test_export_unknown_analysis(self, test_client):
        response = test_client.get(f"{API}/data/export", params={"scope": "analysis_missing"})

        assert response.status_code == 404

    def test_reset_seeds_sample_field(self, test_client, field_payload):
        create_field(test_client, field_payload)

        response = test_client.post(f"{API}/data/reset")

        data = response.json()
        assert data["counts"] == {"fields": 1, "directories": 1, "analyses": 0}
        assert data["sampleField"]["directoryId"] == DEFAULT_DIRECTORY_ID

    def test_reset_without_sample(self, test_client, field_payload):
        create_field(test_client, field_payload)

        response = test_client.post(f"{API}/data/reset", json={"seedSample": False})

        assert response.json() == {"sampleField": None, "counts": {"fields": 0, "directories": 1, "analyses": 0}}


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should be available."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()
        assert "openapi" in data
        assert "/api/v1/fields/{field_id}/analysis" in data["paths"]
        assert "/api/v1/data/import" in data["paths"]

    def test_docs_endpoint_available(self, test_client):
        """Swagger docs should be available."""
        response = test_client.get("/docs")

        assert response.status_code == 200
        assert "swagger" in response.text.lower() or "html" in response.headers.get("content-type", "")


# ============================================================
# CORS Tests
# ============================================================

class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_headers_present(self, test_client):
        """CORS preflight should be answered."""
        response = test_client.options(
            f"{API}/fields",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "GET",
            }
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Tests for rate limiting functionality."""

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented in OpenAPI."""
        data = test_client.get("/openapi.json").json()

        analysis_path = data["paths"]["/api/v1/fields/{field_id}/analysis"]
        assert "429" in analysis_path["post"]["responses"]


# ============================================================
# Dependency Tests
# ============================================================

class TestDependencies:
    """Tests for dependency factories."""

    def test_entity_store_uses_configured_evaluator(self, monkeypatch):
        from app.api import dependencies

        monkeypatch.setattr(dependencies.settings, "health_evaluator", "diagnostic")
        monkeypatch.setattr(dependencies, "_entity_store", None)

        store = dependencies.get_entity_store(InMemoryStorage())

        assert isinstance(store.evaluator, DiagnosticEvaluator)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
