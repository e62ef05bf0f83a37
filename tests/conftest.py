"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- In-memory storage and a controllable clock
- Entity store with small capacity limits
- Sample polygons, analysis service payloads and legacy archive records
- Mock API client
- FastAPI test client
"""
import os

# Settings are read at import time; keep tests away from the file backend
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
from typing import Iterator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from app.config import Settings
from app.infrastructure.external_api_client import ExternalAPIClient
from app.infrastructure.storage import InMemoryStorage
from app.services.domain.entity_store import EntityStore


class FakeClock:
    """Clock returning a fixed epoch-millisecond time until advanced."""

    def __init__(self, start: int = 1_717_200_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


# ============================================================
# Store Fixtures
# ============================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with small limits so capacity rules are easy to hit."""
    return Settings(
        storage_backend="memory",
        max_fields=3,
        max_directories=2,
        max_stored_results=5,
    )


@pytest.fixture
def store(storage, test_settings, clock) -> EntityStore:
    return EntityStore(storage, test_settings, clock=clock)


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_polygon() -> dict:
    """Roughly one hectare square near Tokyo, [lon, lat] positions."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [139.700, 35.600],
            [139.701, 35.600],
            [139.701, 35.601],
            [139.700, 35.601],
            [139.700, 35.600],
        ]],
    }


@pytest.fixture
def field_payload(sample_polygon) -> dict:
    return {
        "name": "North paddy",
        "memo": "Drains slowly after rain",
        "crop": "rice",
        "geometry": sample_polygon,
    }


@pytest.fixture
def analysis_payload() -> dict:
    """Response of the analysis service for a healthy rice field."""
    return {
        "success": True,
        "dateRange": {"start": "2025-05-01", "end": "2025-05-31"},
        "stats": {
            "NDVI_mean": 0.72,
            "NDVI_min": 0.41,
            "NDVI_max": 0.88,
            "NDVI_stdDev": 0.07,
            "NDMI_mean": 0.42,
            "NDRE_mean": 0.27,
            "cloudCoverage": 12,
        },
        "ndviTileUrlTemplate": "https://tiles.example.com/ndvi/{z}/{x}/{y}",
        "ndmiTileUrlTemplate": "https://tiles.example.com/ndmi/{z}/{x}/{y}",
        "ndreTileUrlTemplate": "https://tiles.example.com/ndre/{z}/{x}/{y}",
        "dataSource": "Sentinel-2",
    }


@pytest.fixture
def legacy_result() -> dict:
    """Archived result as written by the legacy browser client."""
    return {
        "id": "analysis_field_1_2024-05-01_k3x9q",
        "timestamp": 1_714_521_600_000,
        "date": "2024-05-01T00:00:00.000Z",
        "dateFormatted": "2024/5/1 9:00:00",
        "field": {
            "id": "field_1",
            "name": "North paddy",
            "location": {"latitude": 35.5, "longitude": 139.25},
            "crop": "rice",
            "region": "Kanto",
            "area": "1.00",
        },
        "analysis": {
            "dateRange": {"start": "2024-04-01", "end": "2024-04-30"},
            "stats": {
                "ndvi": {"mean": 0.65, "min": 0.2, "max": 0.8, "stdDev": 0.1},
                "ndmi": {"mean": "-", "min": "-", "max": "-", "stdDev": "-"},
                "ndre": {"mean": 0.3, "min": 0.1, "max": 0.4, "stdDev": 0.05},
            },
            "tileUrls": {"ndvi": "https://tiles.example.com/ndvi/{z}/{x}/{y}", "ndmi": None, "ndre": None},
        },
        "evaluation": {
            "overall": {"status": "良好", "class": "bg-green-100 text-green-800"},
            "ndvi": {"status": "良好", "class": "bg-green-100 text-green-800"},
            "ndmi": {"status": "不明", "class": "bg-gray-100 text-gray-800"},
            "ndre": {"status": "普通", "class": "bg-yellow-100 text-yellow-800"},
        },
        "aiAdvice": "Keep the water level steady",
        "metadata": {"version": "1.0", "source": "agrilens_poc"},
    }


@pytest.fixture
def legacy_history_entry(legacy_result) -> dict:
    return {
        "id": legacy_result["id"],
        "timestamp": legacy_result["timestamp"],
        "date": legacy_result["dateFormatted"],
        "fieldName": "North paddy",
        "healthStatus": "良好",
        "ndviAverage": 0.65,
    }


# ============================================================
# Mock API Client Fixtures
# ============================================================

@pytest.fixture
def mock_api_client(analysis_payload):
    """Create a mock external API client."""
    mock_client = AsyncMock(spec=ExternalAPIClient)
    mock_client.run_analysis.return_value = analysis_payload
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def api_store(clock) -> EntityStore:
    """Store with default limits, backing the test client."""
    return EntityStore(InMemoryStorage(), Settings(storage_backend="memory"), clock=clock)


@pytest.fixture
def test_client(api_store, mock_api_client) -> Iterator[TestClient]:
    """Create a synchronous test client with in-memory dependencies."""
    from app.main import app
    from app.api.dependencies import get_entity_store, limiter
    from app.infrastructure.external_api_client import get_api_client

    app.dependency_overrides[get_entity_store] = lambda: api_store
    app.dependency_overrides[get_api_client] = lambda: mock_api_client
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
