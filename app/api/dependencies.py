"""
Dependency injection for FastAPI.
"""
from typing import Annotated, Optional

from fastapi import Depends
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.infrastructure.external_api_client import (
    ExternalAPIClient,
    get_api_client,
)
from app.infrastructure.storage import PersistenceAdapter, create_storage
from app.services.application.field_analysis_service import FieldAnalysisService
from app.services.domain.entity_store import EntityStore
from app.services.domain.snapshot_gateway import SnapshotGateway

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

# Singleton instances
_storage: Optional[PersistenceAdapter] = None
_entity_store: Optional[EntityStore] = None


def get_storage() -> PersistenceAdapter:
    """
    Get or create the persistence adapter selected in settings.

    Returns:
        PersistenceAdapter instance
    """
    global _storage
    if _storage is None:
        _storage = create_storage(settings)
    return _storage


def get_entity_store(
    storage: Annotated[PersistenceAdapter, Depends(get_storage)],
) -> EntityStore:
    """
    Dependency factory for EntityStore.

    Args:
        storage: Persistence adapter (injected)

    Returns:
        EntityStore instance
    """
    global _entity_store
    if _entity_store is None or _entity_store.storage is not storage:
        _entity_store = EntityStore(storage, settings)
    return _entity_store


def get_snapshot_gateway(
    store: Annotated[EntityStore, Depends(get_entity_store)],
) -> SnapshotGateway:
    return SnapshotGateway(store)


def get_field_analysis_service(
    api_client: Annotated[ExternalAPIClient, Depends(get_api_client)],
    store: Annotated[EntityStore, Depends(get_entity_store)],
) -> FieldAnalysisService:
    """
    Dependency factory for FieldAnalysisService.

    Args:
        api_client: External API client (injected)
        store: Entity store (injected)

    Returns:
        FieldAnalysisService instance
    """
    return FieldAnalysisService(api_client=api_client, store=store)


# Type aliases for cleaner route signatures
EntityStoreDep = Annotated[EntityStore, Depends(get_entity_store)]
SnapshotGatewayDep = Annotated[SnapshotGateway, Depends(get_snapshot_gateway)]
FieldAnalysisServiceDep = Annotated[FieldAnalysisService, Depends(get_field_analysis_service)]
