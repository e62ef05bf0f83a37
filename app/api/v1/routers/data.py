"""
API router for export, import and reset of stored data.
"""
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Query

from app.api.dependencies import EntityStoreDep, SnapshotGatewayDep
from app.api.v1.models.requests import ResetRequest
from app.api.v1.models.responses import ResetResponse
from app.domain.models import ImportSummary, StoreCounts


router = APIRouter(
    prefix="/data",
    tags=["data"],
)


@router.get(
    "/export",
    summary="Export the store or one analysis result",
    responses={404: {"description": "Analysis result not found"}},
)
async def export_snapshot(
    gateway: SnapshotGatewayDep,
    scope: Annotated[str, Query(description="'all' or an analysis result id")] = "all",
) -> Dict[str, Any]:
    return gateway.export_snapshot(scope)


@router.get(
    "/export/fields",
    summary="Export fields and directories",
)
async def export_fields(gateway: SnapshotGatewayDep) -> Dict[str, Any]:
    return gateway.export_fields()


@router.get(
    "/export/analyses",
    summary="Export analysis results and history",
)
async def export_analysis_results(gateway: SnapshotGatewayDep) -> Dict[str, Any]:
    return gateway.export_analysis_results()


@router.post(
    "/import",
    response_model=ImportSummary,
    summary="Merge an exported document into the store",
    description="""
    Existing records win on id collisions and the default directory is never
    imported. The whole document is rejected when it is malformed or would
    exceed the configured limits; nothing is written in that case.
    """,
    responses={
        400: {"description": "Malformed document"},
        409: {"description": "Import would exceed a configured limit"},
    }
)
async def import_snapshot(
    gateway: SnapshotGatewayDep,
    document: Annotated[Dict[str, Any], Body()],
) -> ImportSummary:
    return gateway.import_snapshot(document)


@router.post(
    "/reset",
    response_model=ResetResponse,
    summary="Clear all data",
)
async def reset_data(
    store: EntityStoreDep,
    payload: Optional[ResetRequest] = None,
) -> ResetResponse:
    payload = payload or ResetRequest()
    sample = store.reset(seed_sample=payload.seed_sample)
    return ResetResponse(sample_field=sample, counts=store.counts())


@router.get(
    "/counts",
    response_model=StoreCounts,
    summary="Number of stored records per collection",
)
async def get_counts(store: EntityStoreDep) -> StoreCounts:
    return store.counts()


@router.delete(
    "/fields",
    response_model=StoreCounts,
    summary="Delete every field",
)
async def clear_fields(store: EntityStoreDep) -> StoreCounts:
    store.clear_fields()
    return store.counts()


@router.delete(
    "/directories",
    response_model=StoreCounts,
    summary="Delete every directory, moving fields to the default one",
)
async def clear_directories(store: EntityStoreDep) -> StoreCounts:
    store.clear_directories()
    return store.counts()
