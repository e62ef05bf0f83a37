"""
API router for field endpoints.
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Path, Query, Request, status

from app.api.dependencies import EntityStoreDep, FieldAnalysisServiceDep, limiter
from app.api.v1.models.requests import AnalysisRequest, MoveFieldRequest, ValidationRequest
from app.api.v1.models.responses import DeleteResponse
from app.config import settings
from app.domain.errors import NotFoundError
from app.domain.models import (
    AnalysisResult,
    AnalysisSnapshot,
    ComparisonReport,
    Field,
    FieldCreate,
    FieldUpdate,
)
from app.services.domain.entity_store import sort_fields


router = APIRouter(
    prefix="/fields",
    tags=["fields"],
)

FieldId = Annotated[str, Path(description="Unique identifier for the field")]


@router.get(
    "",
    response_model=List[Field],
    summary="List fields",
)
async def list_fields(
    store: EntityStoreDep,
    q: Annotated[Optional[str], Query(description="Case-insensitive match on name or memo")] = None,
    directory_id: Annotated[Optional[str], Query(alias="directoryId")] = None,
    sort_by: Annotated[str, Query(alias="sortBy", description="name, createdAt, updatedAt or order")] = "updatedAt",
    ascending: bool = False,
) -> List[Field]:
    """
    List fields, optionally filtered and sorted.

    Args:
        store: Entity store (injected dependency)
        q: Search term matched against name and memo
        directory_id: Only fields of this directory
        sort_by: Sort key
        ascending: Sort direction

    Returns:
        Matching fields
    """
    fields = store.search_fields(q)
    if directory_id is not None:
        fields = [f for f in fields if f.directory_id == directory_id]
    return sort_fields(fields, by=sort_by, ascending=ascending)


@router.post(
    "",
    response_model=Field,
    status_code=status.HTTP_201_CREATED,
    summary="Create a field",
    responses={
        400: {"description": "Malformed polygon or attributes"},
        404: {"description": "Directory not found"},
        409: {"description": "Field limit reached"},
    }
)
async def create_field(payload: FieldCreate, store: EntityStoreDep) -> Field:
    return store.add_field(payload)


@router.get(
    "/{field_id}",
    response_model=Field,
    summary="Get a field",
    responses={404: {"description": "Field not found"}},
)
async def get_field(field_id: FieldId, store: EntityStoreDep) -> Field:
    field = store.get_field(field_id)
    if field is None:
        raise NotFoundError(f"Field '{field_id}' not found", {"id": field_id})
    return field


@router.patch(
    "/{field_id}",
    response_model=Field,
    summary="Update a field",
    responses={404: {"description": "Field or directory not found"}},
)
async def update_field(field_id: FieldId, payload: FieldUpdate, store: EntityStoreDep) -> Field:
    return store.update_field(field_id, payload)


@router.delete(
    "/{field_id}",
    response_model=DeleteResponse,
    summary="Delete a field",
    responses={404: {"description": "Field not found"}},
)
async def delete_field(field_id: FieldId, store: EntityStoreDep) -> DeleteResponse:
    return DeleteResponse(id=field_id, deleted=store.delete_field(field_id))


@router.post(
    "/{field_id}/move",
    response_model=Field,
    summary="Move a field to another directory",
    responses={404: {"description": "Field or directory not found"}},
)
async def move_field(field_id: FieldId, payload: MoveFieldRequest, store: EntityStoreDep) -> Field:
    return store.move_field_to_directory(field_id, payload.directory_id)


@router.put(
    "/{field_id}/last-analysis",
    response_model=Field,
    summary="Store an analysis snapshot on a field",
    responses={404: {"description": "Field not found"}},
)
async def save_field_analysis(
    field_id: FieldId,
    snapshot: AnalysisSnapshot,
    store: EntityStoreDep,
) -> Field:
    return store.save_field_analysis(field_id, snapshot)


@router.post(
    "/{field_id}/analysis",
    response_model=AnalysisResult,
    status_code=status.HTTP_201_CREATED,
    summary="Run a vegetation health analysis",
    description="""
    Analyse a field with the external vegetation analysis service.

    This endpoint:
    1. Requests NDVI, NDMI and NDRE statistics for the field polygon
    2. Classifies each index against the thresholds of the field's crop
    3. Stores the snapshot as the field's latest analysis
    4. Archives the result and appends it to the analysis history
    """,
    responses={
        400: {"description": "Field has no polygon or the dates are invalid"},
        404: {"description": "Field not found"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "Analysis service failure"},
    }
)
@limiter.limit(settings.analysis_rate_limit)
async def analyze_field(
    request: Request,
    field_id: FieldId,
    payload: AnalysisRequest,
    service: FieldAnalysisServiceDep,
) -> AnalysisResult:
    """
    Run an analysis for a field.

    Args:
        request: Incoming request (used by the rate limiter)
        field_id: Field to analyse
        payload: Analysis period and optional advice
        service: Field analysis service (injected dependency)

    Returns:
        The archived analysis result
    """
    return await service.analyze_field(
        field_id, payload.date_start, payload.date_end, advice=payload.advice
    )


@router.post(
    "/{field_id}/validation",
    response_model=ComparisonReport,
    summary="Compare the latest NDVI with reference data",
    responses={404: {"description": "Field not found or never analysed"}},
)
async def validate_field(
    field_id: FieldId,
    service: FieldAnalysisServiceDep,
    payload: Optional[ValidationRequest] = None,
) -> ComparisonReport:
    payload = payload or ValidationRequest()
    return await service.validate_field(field_id, payload.date_start, payload.date_end)
