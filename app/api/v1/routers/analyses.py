"""
API router for the analysis archive.
"""
from typing import Annotated, List

from fastapi import APIRouter, Path

from app.api.dependencies import EntityStoreDep
from app.api.v1.models.responses import DeleteResponse
from app.domain.errors import NotFoundError
from app.domain.models import AnalysisHistoryEntry, AnalysisResult, AnalysisStatistics


router = APIRouter(
    prefix="/analyses",
    tags=["analyses"],
)

AnalysisId = Annotated[str, Path(description="Unique identifier for the analysis result")]


@router.get(
    "",
    response_model=List[AnalysisResult],
    summary="List archived analysis results, newest first",
)
async def list_analysis_results(store: EntityStoreDep) -> List[AnalysisResult]:
    return store.list_analysis_results()


@router.get(
    "/history",
    response_model=List[AnalysisHistoryEntry],
    summary="List analysis history entries, newest first",
)
async def list_analysis_history(store: EntityStoreDep) -> List[AnalysisHistoryEntry]:
    return store.list_analysis_history()


@router.get(
    "/statistics",
    response_model=AnalysisStatistics,
    summary="Aggregate figures over the archive",
)
async def get_analysis_statistics(store: EntityStoreDep) -> AnalysisStatistics:
    return store.get_analysis_statistics()


@router.get(
    "/{analysis_id}",
    response_model=AnalysisResult,
    summary="Get an archived analysis result",
    responses={404: {"description": "Analysis result not found"}},
)
async def get_analysis_result(analysis_id: AnalysisId, store: EntityStoreDep) -> AnalysisResult:
    result = store.get_analysis_result(analysis_id)
    if result is None:
        raise NotFoundError(f"Analysis result '{analysis_id}' not found", {"id": analysis_id})
    return result


@router.delete(
    "/{analysis_id}",
    response_model=DeleteResponse,
    summary="Delete an analysis result and its history entry",
    responses={404: {"description": "Analysis result not found"}},
)
async def delete_analysis_result(analysis_id: AnalysisId, store: EntityStoreDep) -> DeleteResponse:
    if not store.delete_analysis_result(analysis_id):
        raise NotFoundError(f"Analysis result '{analysis_id}' not found", {"id": analysis_id})
    return DeleteResponse(id=analysis_id, deleted=True)


@router.delete(
    "",
    response_model=DeleteResponse,
    summary="Delete every analysis result",
)
async def clear_analysis_results(store: EntityStoreDep) -> DeleteResponse:
    return DeleteResponse(id="all", deleted=store.clear_all_analysis_results())
