"""
API router for directory endpoints.
"""
from typing import Annotated, List

from fastapi import APIRouter, Path, status

from app.api.dependencies import EntityStoreDep
from app.api.v1.models.responses import DeleteResponse
from app.domain.errors import NotFoundError
from app.domain.models import Directory, DirectoryCreate, DirectoryUpdate, Field
from app.services.domain.entity_store import sort_directories, sort_fields


router = APIRouter(
    prefix="/directories",
    tags=["directories"],
)

DirectoryId = Annotated[str, Path(description="Unique identifier for the directory")]


@router.get(
    "",
    response_model=List[Directory],
    summary="List directories",
    description="Default directory first, the others alphabetically.",
)
async def list_directories(store: EntityStoreDep) -> List[Directory]:
    return sort_directories(store.list_directories())


@router.post(
    "",
    response_model=Directory,
    status_code=status.HTTP_201_CREATED,
    summary="Create a directory",
    responses={409: {"description": "Directory limit reached"}},
)
async def create_directory(payload: DirectoryCreate, store: EntityStoreDep) -> Directory:
    return store.add_directory(payload)


@router.get(
    "/{directory_id}",
    response_model=Directory,
    summary="Get a directory",
    responses={404: {"description": "Directory not found"}},
)
async def get_directory(directory_id: DirectoryId, store: EntityStoreDep) -> Directory:
    directory = store.get_directory(directory_id)
    if directory is None:
        raise NotFoundError(f"Directory '{directory_id}' not found", {"id": directory_id})
    return directory


@router.patch(
    "/{directory_id}",
    response_model=Directory,
    summary="Update a directory",
    responses={404: {"description": "Directory not found"}},
)
async def update_directory(
    directory_id: DirectoryId,
    payload: DirectoryUpdate,
    store: EntityStoreDep,
) -> Directory:
    return store.update_directory(directory_id, payload)


@router.delete(
    "/{directory_id}",
    response_model=DeleteResponse,
    summary="Delete a directory",
    description="Fields of the deleted directory are moved to the default directory.",
    responses={
        404: {"description": "Directory not found"},
        409: {"description": "The default directory cannot be deleted"},
    }
)
async def delete_directory(directory_id: DirectoryId, store: EntityStoreDep) -> DeleteResponse:
    return DeleteResponse(id=directory_id, deleted=store.delete_directory(directory_id))


@router.get(
    "/{directory_id}/fields",
    response_model=List[Field],
    summary="List the fields of a directory",
    responses={404: {"description": "Directory not found"}},
)
async def list_directory_fields(directory_id: DirectoryId, store: EntityStoreDep) -> List[Field]:
    if store.get_directory(directory_id) is None:
        raise NotFoundError(f"Directory '{directory_id}' not found", {"id": directory_id})
    return sort_fields(store.list_fields_in_directory(directory_id), by="name", ascending=True)
