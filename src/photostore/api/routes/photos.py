"""
Photo endpoints.

Handlers are synchronous (FastAPI runs them in its threadpool) and do no
work of their own beyond unpacking the request: everything is delegated to
the coordinator, whose exceptions are turned into responses by the app's
error handlers.
"""

from typing import Any

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from ...error_handling import MissingFieldError
from ...services.coordinator import PhotoStorageCoordinator
from ..dependencies import REFRESHED_TOKEN_HEADER, get_coordinator, require_token
from ..schemas import FavoriteRequest, RenameRequest, UpdateMetadataRequest

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.post("/upload")
def upload_photo(
    photo: UploadFile | None = File(default=None),
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    """Upload one photo (multipart field ``photo``) for the token's user."""
    if photo is None:
        raise MissingFieldError("No file uploaded", user_message="No file uploaded.")

    data = photo.file.read()
    record = coordinator.ingest(token, data, photo.filename or "", photo.content_type)
    return record.to_dict()


@router.get("")
def list_photos(
    user_id: str | None = Query(default=None, alias="userId"),
    date_taken: str | None = Query(default=None, alias="dateTaken"),
    tags: str | None = Query(default=None),
    is_favorite: str | None = Query(default=None, alias="isFavorite"),
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> list[dict[str, Any]]:
    """List the caller's photos; ``tags`` is comma-separated and matches any."""
    photos = coordinator.list_photos(token, user_id, date_taken=date_taken, tags=tags, is_favorite=is_favorite)
    return [photo.to_dict() for photo in photos]


@router.get("/download/{blob_id}")
def download_photo(
    blob_id: str,
    request: Request,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> StreamingResponse:
    """Stream the original bytes of one of the caller's photos."""
    download = coordinator.download(token, blob_id)
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers={
            "Content-Disposition": download.content_disposition,
            REFRESHED_TOKEN_HEADER: request.state.refreshed_token,
        },
    )


@router.get("/{photo_id}")
def get_photo(
    photo_id: str,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    return coordinator.get_photo(token, photo_id).to_dict()


@router.delete("/{photo_id}")
def delete_photo(
    photo_id: str,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    coordinator.delete(token, photo_id)
    return {"message": "Photo deleted successfully"}


@router.patch("/rename/{photo_id}")
def rename_photo(
    photo_id: str,
    body: RenameRequest,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    record = coordinator.rename(token, photo_id, body.new_filename or "")
    return record.to_dict()


@router.patch("/updateMetadata/{photo_id}")
def update_metadata(
    photo_id: str,
    body: UpdateMetadataRequest,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    record = coordinator.update_metadata(token, photo_id, tags=body.tags, description=body.description)
    return record.to_dict()


@router.patch("/toggleFavorite/{photo_id}")
def toggle_favorite(
    photo_id: str,
    body: FavoriteRequest | None = None,
    token: str = Depends(require_token),
    coordinator: PhotoStorageCoordinator = Depends(get_coordinator),
) -> dict[str, bool]:
    """Flip the favorite flag, or set it when the body carries ``isFavorite``."""
    if body is not None and body.is_favorite is not None:
        is_favorite = coordinator.set_favorite(token, photo_id, body.is_favorite)
    else:
        is_favorite = coordinator.toggle_favorite(token, photo_id)
    return {"isFavorite": is_favorite}
