"""
Media library endpoints. Images are stored locally under uploads/media and
served by the static mount at /uploads.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.session import UserContext, require_admin
from flowdash.schemas.media import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    MediaDetailResponse,
    MediaResponse,
    UploadResponse,
)
from flowdash.services import media_service

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload_media(
    files: Optional[List[UploadFile]] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Accepts the form field ``files`` (media page) or ``images`` (bulk product images)."""
    uploads = files or images
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided.")
    results = await media_service.upload_images(db, uploads, current_user)
    return UploadResponse(message=f"Processed {len(uploads)} files.", results=results)


@router.get("")
async def list_media(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    get_total: bool = Query(False, alias="getTotal"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    result = media_service.list_media(
        db, current_user.organization_id, page=page, limit=limit, get_total=get_total, search=search
    )
    result["data"] = [MediaResponse.model_validate(m) for m in result["data"]]
    return result


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_media(
    request: BulkDeleteRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    requested = list(dict.fromkeys(request.ids))
    deleted = media_service.delete_media(db, requested, current_user.organization_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="None of the specified media files were found."
        )
    return BulkDeleteResponse(
        message=f"Successfully deleted {len(deleted)} media files.",
        deleted_count=len(deleted),
        deleted_ids=deleted,
        not_found_ids=[i for i in requested if i not in deleted],
    )


@router.get("/{media_id}", response_model=MediaDetailResponse)
async def get_media(
    media_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    media = media_service.get_media(db, media_id, current_user.organization_id)
    return media_service.media_detail(db, media)


@router.delete("/{media_id}")
async def delete_media(
    media_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    media = media_service.get_media(db, media_id, current_user.organization_id)
    media_service.delete_media(db, [media.id], current_user.organization_id)
    return {"message": "Media file deleted successfully.", "deleted_id": media_id}
