"""
Media library: image processing, local storage and de-duplication.

Uploaded images are scaled down to fit IMAGE_MAX_DIMENSION (never enlarged),
re-encoded as WebP and stored under ``<UPLOAD_DIR>/media``. The SHA-256 of
the processed bytes identifies duplicates within an organization.
"""
import hashlib
import io
import os
import re
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from flowdash.core.config import settings
from flowdash.core.logging_config import get_logger
from flowdash.core.session import UserContext
from flowdash.models.media import MediaFile
from flowdash.models.product import Product
from flowdash.schemas.media import LinkedProduct

logger = get_logger("media_service")

MEDIA_SUBDIR = "media"
MEDIA_URL_PREFIX = f"/uploads/{MEDIA_SUBDIR}/"
PRODUCT_IMAGE_SUBDIR = "products"
PRODUCT_IMAGE_URL_PREFIX = f"/uploads/{PRODUCT_IMAGE_SUBDIR}/"
WEBP_CONTENT_TYPE = "image/webp"

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif", "image/bmp", "image/tiff"}
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"}


class ImageProcessingError(ValueError):
    pass


def media_dir() -> Path:
    path = Path(settings.UPLOAD_DIR_ABS) / MEDIA_SUBDIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def base_filename(original_name: Optional[str]) -> str:
    """Original file name without its extension."""
    name = os.path.basename(original_name or "") or "image"
    stem, _ = os.path.splitext(name)
    return stem or name


def safe_stem(original_name: Optional[str]) -> str:
    stem = re.sub(r"[^A-Za-z0-9._-]+", "-", base_filename(original_name)).strip(".-")
    return stem or "image"


def looks_like_image(file: UploadFile) -> bool:
    content_type = (file.content_type or "").strip().lower()
    if content_type in ALLOWED_IMAGE_TYPES:
        return True
    if file.filename:
        return Path(file.filename).suffix.lower() in ALLOWED_IMAGE_EXTENSIONS
    return False


def process_image(data: bytes) -> bytes:
    """Fit within the configured box without enlarging and encode as WebP."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.width * img.height > settings.IMAGE_MAX_PIXELS:
                raise ImageProcessingError(
                    f"Could not process image: {img.width}x{img.height} exceeds the pixel limit"
                )
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in img.getbands() or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")
            max_dim = settings.IMAGE_MAX_DIMENSION
            img.thumbnail((max_dim, max_dim), Image.LANCZOS)
            out = io.BytesIO()
            img.save(out, format="WEBP", quality=settings.IMAGE_QUALITY)
            return out.getvalue()
    except ImageProcessingError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Could not process image: {e}") from e


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _media_result(media: MediaFile, duplicate: bool = False, file_size: Optional[int] = None) -> dict:
    return {
        "id": media.id,
        "filename": media.filename,
        "filepath": media.filepath,
        "file_type": media.file_type,
        "file_size": file_size if file_size is not None else media.file_size,
        "user_id": media.user_id,
        "created_at": media.created_at,
        "updated_at": media.updated_at,
        "duplicate": duplicate,
        "error": None,
    }


def _error_result(filename: str, message: str, user_id: int) -> dict:
    return {
        "id": 0,
        "filename": filename,
        "filepath": "",
        "file_type": WEBP_CONTENT_TYPE,
        "file_size": 0,
        "user_id": user_id,
        "duplicate": False,
        "error": message,
    }


async def read_upload_image(upload: UploadFile) -> bytes:
    """Validate one uploaded file and return its processed WebP bytes."""
    if not looks_like_image(upload):
        raise ImageProcessingError("Invalid file type.")
    raw = await upload.read()
    if not raw:
        raise ImageProcessingError("File is empty.")
    if len(raw) > settings.MAX_UPLOAD_SIZE:
        raise ImageProcessingError(
            f"File too large. Max size: {settings.MAX_UPLOAD_SIZE / 1024 / 1024}MB"
        )
    return process_image(raw)


async def upload_images(db: Session, files: List[UploadFile], current_user: UserContext) -> List[dict]:
    """Process and store each file independently; one bad file does not fail the batch."""
    results = []
    for upload in files:
        filename = base_filename(upload.filename)
        try:
            processed = await read_upload_image(upload)
        except ImageProcessingError as e:
            logger.warning(f"Rejected upload {upload.filename!r}: {e}")
            results.append(_error_result(filename, str(e), current_user.id))
            continue

        digest = content_hash(processed)
        if settings.ENABLE_IMAGE_DEDUPLICATION:
            existing = db.query(MediaFile).filter(
                MediaFile.content_hash == digest,
                MediaFile.organization_id == current_user.organization_id,
            ).first()
            if existing:
                results.append(_media_result(existing, duplicate=True, file_size=len(processed)))
                continue

        stored_name = f"{uuid.uuid4().hex}.webp"
        target = media_dir() / stored_name
        try:
            with open(target, "wb") as f:
                f.write(processed)
        except OSError as e:
            logger.error(f"Failed to store upload {upload.filename!r}: {e}", exc_info=True)
            results.append(_error_result(filename, "Failed to store file.", current_user.id))
            continue

        media = MediaFile(
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            filename=filename,
            filepath=f"{MEDIA_URL_PREFIX}{stored_name}",
            file_type=WEBP_CONTENT_TYPE,
            file_size=len(processed),
            content_hash=digest,
        )
        db.add(media)
        db.commit()
        db.refresh(media)
        results.append(_media_result(media))

    logger.info(
        f"User {current_user.id} uploaded {len(files)} files",
        extra={"organization_id": current_user.organization_id},
    )
    return results


async def upload_named_images(files: List[UploadFile], organization_id: int) -> List[dict]:
    """
    Store product images under their own (sanitized) names so a CSV can refer
    to them by file name. A name that already exists is reused, not overwritten.
    """
    target_dir = Path(settings.UPLOAD_DIR_ABS) / PRODUCT_IMAGE_SUBDIR / str(organization_id)
    target_dir.mkdir(parents=True, exist_ok=True)

    results = []
    for upload in files:
        original_name = upload.filename or "image"
        stored_name = f"{safe_stem(original_name)}.webp"
        url = f"{PRODUCT_IMAGE_URL_PREFIX}{organization_id}/{stored_name}"
        target = target_dir / stored_name
        if target.exists():
            results.append({"fileName": original_name, "url": url})
            continue
        try:
            processed = await read_upload_image(upload)
            with open(target, "wb") as f:
                f.write(processed)
        except ImageProcessingError as e:
            logger.warning(f"Rejected product image {original_name!r}: {e}")
            results.append({"fileName": original_name, "error": str(e)})
            continue
        except OSError as e:
            logger.error(f"Failed to store product image {original_name!r}: {e}", exc_info=True)
            results.append({"fileName": original_name, "error": "Failed to store file."})
            continue
        results.append({"fileName": stored_name, "url": url})

    logger.info(f"Stored {len(files)} named product images", extra={"organization_id": organization_id})
    return results


def list_media(
    db: Session,
    organization_id: int,
    page: int = 1,
    limit: int = 25,
    get_total: bool = False,
    search: Optional[str] = None,
) -> dict:
    query = db.query(MediaFile).filter(MediaFile.organization_id == organization_id)
    if search:
        query = query.filter(MediaFile.filename.ilike(f"%{search}%"))
    total = query.count() if get_total else None
    items = (
        query.order_by(MediaFile.created_at.desc(), MediaFile.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    result = {"data": items}
    if get_total:
        result["totalCount"] = total
    return result


def get_media(db: Session, media_id: int, organization_id: int) -> MediaFile:
    media = db.query(MediaFile).filter(
        MediaFile.id == media_id,
        MediaFile.organization_id == organization_id,
    ).first()
    if not media:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media file not found.")
    return media


def media_detail(db: Session, media: MediaFile) -> dict:
    linked = db.query(Product).filter(
        Product.media_id == media.id,
        Product.organization_id == media.organization_id,
        Product.is_archived == False,  # noqa: E712
    ).order_by(Product.name).all()
    return {
        "id": media.id,
        "filename": media.filename,
        "filepath": media.filepath,
        "file_type": media.file_type,
        "file_size": media.file_size,
        "user_id": media.user_id,
        "created_at": media.created_at,
        "updated_at": media.updated_at,
        "uploaded_by_name": media.uploaded_by.name if media.uploaded_by else None,
        "linked_products": [LinkedProduct.model_validate(p) for p in linked],
    }


def remove_stored_file(filepath: str) -> None:
    """Best effort: a missing or locked file is logged, never raised."""
    if not filepath or not filepath.startswith(MEDIA_URL_PREFIX):
        return
    path = media_dir() / os.path.basename(filepath)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning(f"Stored media file already gone: {path}")
    except OSError as e:
        logger.error(f"Failed to delete stored media file {path}: {e}")


def delete_media(db: Session, media_ids: List[int], organization_id: int) -> List[int]:
    """Delete media records of the organization and unlink their files. Returns the deleted ids."""
    items = db.query(MediaFile).filter(
        MediaFile.id.in_(media_ids),
        MediaFile.organization_id == organization_id,
    ).all()
    if not items:
        return []

    deleted_ids = [m.id for m in items]
    filepaths = [m.filepath for m in items]
    db.query(Product).filter(Product.media_id.in_(deleted_ids)).update(
        {Product.media_id: None}, synchronize_session=False
    )
    for media in items:
        db.delete(media)
    db.commit()

    for filepath in filepaths:
        remove_stored_file(filepath)
    logger.info(f"Deleted media {deleted_ids}", extra={"organization_id": organization_id})
    return deleted_ids
