from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from flowdash.core.config import settings
from flowdash.core.database import get_db
from flowdash.core.session import UserContext, get_current_user, require_admin
from flowdash.core.validators import get_organization_product
from flowdash.schemas.product import ProductCreate, ProductImportResult, ProductResponse, ProductUpdate
from flowdash.services import import_service, media_service, product_service

router = APIRouter()


@router.get("")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    get_total: bool = Query(False, alias="getTotal"),
    name: Optional[str] = None,
    color: Optional[str] = None,
    category: Optional[str] = None,
    design: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    """Active products of the caller's organization, newest first."""
    result = product_service.list_products(
        db,
        current_user.organization_id,
        page=page,
        limit=limit,
        get_total=get_total,
        name=name,
        color=color,
        category=category,
        design=design,
    )
    result["data"] = [ProductResponse(**p) for p in result["data"]]
    return result


@router.get("/distinct-colors", response_model=List[str])
async def distinct_colors(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    return product_service.distinct_colors(db, current_user.organization_id)


@router.post("/import", response_model=ProductImportResult)
async def import_products(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Import products from a CSV file. Existing SKUs are skipped, invalid rows reported."""
    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if len(raw) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Max size: {settings.MAX_UPLOAD_SIZE / 1024 / 1024}MB"
        )
    content = import_service.decode_csv(raw)
    return import_service.import_products(db, content, current_user.organization_id)


@router.post("/upload-image")
async def upload_product_image(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Store one product image in the media library and return its URL."""
    result = (await media_service.upload_images(db, [file], current_user))[0]
    if result["error"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["error"])
    return {"url": result["filepath"], "id": result["id"], "duplicate": result["duplicate"]}


@router.post("/bulk-upload-images")
async def bulk_upload_images(
    images: Optional[List[UploadFile]] = File(None),
    current_user: UserContext = Depends(require_admin),
):
    """Store images under their original names for matching against products by file name."""
    if not images:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No images provided.")
    results = await media_service.upload_named_images(images, current_user.organization_id)
    return {"message": "Bulk image upload processed.", "results": results}


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    product = get_organization_product(db, product_id, current_user.organization_id)
    return product_service.serialize_product(product, product_service.quantity_on_hand(db, product.id))


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    product = product_service.create_product(db, product_data, current_user.organization_id)
    return product_service.serialize_product(product, 0)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    product = get_organization_product(db, product_id, current_user.organization_id)
    product = product_service.update_product(db, product, product_data)
    return product_service.serialize_product(product, product_service.quantity_on_hand(db, product.id))


@router.delete("/{product_id}")
async def archive_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Products with history are never removed; deleting archives them."""
    product = get_organization_product(db, product_id, current_user.organization_id, include_archived=False)
    product_service.archive_product(db, product)
    return {"message": "Product archived successfully"}
