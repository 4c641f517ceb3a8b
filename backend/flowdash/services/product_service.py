"""
Product catalogue operations: attribute linking, serialization and listing.
"""
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from flowdash.core.logging_config import get_logger
from flowdash.models.inventory import InventorySummary
from flowdash.models.media import MediaFile
from flowdash.models.product import (
    AttributeTypeEnum,
    DEFAULT_PACKAGING_TYPE,
    Product,
    ProductAttribute,
)
from flowdash.schemas.product import ProductCreate, ProductUpdate

logger = get_logger("product_service")


def with_default_packaging(names: Optional[Iterable[str]]) -> List[str]:
    """Packaging names with the default packaging type always present."""
    names = list(names or [])
    if DEFAULT_PACKAGING_TYPE not in names:
        names.append(DEFAULT_PACKAGING_TYPE)
    return names


def find_attributes(
    db: Session,
    organization_id: int,
    attr_type: AttributeTypeEnum,
    names: Iterable[str],
) -> List[ProductAttribute]:
    """Resolve attribute names to the organization's attributes. Unknown names are skipped."""
    names = [n.strip() for n in names if n and n.strip()]
    if not names:
        return []
    return db.query(ProductAttribute).filter(
        ProductAttribute.organization_id == organization_id,
        ProductAttribute.type == attr_type,
        ProductAttribute.value.in_(names),
    ).all()


def ensure_attribute(
    db: Session,
    organization_id: int,
    attr_type: AttributeTypeEnum,
    value: str,
    known: Optional[Dict[str, ProductAttribute]] = None,
) -> Optional[ProductAttribute]:
    """Find an attribute by case-insensitive value, creating it when missing."""
    value = (value or "").strip()
    if not value:
        return None
    key = f"{attr_type.value}:{value.lower()}"
    if known is not None and key in known:
        return known[key]

    attribute = db.query(ProductAttribute).filter(
        ProductAttribute.organization_id == organization_id,
        ProductAttribute.type == attr_type,
        func.lower(ProductAttribute.value) == value.lower(),
    ).first()
    if not attribute:
        attribute = ProductAttribute(organization_id=organization_id, type=attr_type, value=value)
        db.add(attribute)
        db.flush()
    if known is not None:
        known[key] = attribute
    return attribute


def ensure_default_packaging(db: Session, organization_id: int) -> ProductAttribute:
    return ensure_attribute(db, organization_id, AttributeTypeEnum.PACKAGING_TYPE, DEFAULT_PACKAGING_TYPE)


def _resolve_media(db: Session, media_id: Optional[int], organization_id: int) -> Optional[MediaFile]:
    if media_id is None:
        return None
    media = db.query(MediaFile).filter(
        MediaFile.id == media_id,
        MediaFile.organization_id == organization_id,
    ).first()
    if not media:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media file not found.")
    return media


def _sku_exists(db: Session, organization_id: int, sku: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Product.id).filter(Product.organization_id == organization_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def quantity_on_hand(db: Session, product_id: int) -> int:
    total = db.query(func.coalesce(func.sum(InventorySummary.quantity), 0)).filter(
        InventorySummary.product_id == product_id
    ).scalar()
    return int(total or 0)


def product_image_url(product: Product) -> Optional[str]:
    if product.media is not None:
        return product.media.filepath
    return product.image_url


def serialize_product(product: Product, quantity: Optional[int] = None) -> dict:
    return {
        "id": product.id,
        "organization_id": product.organization_id,
        "name": product.name,
        "sku": product.sku,
        "color": product.color,
        "category": product.category,
        "design": product.design,
        "image_url": product_image_url(product),
        "media_id": product.media_id,
        "is_archived": bool(product.is_archived),
        "available_qualities": [a.value for a in product.qualities],
        "available_packaging_types": [a.value for a in product.packaging_types],
        "quantity_on_hand": quantity,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def list_products(
    db: Session,
    organization_id: int,
    page: int = 1,
    limit: int = 25,
    get_total: bool = False,
    name: Optional[str] = None,
    color: Optional[str] = None,
    category: Optional[str] = None,
    design: Optional[str] = None,
) -> dict:
    query = db.query(Product).filter(
        Product.organization_id == organization_id,
        Product.is_archived == False,  # noqa: E712
    )
    if name:
        pattern = f"%{name}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.category.ilike(pattern),
            Product.design.ilike(pattern),
            Product.color.ilike(pattern),
        ))
    if color:
        query = query.filter(Product.color == color)
    if category:
        query = query.filter(Product.category == category)
    if design:
        query = query.filter(Product.design == design)

    total = query.count() if get_total else None
    products = (
        query.options(
            selectinload(Product.qualities),
            selectinload(Product.packaging_types),
            selectinload(Product.media),
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    result = {"data": [serialize_product(p) for p in products]}
    if get_total:
        result["totalCount"] = total
    return result


def create_product(db: Session, data: ProductCreate, organization_id: int) -> Product:
    if _sku_exists(db, organization_id, data.sku):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A product with SKU '{data.sku}' already exists."
        )
    media = _resolve_media(db, data.media_id, organization_id)

    ensure_default_packaging(db, organization_id)
    product = Product(
        organization_id=organization_id,
        name=data.name,
        sku=data.sku,
        color=data.color,
        category=data.category,
        design=data.design,
        image_url=data.image_url,
        media_id=media.id if media else None,
        is_archived=False,
    )
    product.qualities = find_attributes(
        db, organization_id, AttributeTypeEnum.QUALITY, data.available_qualities or []
    )
    product.packaging_types = find_attributes(
        db, organization_id, AttributeTypeEnum.PACKAGING_TYPE,
        with_default_packaging(data.available_packaging_types),
    )
    db.add(product)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A product with SKU '{data.sku}' already exists."
        )
    db.refresh(product)
    logger.info(f"Created product {product.sku} (id={product.id})", extra={"organization_id": organization_id})
    return product


def update_product(db: Session, product: Product, data: ProductUpdate) -> Product:
    updates = data.model_dump(exclude_unset=True)

    if "sku" in updates and updates["sku"] != product.sku:
        if _sku_exists(db, product.organization_id, updates["sku"], exclude_id=product.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A product with SKU '{updates['sku']}' already exists."
            )
    if "media_id" in updates:
        media = _resolve_media(db, updates["media_id"], product.organization_id)
        product.media_id = media.id if media else None

    for field in ("name", "sku", "color", "category", "design", "image_url"):
        if field in updates:
            setattr(product, field, updates[field])

    if "available_qualities" in updates:
        product.qualities = find_attributes(
            db, product.organization_id, AttributeTypeEnum.QUALITY, updates["available_qualities"] or []
        )
    if "available_packaging_types" in updates:
        ensure_default_packaging(db, product.organization_id)
        product.packaging_types = find_attributes(
            db, product.organization_id, AttributeTypeEnum.PACKAGING_TYPE,
            with_default_packaging(updates["available_packaging_types"]),
        )

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A product with SKU '{updates.get('sku', product.sku)}' already exists."
        )
    db.refresh(product)
    return product


def archive_product(db: Session, product: Product) -> Product:
    product.is_archived = True
    db.commit()
    logger.info(f"Archived product {product.sku} (id={product.id})", extra={"organization_id": product.organization_id})
    return product


def distinct_colors(db: Session, organization_id: int) -> List[str]:
    rows = db.query(Product.color).filter(
        Product.organization_id == organization_id,
        Product.is_archived == False,  # noqa: E712
        Product.color.isnot(None),
        Product.color != "",
    ).distinct().order_by(Product.color).all()
    return [row.color for row in rows]
