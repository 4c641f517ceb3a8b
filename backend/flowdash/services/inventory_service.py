"""
Production logging and the stock summary kept alongside it.

Each log adds ``produced`` units to the (product, quality, packaging_type)
row of ``inventory_summary``. Editing or deleting a log moves or removes
those units again; summary rows that drop to zero or below are deleted.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from flowdash.core.db_transaction import db_transaction
from flowdash.core.logging_config import get_logger
from flowdash.core.session import UserContext
from flowdash.core.time_utils import as_utc, utcnow
from flowdash.models.inventory import InventoryLog, InventorySummary
from flowdash.models.product import Product
from flowdash.models.user import User
from flowdash.schemas.inventory import LogEntryCreate, LogEntryUpdate

logger = get_logger("inventory_service")

# Floor staff may change their own entries for this long after logging them
EDIT_WINDOW = timedelta(hours=24)


def adjust_summary(db: Session, product_id: int, quality: str, packaging_type: str, delta: int) -> None:
    """Add ``delta`` to one stock combination, creating or deleting its row as needed."""
    row = db.query(InventorySummary).filter(
        InventorySummary.product_id == product_id,
        InventorySummary.quality == quality,
        InventorySummary.packaging_type == packaging_type,
    ).first()
    if row is None:
        if delta <= 0:
            return
        row = InventorySummary(
            product_id=product_id,
            quality=quality,
            packaging_type=packaging_type,
            quantity=0,
        )
        db.add(row)
    row.quantity = (row.quantity or 0) + delta
    row.last_updated_at = utcnow()
    if row.quantity <= 0:
        db.delete(row)
    db.flush()


def serialize_log(log: InventoryLog) -> dict:
    product = log.product
    image_url = product.media.filepath if product.media is not None else product.image_url
    return {
        "id": log.id,
        "product_id": log.product_id,
        "user_id": log.user_id,
        "product_name": product.name,
        "color": product.color,
        "design": product.design,
        "image_url": image_url,
        "username": log.user.name if log.user else "",
        "produced": log.produced,
        "quality": log.quality,
        "packaging_type": log.packaging_type,
        "created_at": log.created_at,
    }


def create_logs(db: Session, entries: List[LogEntryCreate], current_user: UserContext) -> List[dict]:
    product_ids = {entry.product_id for entry in entries}
    owned = {
        pid for (pid,) in db.query(Product.id).filter(
            Product.id.in_(product_ids),
            Product.organization_id == current_user.organization_id,
        ).all()
    }
    missing = sorted(product_ids - owned)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product not found: {', '.join(str(pid) for pid in missing)}"
        )

    created = []
    with db_transaction(db, "create_inventory_logs"):
        for entry in entries:
            log = InventoryLog(
                product_id=entry.product_id,
                user_id=current_user.id,
                produced=entry.produced,
                quality=entry.quality,
                packaging_type=entry.packaging_type,
                created_at=utcnow(),
            )
            db.add(log)
            adjust_summary(db, entry.product_id, entry.quality, entry.packaging_type, entry.produced)
            created.append(log)

    logger.info(
        f"User {current_user.id} logged {len(created)} production entries",
        extra={"organization_id": current_user.organization_id},
    )
    return [serialize_log(log) for log in created]


def _log_query(db: Session, organization_id: int):
    return (
        db.query(InventoryLog)
        .join(Product, InventoryLog.product_id == Product.id)
        .join(User, InventoryLog.user_id == User.id)
        .filter(Product.organization_id == organization_id)
    )


def list_logs(
    db: Session,
    organization_id: int,
    page: int = 1,
    limit: int = 20,
    get_total: bool = False,
    search: Optional[str] = None,
    user_id: Optional[int] = None,
    product: Optional[str] = None,
    color: Optional[str] = None,
    design: Optional[str] = None,
    quality: Optional[str] = None,
    packaging_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict:
    query = _log_query(db, organization_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.color.ilike(pattern),
            Product.design.ilike(pattern),
        ))
    if user_id is not None:
        query = query.filter(InventoryLog.user_id == user_id)
    if product:
        query = query.filter(Product.name == product)
    if color:
        query = query.filter(Product.color == color)
    if design:
        query = query.filter(Product.design == design)
    if quality:
        query = query.filter(InventoryLog.quality == quality)
    if packaging_type:
        query = query.filter(InventoryLog.packaging_type == packaging_type)
    if start_date:
        query = query.filter(InventoryLog.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date:
        # end date is inclusive
        next_day = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        query = query.filter(InventoryLog.created_at < next_day)

    total = query.count() if get_total else None
    logs = (
        query.options(
            joinedload(InventoryLog.product).joinedload(Product.media),
            joinedload(InventoryLog.user),
        )
        .order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    result = {"data": [serialize_log(log) for log in logs]}
    if get_total:
        result["totalCount"] = total
    return result


def get_log(db: Session, log_id: int, organization_id: int) -> InventoryLog:
    log = _log_query(db, organization_id).filter(InventoryLog.id == log_id).first()
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Log not found")
    return log


def can_modify_log(log: InventoryLog, current_user: UserContext, now: Optional[datetime] = None) -> bool:
    """Admins may always change a log; its creator only within the edit window."""
    if current_user.is_admin:
        return True
    if log.user_id != current_user.id:
        return False
    created_at = as_utc(log.created_at)
    if created_at is None:
        return False
    return (now or utcnow()) - created_at < EDIT_WINDOW


def update_log(db: Session, log: InventoryLog, data: LogEntryUpdate, current_user: UserContext) -> dict:
    if not can_modify_log(log, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to update this log."
        )

    old = (log.product_id, log.quality, log.packaging_type, log.produced)
    with db_transaction(db, "update_inventory_log"):
        log.produced = data.produced
        log.quality = data.quality
        log.packaging_type = data.packaging_type
        if old != (log.product_id, log.quality, log.packaging_type, log.produced):
            adjust_summary(db, old[0], old[1], old[2], -old[3])
            adjust_summary(db, log.product_id, log.quality, log.packaging_type, log.produced)

    db.refresh(log)
    logger.info(f"Inventory log {log.id} updated by user {current_user.id}")
    return serialize_log(log)


def delete_log(db: Session, log: InventoryLog, current_user: UserContext) -> None:
    if not can_modify_log(log, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to delete this log."
        )

    log_id = log.id
    with db_transaction(db, "delete_inventory_log"):
        adjust_summary(db, log.product_id, log.quality, log.packaging_type, -log.produced)
        db.delete(log)

    logger.info(f"Inventory log {log_id} deleted by user {current_user.id}")


def stock_overview(
    db: Session,
    organization_id: int,
    page: int = 1,
    limit: int = 50,
    get_total: bool = False,
    search: Optional[str] = None,
    category: Optional[str] = None,
    design: Optional[str] = None,
    color: Optional[str] = None,
    quality: Optional[str] = None,
    packaging_type: Optional[str] = None,
    show_zero_stock: bool = False,
) -> dict:
    """Stock per product with one entry per quality/packaging combination."""
    query = (
        db.query(Product, InventorySummary)
        .outerjoin(InventorySummary, InventorySummary.product_id == Product.id)
        .filter(
            Product.organization_id == organization_id,
            Product.is_archived == False,  # noqa: E712
        )
    )
    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))
    if category:
        query = query.filter(Product.category == category)
    if design:
        query = query.filter(Product.design == design)
    if color:
        query = query.filter(Product.color == color)
    if quality:
        query = query.filter(InventorySummary.quality == quality)
    if packaging_type:
        query = query.filter(InventorySummary.packaging_type == packaging_type)
    if not show_zero_stock:
        query = query.filter(InventorySummary.quantity > 0)

    total = query.count() if get_total else None
    rows = (
        query.order_by(Product.name.asc(), InventorySummary.quality.asc(), InventorySummary.packaging_type.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    grouped = {}
    for product, summary in rows:
        entry = grouped.get(product.id)
        if entry is None:
            entry = {
                "product_id": product.id,
                "product_name": product.name,
                "sku": product.sku,
                "category": product.category,
                "design": product.design,
                "color": product.color,
                "image_url": product.media.filepath if product.media is not None else product.image_url,
                "stock_entries": [],
                "total_quantity": 0,
            }
            grouped[product.id] = entry
        if summary is not None:
            entry["stock_entries"].append({
                "quality": summary.quality,
                "packaging_type": summary.packaging_type,
                "quantity": summary.quantity or 0,
                "last_updated_at": summary.last_updated_at,
            })
            entry["total_quantity"] += summary.quantity or 0

    result = {"data": list(grouped.values())}
    if get_total:
        # counts stock entries, not products
        result["totalCount"] = total
    return result


def distinct_inventory_values(db: Session, organization_id: int, field: str) -> List[str]:
    """Distinct values used by inventory filters: quality, packaging_type, users or product_name."""
    if field == "users":
        column = User.name
    elif field == "product_name":
        column = Product.name
    elif field == "quality":
        column = InventoryLog.quality
    elif field == "packaging_type":
        column = InventoryLog.packaging_type
    else:
        raise ValueError(field)

    rows = (
        db.query(column)
        .select_from(InventoryLog)
        .join(Product, InventoryLog.product_id == Product.id)
        .join(User, InventoryLog.user_id == User.id)
        .filter(Product.organization_id == organization_id, column.isnot(None), column != "")
        .distinct()
        .order_by(column)
        .all()
    )
    return [row[0] for row in rows]


def distinct_product_values(db: Session, organization_id: int, field: str) -> List[str]:
    columns = {"color": Product.color, "design": Product.design, "category": Product.category}
    if field not in columns:
        raise ValueError(field)
    column = columns[field]
    rows = (
        db.query(column)
        .filter(Product.organization_id == organization_id, column.isnot(None), column != "")
        .distinct()
        .order_by(column)
        .all()
    )
    return [row[0] for row in rows]


def production_total(db: Session, organization_id: int, since: datetime) -> int:
    total = (
        db.query(func.coalesce(func.sum(InventoryLog.produced), 0))
        .join(Product, InventoryLog.product_id == Product.id)
        .filter(Product.organization_id == organization_id, InventoryLog.created_at >= since)
        .scalar()
    )
    return int(total or 0)
