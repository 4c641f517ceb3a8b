"""Production aggregates for the dashboard and the reports page. Days are UTC calendar days."""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from flowdash.core.time_utils import as_utc, utcnow
from flowdash.models.inventory import InventoryLog
from flowdash.models.product import Product
from flowdash.services.inventory_service import production_total


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def dashboard_summary(db: Session, organization_id: int, today: Optional[date] = None) -> dict:
    today = today or utcnow().date()
    today_start = _day_start(today)

    todays_logs = (
        db.query(func.count(InventoryLog.id))
        .join(Product, InventoryLog.product_id == Product.id)
        .filter(Product.organization_id == organization_id, InventoryLog.created_at >= today_start)
        .scalar()
    )
    return {
        "today": production_total(db, organization_id, today_start),
        "week": production_total(db, organization_id, _day_start(today - timedelta(days=7))),
        "month": production_total(db, organization_id, _day_start(today.replace(day=1))),
        "todaysLogs": int(todays_logs or 0),
    }


def weekly_production(db: Session, organization_id: int, today: Optional[date] = None) -> dict:
    """Daily totals for the seven days ending today, oldest first."""
    today = today or utcnow().date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]

    logs = (
        db.query(InventoryLog.created_at, InventoryLog.produced)
        .join(Product, InventoryLog.product_id == Product.id)
        .filter(
            Product.organization_id == organization_id,
            InventoryLog.created_at >= _day_start(days[0]),
            InventoryLog.created_at < _day_start(today + timedelta(days=1)),
        )
        .all()
    )
    totals = {day: 0 for day in days}
    for created_at, produced in logs:
        day = as_utc(created_at).date()
        if day in totals:
            totals[day] += produced or 0

    return {
        "labels": [day.strftime("%a") for day in days],
        "data": [totals[day] for day in days],
    }


def production_report(
    db: Session,
    organization_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[dict]:
    """Units produced per product name, color and design within an inclusive date range."""
    total = func.sum(InventoryLog.produced).label("total_production")
    query = (
        db.query(Product.name, Product.color, Product.design, total)
        .join(InventoryLog, InventoryLog.product_id == Product.id)
        .filter(Product.organization_id == organization_id, InventoryLog.produced > 0)
    )
    if start_date:
        query = query.filter(InventoryLog.created_at >= _day_start(start_date))
    if end_date:
        query = query.filter(InventoryLog.created_at < _day_start(end_date + timedelta(days=1)))

    rows = (
        query.group_by(Product.name, Product.color, Product.design)
        .order_by(Product.name, Product.color, Product.design)
        .all()
    )
    return [
        {
            "product_name": name,
            "color": color,
            "design": design,
            "total_production": int(total_production or 0),
        }
        for name, color, design, total_production in rows
    ]
