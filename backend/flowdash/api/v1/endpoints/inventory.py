from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.session import UserContext, get_current_user, require_admin
from flowdash.schemas.inventory import (
    DashboardSummary,
    LogEntryCreate,
    LogEntryUpdate,
    LogResponse,
    WeeklyProduction,
)
from flowdash.services import inventory_service, report_service

router = APIRouter()


class LogFilters:
    """Query parameters shared by the log listings."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=500),
        get_total: bool = Query(False, alias="getTotal"),
        search: Optional[str] = None,
        user_id: Optional[int] = Query(None, alias="userId"),
        product: Optional[str] = None,
        color: Optional[str] = None,
        design: Optional[str] = None,
        quality: Optional[str] = None,
        packaging_type: Optional[str] = None,
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
    ):
        self.page = page
        self.limit = limit
        self.get_total = get_total
        self.search = search
        self.user_id = user_id
        self.product = product
        self.color = color
        self.design = design
        self.quality = quality
        self.packaging_type = packaging_type
        self.start_date = start_date
        self.end_date = end_date

    def as_kwargs(self) -> dict:
        return dict(vars(self))


@router.post("/logs", response_model=List[LogResponse], status_code=201)
async def create_logs(
    entries: List[LogEntryCreate],
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    """Record one or more production entries and update stock in one transaction."""
    if not entries:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid log entry data")
    return inventory_service.create_logs(db, entries, current_user)


@router.get("/logs")
async def list_logs(
    filters: LogFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    return inventory_service.list_logs(db, current_user.organization_id, **filters.as_kwargs())


@router.get("/logs/me")
async def list_my_logs(
    filters: LogFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    kwargs = filters.as_kwargs()
    kwargs["user_id"] = current_user.id
    return inventory_service.list_logs(db, current_user.organization_id, **kwargs)


@router.put("/logs/{log_id}", response_model=LogResponse)
@router.patch("/logs/{log_id}", response_model=LogResponse)
async def update_log(
    log_id: int,
    update: LogEntryUpdate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    log = inventory_service.get_log(db, log_id, current_user.organization_id)
    return inventory_service.update_log(db, log, update, current_user)


@router.delete("/logs/{log_id}")
async def delete_log(
    log_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    log = inventory_service.get_log(db, log_id, current_user.organization_id)
    inventory_service.delete_log(db, log, current_user)
    return {"message": "Log deleted successfully"}


@router.get("/stock")
async def stock(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    get_total: bool = Query(False, alias="getTotal"),
    search: Optional[str] = None,
    category: Optional[str] = None,
    design: Optional[str] = None,
    color: Optional[str] = None,
    quality: Optional[str] = None,
    packaging_type: Optional[str] = None,
    show_zero_stock: bool = Query(False, alias="showZeroStock"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    return inventory_service.stock_overview(
        db,
        current_user.organization_id,
        page=page,
        limit=limit,
        get_total=get_total,
        search=search,
        category=category,
        design=design,
        color=color,
        quality=quality,
        packaging_type=packaging_type,
        show_zero_stock=show_zero_stock,
    )


@router.get("/summary/dashboard", response_model=DashboardSummary)
async def dashboard_summary(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    return report_service.dashboard_summary(db, current_user.organization_id)


@router.get("/summary/weekly-production", response_model=WeeklyProduction)
async def weekly_production(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    return report_service.weekly_production(db, current_user.organization_id)
