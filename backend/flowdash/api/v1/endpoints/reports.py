from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.session import UserContext, require_admin
from flowdash.schemas.report import ProductionReportRow
from flowdash.services import report_service

router = APIRouter()


@router.get("/production", response_model=List[ProductionReportRow])
async def production_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Units produced per product name, color and design. Both dates are inclusive."""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must not be after endDate"
        )
    return report_service.production_report(db, current_user.organization_id, start_date, end_date)
