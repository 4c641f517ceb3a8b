"""Distinct values for filter dropdowns, scoped to the caller's organization."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.session import UserContext, get_current_user
from flowdash.services import inventory_service

router = APIRouter()

ALLOWED_FIELDS = {
    "products": {"color", "design", "category", "product_name"},
    "inventory": {"quality", "packaging_type", "users", "product_name"},
}


@router.get("/{entity}/{field}", response_model=List[str])
async def distinct_values(
    entity: str,
    field: str,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    if field not in ALLOWED_FIELDS.get(entity, ()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid entity or field")

    # product names are those that have production logged against them
    if entity == "inventory" or field == "product_name":
        return inventory_service.distinct_inventory_values(db, current_user.organization_id, field)
    return inventory_service.distinct_product_values(db, current_user.organization_id, field)
