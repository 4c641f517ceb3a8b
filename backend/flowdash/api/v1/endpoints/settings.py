"""
Organization settings: the product attribute vocabulary (categories, designs,
colors, qualities and packaging types).
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.logging_config import get_logger
from flowdash.core.session import UserContext, get_current_user, require_admin
from flowdash.models.product import AttributeTypeEnum, ProductAttribute
from flowdash.schemas.attribute import AttributeCreate, AttributeResponse, AttributeUpdate

router = APIRouter()
logger = get_logger("settings")


def _get_attribute(db: Session, attribute_id: int, organization_id: int) -> ProductAttribute:
    attribute = db.query(ProductAttribute).filter(
        ProductAttribute.id == attribute_id,
        ProductAttribute.organization_id == organization_id,
    ).first()
    if not attribute:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attribute not found")
    return attribute


def _conflict(attr_type: AttributeTypeEnum, value: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"The {attr_type.value.replace('_', ' ')} '{value}' already exists."
    )


@router.get("/attributes", response_model=List[AttributeResponse])
async def list_attributes(
    type: Optional[AttributeTypeEnum] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    query = db.query(ProductAttribute).filter(ProductAttribute.organization_id == current_user.organization_id)
    if type is not None:
        query = query.filter(ProductAttribute.type == type)
    return query.order_by(ProductAttribute.type, ProductAttribute.value).all()


@router.post("/attributes", response_model=AttributeResponse, status_code=201)
async def create_attribute(
    attribute_data: AttributeCreate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    attribute = ProductAttribute(
        organization_id=current_user.organization_id,
        type=attribute_data.type,
        value=attribute_data.value,
    )
    db.add(attribute)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict(attribute_data.type, attribute_data.value)
    db.refresh(attribute)
    return attribute


@router.patch("/attributes/{attribute_id}", response_model=AttributeResponse)
async def update_attribute(
    attribute_id: int,
    attribute_data: AttributeUpdate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    attribute = _get_attribute(db, attribute_id, current_user.organization_id)
    attribute.value = attribute_data.value
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict(attribute.type, attribute_data.value)
    db.refresh(attribute)
    return attribute


@router.delete("/attributes/{attribute_id}", status_code=204)
async def delete_attribute(
    attribute_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    attribute = _get_attribute(db, attribute_id, current_user.organization_id)
    db.delete(attribute)
    db.commit()
    logger.info(f"Attribute {attribute_id} deleted by user {current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
