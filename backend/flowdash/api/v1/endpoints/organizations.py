from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.logging_config import get_logger
from flowdash.core.session import UserContext, get_current_user, require_admin
from flowdash.core.validators import validate_organization_access
from flowdash.schemas.organization import OrganizationResponse, OrganizationUpdate

router = APIRouter()
logger = get_logger("organizations")


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    return validate_organization_access(db, organization_id, current_user.organization_id)


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: int,
    update: OrganizationUpdate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    organization = validate_organization_access(db, organization_id, current_user.organization_id)
    organization.name = update.name
    db.commit()
    db.refresh(organization)
    logger.info(f"Organization {organization.id} renamed by user {current_user.id}")
    return organization
