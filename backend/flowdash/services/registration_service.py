"""
Register a new organization together with its first (super_admin) user.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from flowdash.models.organization import Organization
from flowdash.models.user import User, RoleEnum
from flowdash.core.security import get_password_hash
from flowdash.core.logging_config import get_logger
from flowdash.core.validators import username_taken
from flowdash.schemas.auth import RegisterRequest

logger = get_logger("registration_service")


def validate_registration_request(request: RegisterRequest, db: Session) -> None:
    if username_taken(db, request.username):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists"
        )


def register_organization(request: RegisterRequest, db: Session) -> User:
    validate_registration_request(request, db)

    organization = Organization(name=request.organization_name)
    db.add(organization)
    db.flush()

    user = User(
        organization_id=organization.id,
        username=request.username,
        name=request.name,
        password_hash=get_password_hash(request.password),
        role=RoleEnum.SUPER_ADMIN,
        language=request.language or "en",
        is_active=True,
    )
    db.add(user)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Registration lost a username race", extra={"username": request.username})
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists"
        )

    db.refresh(user)
    logger.info(
        f"Registered organization '{organization.name}' (id={organization.id}) with owner {user.username}",
        extra={"organization_id": organization.id, "user_id": user.id},
    )
    return user
