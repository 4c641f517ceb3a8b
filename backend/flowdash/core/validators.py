"""
Reusable validators for common validation patterns
"""
import re
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from flowdash.models.organization import Organization
from flowdash.models.product import Product
from flowdash.models.user import User
from flowdash.core.logging_config import get_logger

logger = get_logger("validators")

# Usernames that would be confusing or impersonate the system
RESERVED_USERNAMES = frozenset({
    "admin", "root", "system", "superuser", "administrator",
    "support", "help", "info", "contact", "webmaster",
    "api", "test", "demo", "guest", "user", "null", "undefined",
})

_USERNAME_CHARS = re.compile(r"^[a-zA-Z0-9._-]+$")


def check_username(username: str) -> str:
    """
    Validate a username chosen for a staff account. Returns it unchanged.

    Raises:
        ValueError: with a message suitable for a 400/422 response
    """
    if len(username) < 3:
        raise ValueError("Username must be at least 3 characters long.")
    if len(username) > 20:
        raise ValueError("Username cannot exceed 20 characters.")
    if not _USERNAME_CHARS.match(username):
        raise ValueError("Username can only contain letters, numbers, dots, underscores, and hyphens.")
    if username[0] in "._-":
        raise ValueError("Username cannot start with special characters.")
    if username[-1] in "._-":
        raise ValueError("Username cannot end with special characters.")
    if re.search(r"[._-]{2,}", username):
        raise ValueError("Username cannot have consecutive special characters.")
    if username.lower() in RESERVED_USERNAMES:
        raise ValueError("This username is not allowed.")
    return username


def username_taken(db: Session, username: str, exclude_user_id: int = None) -> bool:
    """Usernames are unique across all organizations, case-insensitively."""
    query = db.query(User.id).filter(func.lower(User.username) == username.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def get_organization_user(db: Session, user_id: int, organization_id: int) -> User:
    """
    Fetch a user belonging to the caller's organization.

    Raises:
        HTTPException: 404 when the user does not exist in that organization
    """
    user = db.query(User).filter(
        User.id == user_id,
        User.organization_id == organization_id,
    ).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


def get_organization_product(
    db: Session,
    product_id: int,
    organization_id: int,
    include_archived: bool = True,
) -> Product:
    query = db.query(Product).filter(
        Product.id == product_id,
        Product.organization_id == organization_id,
    )
    if not include_archived:
        query = query.filter(Product.is_archived == False)  # noqa: E712
    product = query.first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def validate_organization_access(db: Session, organization_id: int, caller_organization_id: int) -> Organization:
    """
    Validate that an organization exists and is the caller's own.

    Raises:
        HTTPException: 403 for another tenant's organization, 404 when missing
    """
    if organization_id != caller_organization_id:
        logger.warning(
            f"Organization access denied: organization_id={organization_id}, caller_organization_id={caller_organization_id}",
            extra={
                "requested_organization_id": organization_id,
                "caller_organization_id": caller_organization_id,
            }
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden"
        )

    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )
    return organization
