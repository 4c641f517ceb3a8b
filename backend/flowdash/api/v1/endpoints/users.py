from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from flowdash.core.database import get_db
from flowdash.core.logging_config import get_logger
from flowdash.core.security import get_password_hash, verify_password
from flowdash.core.session import ADMIN_ROLES, UserContext, get_current_user, require_admin
from flowdash.core.validators import check_username, get_organization_user, username_taken
from flowdash.models.user import User, RoleEnum
from flowdash.schemas.auth import UserResponse
from flowdash.schemas.user import PasswordChange, UserCreate, UserUpdate, UsernameAvailability

router = APIRouter()
logger = get_logger("users")

# Roles each role may assign through PATCH
ASSIGNABLE_ROLES = {
    RoleEnum.SUPER_ADMIN: {RoleEnum.ADMIN, RoleEnum.FLOOR_STAFF},
    RoleEnum.ADMIN: {RoleEnum.FLOOR_STAFF},
    RoleEnum.FLOOR_STAFF: {RoleEnum.FLOOR_STAFF},
}


@router.get("", response_model=List[UserResponse])
async def list_users(
    status_filter: Optional[str] = Query("active", alias="status", pattern="^(active|inactive|all)$"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Users of the caller's organization. Admins never see super admins."""
    query = db.query(User).filter(User.organization_id == current_user.organization_id)
    if current_user.role == RoleEnum.ADMIN:
        query = query.filter(User.role != RoleEnum.SUPER_ADMIN)
    if status_filter == "inactive":
        query = query.filter(User.is_active == False)  # noqa: E712
    elif status_filter != "all":
        query = query.filter(User.is_active == True)  # noqa: E712
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.username.ilike(pattern), User.name.ilike(pattern)))
    return query.order_by(User.name, User.id).all()


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    if current_user.role == RoleEnum.ADMIN and user_data.role == RoleEnum.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins cannot create super admins."
        )
    if username_taken(db, user_data.username):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already taken."
        )

    user = User(
        organization_id=current_user.organization_id,
        username=user_data.username,
        name=user_data.name.strip(),
        password_hash=get_password_hash(user_data.password),
        role=user_data.role,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"User creation lost a username race for {user_data.username}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already taken."
        )
    db.refresh(user)
    logger.info(f"User {user.username} (id={user.id}) created by user {current_user.id}")
    return user


@router.get("/check-username", response_model=UsernameAvailability)
async def check_username_availability(
    username: str = Query(..., min_length=1),
    exclude_id: Optional[int] = Query(None, alias="excludeId"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    try:
        check_username(username.strip())
    except ValueError as e:
        return UsernameAvailability(available=False, message=str(e))
    if username_taken(db, username.strip(), exclude_user_id=exclude_id):
        return UsernameAvailability(available=False, message="Username is already taken.")
    return UsernameAvailability(available=True, message="Username is available.")


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    """Update a user's profile. Users may edit themselves; admins may edit their organization's users."""
    is_self = current_user.id == user_id
    if not is_self and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    user = get_organization_user(db, user_id, current_user.organization_id)
    if user.role == RoleEnum.SUPER_ADMIN and current_user.role != RoleEnum.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    updates = user_data.model_dump(exclude_unset=True)

    new_role = updates.get("role")
    if new_role is not None and new_role != user.role:
        if new_role not in ASSIGNABLE_ROLES[current_user.role]:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You cannot assign the role '{new_role.value}'."
            )
        if user.role in ADMIN_ROLES:
            others = db.query(User.id).filter(
                User.organization_id == user.organization_id,
                User.role == user.role,
                User.is_active == True,  # noqa: E712
                User.id != user.id,
            ).first()
            if not others:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Cannot demote the last {user.role.value}."
                )
        user.role = new_role

    new_username = updates.get("username")
    if new_username and new_username.lower() != user.username.lower():
        if username_taken(db, new_username, exclude_user_id=user.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Username is already taken."
            )
    if new_username:
        user.username = new_username
    if updates.get("name"):
        user.name = updates["name"].strip()
    if updates.get("language"):
        user.language = updates["language"]

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already taken."
        )
    db.refresh(user)
    return user


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    """Deactivate a user. Their existing sessions stop working on the next request."""
    if current_user.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account."
        )
    user = get_organization_user(db, user_id, current_user.organization_id)
    if user.role == RoleEnum.SUPER_ADMIN and current_user.role != RoleEnum.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    user.is_active = False
    db.commit()
    logger.info(f"User {user.id} deactivated by user {current_user.id}")
    return {"message": "User deactivated successfully."}


@router.put("/{user_id}/reactivate", response_model=UserResponse)
async def reactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin),
):
    user = get_organization_user(db, user_id, current_user.organization_id)
    if user.role == RoleEnum.SUPER_ADMIN and current_user.role != RoleEnum.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    user.is_active = True
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} reactivated by user {current_user.id}")
    return user


@router.put("/{user_id}/password")
async def change_password(
    user_id: int,
    password_data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user),
):
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only change your own password."
        )
    user = get_organization_user(db, user_id, current_user.organization_id)
    if not verify_password(password_data.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect current password."
        )
    user.password_hash = get_password_hash(password_data.new_password)
    db.commit()
    logger.info(f"User {user.id} changed their password")
    return {"message": "Password updated successfully."}
