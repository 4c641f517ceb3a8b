from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from flowdash.core.config import settings
from flowdash.core.database import get_db
from flowdash.core.keys import SessionKeys, get_session_keys
from flowdash.core.logging_config import get_logger
from flowdash.core.security import create_session_token, verify_password
from flowdash.core.session import (
    UserContext,
    clear_session_cookie,
    get_current_user,
    set_session_cookie,
)
from flowdash.core.time_utils import utcnow
from flowdash.core import rate_limit
from flowdash.models.user import User
from flowdash.schemas.auth import LoginRequest, RegisterRequest, SessionResponse, UserResponse
from flowdash.services.registration_service import register_organization

router = APIRouter()
logger = get_logger("auth")


def session_claims(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
        "organization_id": user.organization_id,
    }


def client_ip(request: Request) -> str:
    """Rate-limit key for the caller. X-Forwarded-For counts only when sent by a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    trusted = set(settings.TRUSTED_PROXIES)
    forwarded = request.headers.get("X-Forwarded-For")
    if peer not in trusted or not forwarded:
        return peer
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


@router.post("/login", response_model=SessionResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    keys: SessionKeys = Depends(get_session_keys),
):
    """Verify credentials and start a cookie session."""
    ip = client_ip(request)
    if not rate_limit.hit(f"login:{ip}"):
        logger.warning("login rate limit exceeded for ip=%s", ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later."
        )

    username = credentials.username.strip()
    logger.info("login attempt for username=%s", username)
    user = db.query(User).filter(func.lower(User.username) == username.lower()).first()

    password_valid = False
    if user:
        password_valid = verify_password(credentials.password, user.password_hash)

    if not user or not password_valid:
        logger.warning("login failed for username=%s (user=%s, password_valid=%s)", username, user is not None, password_valid)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.is_active:
        logger.warning("login refused for inactive user_id=%s", user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Please contact your administrator."
        )

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    token = create_session_token(session_claims(user), keys, remember_me=credentials.remember_me)
    set_session_cookie(response, token, remember_me=credentials.remember_me)
    logger.info("login success for username=%s user_id=%s role=%s", user.username, user.id, user.role.value)
    return SessionResponse(message="Login successful", user=UserResponse.model_validate(user))


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(
    request: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    keys: SessionKeys = Depends(get_session_keys),
):
    """Create an organization and its first user, then sign that user in."""
    user = register_organization(request, db)
    token = create_session_token(session_claims(user), keys)
    set_session_cookie(response, token)
    return SessionResponse(message="Registration successful", user=UserResponse.model_validate(user))


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def read_users_me(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == current_user.id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user
