"""
Session & authorization gate.

Every protected route resolves its caller through ``require_roles``:

    token (cookie or bearer) -> verify_session_token -> authorize -> UserContext

A rejected request never reaches the route handler. Rejections are
HTTPException subclasses so the application's HTTP error handler renders
them; ``InactiveUser`` additionally asks the handler to clear the cookie.
"""
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flowdash.core.config import settings
from flowdash.core.database import get_db
from flowdash.core.keys import SessionKeys, get_session_keys
from flowdash.core.logging_config import get_logger
from flowdash.core.security import (
    TokenError,
    TokenExpiredError,
    decode_session_token,
    session_lifetime,
)
from flowdash.models.user import RoleEnum, User

logger = get_logger("session")


class SessionError(HTTPException):
    clear_session = False


class Unauthenticated(SessionError):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InactiveUser(SessionError):
    clear_session = True

    def __init__(self, detail: str = "Unauthorized: User is inactive"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class Forbidden(SessionError):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ServiceUnavailable(SessionError):
    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


@dataclass(frozen=True)
class UserContext:
    id: int
    username: str
    role: RoleEnum
    organization_id: int

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


ADMIN_ROLES = frozenset({RoleEnum.SUPER_ADMIN, RoleEnum.ADMIN})


def verify_session_token(token: Optional[str], keys: SessionKeys) -> dict:
    """Return the claims of a valid session token or raise ``Unauthenticated``."""
    if not token:
        raise Unauthenticated("No token provided")
    try:
        return decode_session_token(token, keys)
    except TokenExpiredError:
        logger.info("session rejected: token expired")
        raise Unauthenticated("Session expired")
    except TokenError as e:
        logger.warning("session rejected: %s", e)
        raise Unauthenticated("Invalid token")


def authorize(
    claims: Mapping[str, Any],
    db: Session,
    required_roles: Optional[Iterable[RoleEnum]] = None,
) -> UserContext:
    """
    Check the live activation flag and the role allow-list for verified claims.

    Performs exactly one database lookup. A failing lookup surfaces as
    ``ServiceUnavailable`` rather than an authentication failure.
    """
    try:
        user_id = int(claims["id"])
        role = RoleEnum(claims["role"])
        organization_id = int(claims["organization_id"])
        username = str(claims["username"])
    except (KeyError, TypeError, ValueError):
        logger.warning("session rejected: malformed claims")
        raise Unauthenticated("Invalid token")

    try:
        row = db.query(User.is_active).filter(User.id == user_id).first()
    except SQLAlchemyError:
        logger.error("session check failed: user lookup error for user_id=%s", user_id, exc_info=True)
        raise ServiceUnavailable()

    if row is None or not row.is_active:
        logger.warning("session rejected: user_id=%s missing or inactive", user_id)
        raise InactiveUser()

    if required_roles is not None:
        allowed = {RoleEnum(r) for r in required_roles}
        if allowed and role not in allowed:
            logger.warning(
                "access denied: user_id=%s role=%s allowed=%s",
                user_id, role.value, sorted(r.value for r in allowed),
            )
            raise Forbidden()

    return UserContext(id=user_id, username=username, role=role, organization_id=organization_id)


def get_session_token(request: Request) -> Optional[str]:
    """Session token from the bearer header, falling back to the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def require_roles(*roles: RoleEnum) -> Callable[..., UserContext]:
    """
    Dependency factory guarding a route. With no roles any active user passes.

        @router.get("/", dependencies=[Depends(require_roles(RoleEnum.ADMIN))])
        async def handler(current_user: UserContext = Depends(get_current_user)): ...
    """
    required = frozenset(roles) or None

    def dependency(
        token: Optional[str] = Depends(get_session_token),
        keys: SessionKeys = Depends(get_session_keys),
        db: Session = Depends(get_db),
    ) -> UserContext:
        claims = verify_session_token(token, keys)
        return authorize(claims, db, required)

    return dependency


get_current_user = require_roles()
require_admin = require_roles(RoleEnum.ADMIN, RoleEnum.SUPER_ADMIN)


def set_session_cookie(response: Response, token: str, remember_me: bool = False) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(session_lifetime(remember_me).total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
