from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
from flowdash.core.config import settings
from flowdash.core.keys import SessionKeys

# Only these claims are ever signed into a session token
SESSION_CLAIMS = ("id", "username", "role", "organization_id")


class TokenError(Exception):
    """Raised when a session token cannot be trusted."""


class TokenExpiredError(TokenError):
    pass


def _password_bytes(password: str) -> bytes:
    # bcrypt only considers the first 72 bytes
    return password.encode("utf-8")[:72]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def session_lifetime(remember_me: bool = False) -> timedelta:
    if remember_me:
        return timedelta(days=settings.REMEMBER_ME_EXPIRE_DAYS)
    return timedelta(days=settings.SESSION_EXPIRE_DAYS)


def create_session_token(
    claims: Mapping[str, Any],
    keys: SessionKeys,
    remember_me: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign a session token for the given user claims.

    Anything beyond id, username, role and organization_id is dropped so that
    password hashes or profile data never end up in a cookie.
    """
    missing = [name for name in SESSION_CLAIMS if claims.get(name) is None]
    if missing:
        raise ValueError(f"Session claims missing: {', '.join(missing)}")

    issued_at = now or datetime.now(timezone.utc)
    to_encode = {name: claims[name] for name in SESSION_CLAIMS}
    to_encode.update({
        "iat": issued_at,
        "exp": issued_at + session_lifetime(remember_me),
    })
    return jwt.encode(to_encode, keys.private_key, algorithm=keys.algorithm)


def decode_session_token(token: str, keys: SessionKeys) -> dict:
    """
    Verify signature, algorithm and expiry of a session token and return its claims.

    Raises:
        TokenExpiredError: the token's exp is in the past
        TokenError: bad signature, unexpected algorithm or malformed token
    """
    try:
        payload = jwt.decode(
            token,
            keys.public_key,
            algorithms=[keys.algorithm],
            options={"require_exp": True},
        )
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Session token expired") from e
    except JWTError as e:
        raise TokenError(str(e)) from e

    missing = [name for name in SESSION_CLAIMS if payload.get(name) is None]
    if missing:
        raise TokenError(f"Session token missing claims: {', '.join(missing)}")
    return payload
