# catalog/core/auth.py
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from catalog.core.config import ServiceProfile, get_profile, get_settings
from catalog.core.errors import ForbiddenError, UnauthorizedError
from catalog.database import get_session
from catalog.models.user import User

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so read-only routes (and servers running without auth) accept anonymous callers.
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user: User, expires_minutes: int | None = None) -> str:
    """
    Issue a signed session token for a signed-in user.

    Claims: sub (user id), email, role, iat, exp.
    """
    now = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.JWT_EXPIRE_MINUTES)
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a session token issued by `create_access_token`.

    Verification:
      - signature (JWT_SECRET / JWT_ALG)
      - expiration time (exp)

    Raises:
        UnauthorizedError: if token is invalid/expired.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the caller from the bearer token.

    Flow:
      1. No Authorization header => anonymous => None.
      2. Verify token, read 'sub' (our user id).
      3. Load the user row; a token for a missing user is rejected.

    Raises:
        UnauthorizedError: if the token is invalid or names no user.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedError("Invalid sub in token")

    user = session.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User no longer exists")
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        UnauthorizedError: if no valid token was sent.
    """
    if user is None:
        raise UnauthorizedError()
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        ForbiddenError: if role is not admin.
    """
    if user.role != "admin":
        raise ForbiddenError("Admin access required")
    return user


def get_caller(
    user: User | None = Depends(get_current_user),
    profile: ServiceProfile = Depends(get_profile),
) -> User | None:
    """
    Caller for product mutations.

    Anonymous callers are allowed only when the profile does not
    require authentication.
    """
    if profile.auth_required and user is None:
        raise UnauthorizedError()
    return user
