# catalog/routers/auth.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from catalog.core.auth import require_admin, require_auth
from catalog.database import get_session
from catalog.deps import get_auth_service
from catalog.models.user import User
from catalog.schemas.user import (
    GoogleLogin,
    LoginEnvelope,
    UserEnvelope,
    UserRead,
    UserRoleUpdate,
)
from catalog.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/google", response_model=LoginEnvelope)
def login_with_google(
    payload: GoogleLogin,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    """
    Exchange a Google ID token for a session token.

    The user row is created on first sign-in (role "customer") and its
    profile fields are refreshed on every later sign-in.
    """
    token, user = service.login_with_google(session, payload.credential)
    return LoginEnvelope(token=token, user=UserRead.model_validate(user))


@router.get("/me", response_model=UserEnvelope)
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.
    """
    return UserEnvelope(user=UserRead.model_validate(current_user))


@router.patch(
    "/users/{user_id}/role",
    response_model=UserEnvelope,
    dependencies=[Depends(require_admin)],
)
def change_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    """
    Update a user's role (admin only).

    Allowed roles: customer, admin.
    """
    user = service.set_role(session, user_id, payload.role)
    return UserEnvelope(user=UserRead.model_validate(user))
