# catalog/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

# App-level roles. Anonymous callers have no row.
Role = Literal["customer", "admin"]


class GoogleLogin(SQLModel):
    """
    Payload for federated sign-in.

    `credential` is the Google ID token returned to the browser by
    Google Identity Services.
    """

    model_config = ConfigDict(extra="forbid")

    credential: str

    @field_validator("credential")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("credential cannot be empty")
        return v


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    name: str
    avatar_url: str | None = None
    role: Role
    provider: str
    created_at: datetime


class UserEnvelope(SQLModel):
    success: bool = True
    user: UserRead


class LoginEnvelope(SQLModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: UserRead


class UserRoleUpdate(SQLModel):
    """
    Admin-only role update schema.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role
