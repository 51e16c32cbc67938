# catalog/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Federated user profile.

    Identity:
      - provider_subject: the identity provider's "sub" claim
      - provider: which provider issued it (e.g. "google")

    Role:
      - "customer" | "admin"
      - admins may modify any product; customers only their own.

    Rows are created on first sign-in and refreshed on later sign-ins.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    provider_subject: str = Field(
        unique=True,
        index=True,
        description="Subject id from the identity provider",
    )

    email: str = Field(
        unique=True,
        index=True,
    )

    name: str = Field(max_length=100)

    avatar_url: str | None = None

    role: str = Field(
        default="customer",
        index=True,
        description="Application role: customer | admin",
    )

    provider: str = Field(default="google", max_length=50)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
