# catalog/repositories/user_repo.py
import uuid

from sqlmodel import Session, select

from catalog.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_subject(self, session: Session, subject: str) -> User | None:
        """Return the User linked to an identity provider subject."""
        stmt = select(User).where(User.provider_subject == subject)
        return session.exec(stmt).first()

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by unique email, or None if not found."""
        stmt = select(User).where(User.email == email)
        return session.exec(stmt).first()

    def save(self, session: Session, user: User) -> User:
        """Insert or update a User and return the persisted row."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
