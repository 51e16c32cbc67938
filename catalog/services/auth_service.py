# catalog/services/auth_service.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from cachetools import TTLCache
from jose import jwt, JWTError
from sqlmodel import Session

from catalog.core.auth import create_access_token
from catalog.core.errors import NotFoundError, UnauthorizedError, UnavailableError
from catalog.models.user import User
from catalog.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class GoogleTokenVerifier:
    """
    Verify Google ID tokens (the `credential` from Google Identity Services).

    Checks:
      - RS256 signature against Google's published JWKS (cached for an hour)
      - audience == our OAuth client id
      - issuer is accounts.google.com
      - expiration
      - email_verified
    """

    _JWKS_CACHE: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=4, ttl=3600)

    def __init__(self, client_id: str | None, certs_url: str, timeout: float = 5.0):
        self.client_id = client_id
        self.certs_url = certs_url
        self.timeout = timeout

    def _jwks(self) -> dict[str, Any]:
        cached = self._JWKS_CACHE.get(self.certs_url)
        if cached:
            return cached
        try:
            response = httpx.get(self.certs_url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Could not fetch Google signing keys: %s", e)
            raise UnavailableError("Identity provider unavailable")
        jwks = response.json()
        self._JWKS_CACHE[self.certs_url] = jwks
        return jwks

    def verify(self, credential: str) -> dict[str, Any]:
        """
        Returns:
            Verified ID-token claims.

        Raises:
            UnauthorizedError: invalid token.
            UnavailableError: sign-in not configured or keys unreachable.
        """
        if not self.client_id:
            raise UnavailableError("Google sign-in is not configured")
        try:
            claims = jwt.decode(
                credential,
                self._jwks(),
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=GOOGLE_ISSUERS,
                options={"verify_at_hash": False},
            )
        except JWTError as e:
            logger.info("Rejected Google ID token: %s", e)
            raise UnauthorizedError("Invalid Google credential")

        if not claims.get("sub") or not claims.get("email"):
            raise UnauthorizedError("Google credential missing sub/email")
        if claims.get("email_verified") is False:
            raise UnauthorizedError("Google account email is not verified")
        return claims


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email when the provider sends none.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


class AuthService:
    """
    Federated sign-in.

    Responsibilities:
      - verify the provider token
      - create the user on first sign-in (role "customer")
      - refresh profile fields on later sign-ins
      - issue our own session token
    """

    def __init__(self, repo: UserRepository, verifier: GoogleTokenVerifier):
        self.repo = repo
        self.verifier = verifier

    def upsert_user(
        self,
        session: Session,
        claims: dict[str, Any],
        provider: str = "google",
    ) -> User:
        subject = str(claims["sub"])
        email = str(claims["email"]).lower()
        name = claims.get("name") or _default_name_from_email(email)
        avatar_url = claims.get("picture")

        user = self.repo.get_by_subject(session, subject)
        if user is None:
            # Same email signed in before through another subject: link it.
            user = self.repo.get_by_email(session, email)

        if user is None:
            user = User(
                provider_subject=subject,
                email=email,
                name=name,
                avatar_url=avatar_url,
                role="customer",
                provider=provider,
            )
            logger.info("Created user %s on first sign-in", email)
        else:
            user.provider_subject = subject
            user.email = email
            user.name = name
            user.avatar_url = avatar_url or user.avatar_url
            user.provider = provider
            user.updated_at = datetime.now(timezone.utc)

        return self.repo.save(session, user)

    def login_with_google(self, session: Session, credential: str) -> tuple[str, User]:
        """
        Returns:
            (session token, user)
        """
        claims = self.verifier.verify(credential)
        user = self.upsert_user(session, claims, provider="google")
        return create_access_token(user), user

    def set_role(self, session: Session, user_id: uuid.UUID, role: str) -> User:
        """Change a user's role (admin only)."""
        user = self.repo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError("User not found")
        user.role = role
        user.updated_at = datetime.now(timezone.utc)
        return self.repo.save(session, user)
