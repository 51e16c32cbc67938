"""Session tokens, Google ID-token verification and federated sign-in."""

import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt
from sqlmodel import Session

from catalog.core.auth import create_access_token, decode_access_token
from catalog.core.errors import UnauthorizedError, UnavailableError
from catalog.deps import get_auth_service
from catalog.main import app
from catalog.repositories.user_repo import UserRepository
from catalog.services.auth_service import AuthService, GoogleTokenVerifier

CLIENT_ID = "client-123.apps.googleusercontent.com"
CERTS_URL = "https://certs.test/google"


@pytest.fixture(scope="module")
def signing_key() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def verifier(signing_key: str) -> GoogleTokenVerifier:
    public = jwk.construct(signing_key, "RS256").public_key().to_dict()
    public["kid"] = "test-key"
    GoogleTokenVerifier._JWKS_CACHE[CERTS_URL] = {"keys": [public]}
    yield GoogleTokenVerifier(CLIENT_ID, CERTS_URL)
    GoogleTokenVerifier._JWKS_CACHE.clear()


def google_token(signing_key: str, **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "google-sub-1",
        "email": "Ada@Example.com",
        "email_verified": True,
        "name": "Ada Lovelace",
        "picture": "https://pics.test/ada.png",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return jwt.encode(claims, signing_key, algorithm="RS256", headers={"kid": "test-key"})


class TestSessionToken:
    def test_claims(self, make_user):
        user = make_user("admin@example.com", role="admin")

        claims = decode_access_token(create_access_token(user))

        assert claims["sub"] == str(user.id)
        assert claims["role"] == "admin"

    def test_expired(self, make_user):
        user = make_user("old@example.com")
        token = create_access_token(user, expires_minutes=-1)

        with pytest.raises(UnauthorizedError):
            decode_access_token(token)


class TestGoogleTokenVerifier:
    def test_valid_token(self, verifier: GoogleTokenVerifier, signing_key: str):
        claims = verifier.verify(google_token(signing_key))

        assert claims["sub"] == "google-sub-1"

    def test_wrong_audience(self, verifier: GoogleTokenVerifier, signing_key: str):
        with pytest.raises(UnauthorizedError):
            verifier.verify(google_token(signing_key, aud="someone-else"))

    def test_wrong_issuer(self, verifier: GoogleTokenVerifier, signing_key: str):
        with pytest.raises(UnauthorizedError):
            verifier.verify(google_token(signing_key, iss="https://evil.test"))

    def test_unverified_email(self, verifier: GoogleTokenVerifier, signing_key: str):
        with pytest.raises(UnauthorizedError):
            verifier.verify(google_token(signing_key, email_verified=False))

    def test_not_configured(self):
        with pytest.raises(UnavailableError):
            GoogleTokenVerifier(None, CERTS_URL).verify("token")


class TestAuthService:
    def test_first_login_creates_customer(self, session: Session, verifier, signing_key):
        service = AuthService(UserRepository(), verifier)

        token, user = service.login_with_google(session, google_token(signing_key))

        assert user.email == "ada@example.com"
        assert user.role == "customer"
        assert user.provider == "google"
        assert decode_access_token(token)["sub"] == str(user.id)

    def test_later_login_refreshes_profile(self, session: Session, verifier, signing_key):
        service = AuthService(UserRepository(), verifier)
        _, first = service.login_with_google(session, google_token(signing_key))
        service.set_role(session, first.id, "admin")

        _, again = service.login_with_google(
            session, google_token(signing_key, name="Countess Ada", picture="https://pics.test/new.png")
        )

        assert again.id == first.id
        assert again.name == "Countess Ada"
        assert again.avatar_url == "https://pics.test/new.png"
        assert again.role == "admin"


class TestAuthRoutes:
    def test_google_login_and_me(self, make_client, session: Session, verifier, signing_key):
        client = make_client()
        app.dependency_overrides[get_auth_service] = lambda: AuthService(UserRepository(), verifier)

        login = client.post("/api/auth/google", json={"credential": google_token(signing_key)})
        assert login.status_code == 200
        body = login.json()
        assert body["success"] is True
        assert body["user"]["email"] == "ada@example.com"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["id"] == body["user"]["id"]

    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Authentication required"}

    def test_role_change_is_admin_only(self, client, make_user, auth_header):
        admin = make_user("admin@example.com", role="admin")
        customer = make_user("c@example.com")

        denied = client.patch(
            f"/api/auth/users/{customer.id}/role",
            json={"role": "admin"},
            headers=auth_header(customer),
        )
        assert denied.status_code == 403

        granted = client.patch(
            f"/api/auth/users/{customer.id}/role",
            json={"role": "admin"},
            headers=auth_header(admin),
        )
        assert granted.status_code == 200
        assert granted.json()["user"]["role"] == "admin"
