import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STARTUP_PROBE_ATTEMPTS", "1")
os.environ.setdefault("STARTUP_PROBE_DELAY_SECONDS", "0")

from collections.abc import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from catalog.core.auth import create_access_token  # noqa: E402
from catalog.core.config import ServiceProfile, get_profile  # noqa: E402
from catalog.core.health import DependencyStatus  # noqa: E402
from catalog.core.storage import ImagePayload, StoredImage  # noqa: E402
from catalog.database import get_session  # noqa: E402
from catalog.deps import get_dependency_status, get_object_store  # noqa: E402
from catalog.main import app  # noqa: E402
from catalog.models.user import User  # noqa: E402
from catalog.repositories.product_repo import ProductRepository  # noqa: E402
from catalog.services.product_service import ProductService  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def png(name: str = "photo.png") -> ImagePayload:
    return ImagePayload(content_type="image/png", data=PNG_BYTES, filename=name)


class FakeObjectStore:
    """
    In-memory ObjectStore.

    - `fail_uploads`: 1-based upload call numbers that raise.
    - `fail_all_uploads` / `fail_deletes`: make every call of that kind raise.
    Deleting an unknown storage id is a no-op, like the real bucket.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_uploads: set[int] = set()
        self.fail_all_uploads = False
        self.fail_deletes = False
        self.upload_calls = 0

    def upload(self, payload: ImagePayload, folder: str) -> StoredImage:
        self.upload_calls += 1
        if self.fail_all_uploads or self.upload_calls in self.fail_uploads:
            raise RuntimeError("storage upload failed")
        storage_id = f"{folder}/img-{self.upload_calls}.{payload.extension}"
        self.objects[storage_id] = payload.data
        self.uploaded.append(storage_id)
        return StoredImage(url=f"https://cdn.test/{storage_id}", storage_id=storage_id)

    def delete(self, storage_id: str) -> None:
        if self.fail_deletes:
            raise RuntimeError("storage delete failed")
        self.objects.pop(storage_id, None)
        self.deleted.append(storage_id)

    def ping(self) -> None:
        return None


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Create a fresh in-memory database session for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from catalog.models.product import Product, ProductImage  # noqa: F401
    from catalog.models.user import User as _User  # noqa: F401

    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        try:
            yield session
        finally:
            session.rollback()
            session.close()
            engine.dispose()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def ready() -> DependencyStatus:
    return DependencyStatus(database=True, storage=True)


@pytest.fixture
def profile() -> ServiceProfile:
    return ServiceProfile(placeholder_image_url="https://cdn.test/placeholder.png")


@pytest.fixture
def service(
    store: FakeObjectStore, ready: DependencyStatus, profile: ServiceProfile
) -> ProductService:
    return ProductService(ProductRepository(), store, ready, profile)


@pytest.fixture
def make_user(session: Session) -> Callable[..., User]:
    def _make_user(email: str, role: str = "customer") -> User:
        user = User(
            provider_subject=f"sub-{email}",
            email=email,
            name=email.split("@")[0],
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_header() -> Callable[[User], dict[str, str]]:
    def _auth_header(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _auth_header


@pytest.fixture
def make_client(
    session: Session, store: FakeObjectStore, ready: DependencyStatus
) -> Generator[Callable[..., TestClient], None, None]:
    """
    Build a TestClient wired to the test session and fake store.

    The lifespan is not run; dependency status comes from the override.
    """

    def _make_client(
        profile: ServiceProfile | None = None,
        status: DependencyStatus | None = None,
    ) -> TestClient:
        def override_get_session():
            yield session

        app.dependency_overrides[get_session] = override_get_session
        app.dependency_overrides[get_object_store] = lambda: store
        app.dependency_overrides[get_dependency_status] = lambda: status or ready
        app.dependency_overrides[get_profile] = lambda: profile or ServiceProfile()
        return TestClient(app)

    try:
        yield _make_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()
