# catalog/core/config.py
from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class ServiceProfile:
    """
    Behaviour switches for one deployment of the catalog service.

    - auth_required: mutating routes need a caller, and only the product
      owner or an admin may update/delete.
    - multi_image: products keep an ordered gallery instead of one image.
    - reclaim_dropped_images: delete stored images that an update removes
      from the record.
    """

    auth_required: bool = False
    multi_image: bool = True
    cors_origins: tuple[str, ...] = ()
    max_image_bytes: int = 5 * 1024 * 1024
    max_images: int = 10
    reclaim_dropped_images: bool = True
    placeholder_image_url: str = "https://placehold.co/600x400?text=No+Image"
    storage_folder: str = "myAppUploads"


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string)
      - JWT_SECRET (signing secret for session tokens)

    Storage (Supabase):
      - SUPABASE_URL
      - SUPABASE_SERVICE_ROLE_KEY
    """

    PROJECT_NAME: str = "Product Catalog API"
    API_PREFIX: str = "/api"

    DATABASE_URL: str

    # Supabase Storage
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "assets"
    STORAGE_FOLDER: str = "myAppUploads"

    # Session tokens issued by this service
    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Google sign-in
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CERTS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"

    # Service profile
    AUTH_REQUIRED: bool = False
    MULTI_IMAGE: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_IMAGES: int = 10
    RECLAIM_DROPPED_IMAGES: bool = True
    PLACEHOLDER_IMAGE_URL: str = "https://placehold.co/600x400?text=No+Image"

    # Startup connectivity probe
    STARTUP_PROBE_ATTEMPTS: int = 5
    STARTUP_PROBE_DELAY_SECONDS: float = 2.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def profile(self) -> ServiceProfile:
        return ServiceProfile(
            auth_required=self.AUTH_REQUIRED,
            multi_image=self.MULTI_IMAGE,
            cors_origins=tuple(self.CORS_ORIGINS),
            max_image_bytes=self.MAX_IMAGE_BYTES,
            max_images=self.MAX_IMAGES,
            reclaim_dropped_images=self.RECLAIM_DROPPED_IMAGES,
            placeholder_image_url=self.PLACEHOLDER_IMAGE_URL,
            storage_folder=self.STORAGE_FOLDER,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()


def get_profile() -> ServiceProfile:
    """FastAPI dependency returning the configured service profile."""
    return get_settings().profile()
