# catalog/deps.py
"""
FastAPI dependencies wiring services to their collaborators.

Tests swap collaborators through `app.dependency_overrides`, e.g. an
in-memory object store in place of `get_object_store`.
"""

from functools import lru_cache

from fastapi import Depends, Request

from catalog.core.config import ServiceProfile, get_profile, get_settings
from catalog.core.health import DependencyStatus
from catalog.core.storage import ObjectStore, SupabaseObjectStore
from catalog.core.supabase_client import supabase_admin
from catalog.repositories.product_repo import ProductRepository
from catalog.repositories.user_repo import UserRepository
from catalog.services.auth_service import AuthService, GoogleTokenVerifier
from catalog.services.product_service import ProductService


@lru_cache
def get_object_store() -> ObjectStore:
    settings = get_settings()
    return SupabaseObjectStore(supabase_admin, settings.STORAGE_BUCKET)


def get_dependency_status(request: Request) -> DependencyStatus:
    """Status recorded by the startup probes; all unavailable before startup."""
    return getattr(request.app.state, "dependency_status", DependencyStatus())


def get_product_service(
    store: ObjectStore = Depends(get_object_store),
    status: DependencyStatus = Depends(get_dependency_status),
    profile: ServiceProfile = Depends(get_profile),
) -> ProductService:
    return ProductService(ProductRepository(), store, status, profile)


@lru_cache
def get_auth_service() -> AuthService:
    settings = get_settings()
    verifier = GoogleTokenVerifier(settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CERTS_URL)
    return AuthService(UserRepository(), verifier)
