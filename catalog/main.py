# catalog/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from catalog.core.config import get_settings
from catalog.core.errors import register_exception_handlers
from catalog.core.health import DependencyStatus, probe_dependency
from catalog.database import create_db_and_tables, ping
from catalog.deps import get_object_store

# Routers
from catalog.routers.auth import router as auth_router
from catalog.routers.health import router as health_router
from catalog.routers.products import legacy_router, router as products_router

settings = get_settings()
profile = settings.profile()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


def _check_database() -> None:
    ping()
    create_db_and_tables()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Probe the database (and create tables) and the image storage,
        each up to STARTUP_PROBE_ATTEMPTS times. The probes sleep between
        attempts, so they run in the threadpool.
      - Record the outcome in app.state.dependency_status; requests that
        need an unavailable dependency answer 503.
    """
    logger.info("🔄 Startup: probing database and image storage...")
    app.state.dependency_status = DependencyStatus(
        database=await run_in_threadpool(
            probe_dependency,
            "database",
            _check_database,
            attempts=settings.STARTUP_PROBE_ATTEMPTS,
            delay_seconds=settings.STARTUP_PROBE_DELAY_SECONDS,
        ),
        storage=await run_in_threadpool(
            probe_dependency,
            "storage",
            get_object_store().ping,
            attempts=settings.STARTUP_PROBE_ATTEMPTS,
            delay_seconds=settings.STARTUP_PROBE_DELAY_SECONDS,
        ),
    )
    if app.state.dependency_status.ready:
        logger.info("✅ Startup: all dependencies connected.")
    else:
        logger.error("❌ Startup: running degraded: %s", app.state.dependency_status.as_dict())
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(profile.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(products_router, prefix=settings.API_PREFIX)
app.include_router(legacy_router, prefix=settings.API_PREFIX)
