# catalog/database.py
from sqlalchemy import text
from sqlmodel import SQLModel, create_engine, Session

from catalog.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=5       : connections shared by all request handlers
# - pool_pre_ping=True: validate connections before using them
#
# SQLite URLs (local development) get none of the pool options.
# ---------------------------------------------------------


def _engine_url(url: str) -> str:
    """Append sslmode=require to Postgres URLs that don't set it."""
    if not url.startswith("postgres") or "sslmode=" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}sslmode=require"


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5}


db_url = _engine_url(settings.DATABASE_URL)

engine = create_engine(
    db_url,
    echo=False,  # set to True if you want to debug SQL queries
    **_engine_options(db_url),
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    # Import models so SQLModel metadata is populated before create_all()
    from catalog.models import product as _product_models  # noqa: F401
    from catalog.models import user as _user_models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def ping() -> None:
    """Run a trivial query; raises if the database is unreachable."""
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
