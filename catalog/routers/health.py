# catalog/routers/health.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from catalog.core.health import DependencyStatus
from catalog.deps import get_dependency_status

router = APIRouter(tags=["Health"])


@router.get("/")
def root(status: DependencyStatus = Depends(get_dependency_status)):
    """Service banner with dependency status."""
    return {"success": True, "service": "product-catalog", **status.as_dict()}


@router.get("/health")
def health(status: DependencyStatus = Depends(get_dependency_status)):
    """
    Health check.

    Answers 503 while the database or the image storage is unavailable.
    """
    body = {"success": status.ready, "status": "ok" if status.ready else "degraded"}
    body.update(status.as_dict())
    return JSONResponse(status_code=200 if status.ready else 503, content=body)
