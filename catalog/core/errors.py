# catalog/core/errors.py
"""
Error taxonomy for the catalog service.

Every error is an HTTPException so services can raise it directly and the
router layer needs no translation. The handlers registered by
`register_exception_handlers` render all of them with the response
envelope used across the API:

    {"success": false, "message": "<detail>"}
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CatalogError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
        )

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid product data"


class PayloadTooLargeError(ValidationError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "Image too large"


class UnauthorizedError(CatalogError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(CatalogError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to modify this product"


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Product not found"


class StorageError(CatalogError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Image storage failed"


class PersistenceError(CatalogError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to save product"


class DuplicateSkuError(PersistenceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "A product with this SKU already exists"


class UnavailableError(CatalogError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    response = _envelope(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = ValidationError.default_message
    return _envelope(status.HTTP_400_BAD_REQUEST, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
