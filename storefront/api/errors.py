# storefront/api/errors.py
from fastapi import HTTPException

from storefront.domain.errors import (
    AccessDenied,
    ConflictError,
    NotFoundError,
    StorageError,
    Unauthenticated,
    ValidationError,
)


def to_http(e: Exception) -> HTTPException:
    """Map a service error onto the HTTP status the API promises for it."""
    if isinstance(e, Unauthenticated):
        return HTTPException(status_code=401, detail={"message": e.message})
    if isinstance(e, AccessDenied):
        return HTTPException(status_code=403, detail={"message": e.message})
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail={"message": e.message})
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=e.to_detail())
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=e.to_detail())
    if isinstance(e, StorageError):
        return HTTPException(status_code=500, detail={"message": e.message})
    raise e
