"""Translation of cart domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import (
    CartServiceError,
    IncompleteProductDataError,
    InsufficientPhysicalDataError,
    InsufficientStockError,
    NoDeliveryOptionsError,
    NotFoundError,
    OriginNotConfiguredError,
    ServiceUnavailableError,
    TransactionConflictError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[CartServiceError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (TransactionConflictError, status.HTTP_409_CONFLICT),
    (IncompleteProductDataError, 422),
    (InsufficientPhysicalDataError, 422),
    (OriginNotConfiguredError, 422),
    (NoDeliveryOptionsError, status.HTTP_404_NOT_FOUND),
    (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: CartServiceError) -> HTTPException:
    detail: str | dict[str, object] = str(exc)
    if isinstance(exc, IncompleteProductDataError):
        detail = {"message": str(exc), "productIds": exc.product_ids}
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
