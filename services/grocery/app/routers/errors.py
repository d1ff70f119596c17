from __future__ import annotations

from fastapi import HTTPException
from services.grocery.app.services.errors import (
    AuthError,
    InvalidTransitionError,
    LocationRequiredError,
    OrderingError,
    OrderNotFoundError,
    PartialOrderError,
    ProductNotFoundError,
    RemoteUnavailableError,
    StaleStatusError,
    ValidationError,
)

_STATUS_CODES: list[tuple[type[OrderingError], int]] = [
    (ValidationError, 422),
    (AuthError, 401),
    (LocationRequiredError, 412),
    (ProductNotFoundError, 404),
    (OrderNotFoundError, 404),
    (InvalidTransitionError, 409),
    (StaleStatusError, 409),
    (PartialOrderError, 502),
    (RemoteUnavailableError, 503),
]


def raise_ordering_http_error(e: Exception) -> None:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(e, error_type):
            raise HTTPException(status_code=status_code, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e
