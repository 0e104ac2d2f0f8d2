"""Translate engine errors into HTTP responses.

Routers let ``EngineError`` subclasses propagate; the handler registered in
``stayengine.main`` maps each kind to a status code and a JSON body.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from stayengine.errors import (
    BookingNotFound,
    ConflictError,
    EngineError,
    GuestLimitExceeded,
    HomestayNotFound,
    InvalidRange,
    InvalidTransition,
    PaymentAuthorityError,
    PaymentNotAuthorized,
    PersistenceUnavailable,
)

logger = logging.getLogger(__name__)

# Checked in order; first match wins.
STATUS_BY_ERROR: tuple[tuple[type[EngineError], int], ...] = (
    (InvalidRange, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (GuestLimitExceeded, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (BookingNotFound, status.HTTP_404_NOT_FOUND),
    (HomestayNotFound, status.HTTP_404_NOT_FOUND),
    (PaymentNotAuthorized, status.HTTP_402_PAYMENT_REQUIRED),
    (PaymentAuthorityError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: EngineError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: EngineError) -> dict:
    body: dict = {
        "detail": exc.message,
        "error": type(exc).__name__,
        "retryable": exc.retryable,
    }
    if isinstance(exc, ConflictError):
        body["conflicting_booking_ids"] = [str(booking_id) for booking_id in exc.conflicting_booking_ids]
        body["blocked_dates"] = [day.isoformat() for day in exc.blocked_dates]
    if isinstance(exc, InvalidTransition):
        body["current_status"] = exc.current_status
    return body


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)  # type: ignore[arg-type]
