"""
Translate the typed service errors into HTTP responses.

StorageFailureError is the only kind logged with internal detail; its
response body stays generic. BusyError carries a Retry-After header.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from event_reservations.core.exceptions import BusyError, ReservationError, StorageFailureError
from event_reservations.core.logging import get_logger

logger = get_logger(__name__)


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    headers = None
    if isinstance(exc, BusyError):
        headers = {"Retry-After": str(exc.retry_after)}

    if isinstance(exc, StorageFailureError):
        logger.error(
            "storage_failure_response",
            path=request.url.path,
            cause=repr(exc.__cause__) if exc.__cause__ else None,
        )
    else:
        logger.info(
            "request_rejected",
            path=request.url.path,
            error_code=exc.error_code.value,
            status_code=exc.http_status,
        )

    return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, reservation_error_handler)
