"""Domain error taxonomy and its translation to HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""

    code = "internal"


class InvalidTicketInputError(TicketServiceError):
    """Raised when a request has a missing, malformed or disallowed field."""

    code = "invalid_argument"


class TicketNotFoundError(TicketServiceError):
    """Raised when an operation targets a non-existent ticket."""

    code = "not_found"


class TicketPermissionError(TicketServiceError):
    """Raised when the caller may not mutate the ticket."""

    code = "permission_denied"


_HTTP_STATUS: dict[type[TicketServiceError], int] = {
    InvalidTicketInputError: status.HTTP_400_BAD_REQUEST,
    TicketNotFoundError: status.HTTP_404_NOT_FOUND,
    TicketPermissionError: status.HTTP_403_FORBIDDEN,
}


def error_response(status_code: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


async def ticket_error_handler(request: Request, exc: TicketServiceError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _HTTP_STATUS.items() if isinstance(exc, error_type)),
        None,
    )
    if status_code is None:
        logger.error("Unmapped ticket error on %s %s: %s", request.method, request.url.path, exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal", "internal error")
    return error_response(status_code, exc.code, str(exc))


_LOCATION_MESSAGES = {"body": "invalid body", "query": "invalid query", "path": "invalid id"}


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in errors]
    logger.debug("Rejected request on %s: %s", request.url.path, fields)
    location = errors[0].get("loc", ("",))[0] if errors else ""
    detail = _LOCATION_MESSAGES.get(str(location), "invalid request")
    return error_response(status.HTTP_400_BAD_REQUEST, "invalid_argument", detail)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal", "internal error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TicketServiceError, ticket_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
