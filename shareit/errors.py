"""Error kinds raised by the services and their HTTP envelopes.

Every error except ``UnsupportedStateError`` renders as
``{"error": <title>, "description": <message>}``. An unknown ``state``
filter renders as ``{"error": <message>}`` so clients can tell it apart
from ordinary bad input.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class ShareItError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShareItError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not found"


class ForbiddenError(ShareItError):
    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"


class ValidationError(ShareItError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Validation error"


class TemporalValidationError(ValidationError):
    title = "Invalid booking period"


class ConflictError(ShareItError):
    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"


class UnsupportedStateError(Exception):
    def __init__(self, state: str):
        self.state = state
        self.message = f"Unknown state: {state}"
        super().__init__(self.message)


def error_body(title: str, description: str) -> dict:
    return {"error": title, "description": description}


async def shareit_error_handler(request: Request, exc: ShareItError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.title, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.title, exc.message))


async def unsupported_state_handler(request: Request, exc: UnsupportedStateError):
    logger.warning("%s %s -> %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("%s %s -> malformed request: %s", request.method, request.url.path, problems)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Malformed request", problems),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    cause = str(exc.orig) if exc.orig is not None else str(exc)
    logger.error("%s %s -> integrity violation: %s", request.method, request.url.path, cause)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("Data integrity violation", f"Database error: {cause}"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShareItError, shareit_error_handler)
    app.add_exception_handler(UnsupportedStateError, unsupported_state_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
