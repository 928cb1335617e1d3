from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger("theatre_shifts.errors")


class DomainError(Exception):
    """Base for errors raised by services and converted to JSON at the HTTP boundary."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class AssignmentMismatch(NotFound):
    default_message = "Assignment not found"


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class SwapFailed(Conflict):
    default_message = "Swap failed, volunteer kept on original shift"


class ValidationFailed(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthorized(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Unavailable(DomainError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Database unavailable"


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            log.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        else:
            log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg", "Invalid request")
        return _error(status.HTTP_400_BAD_REQUEST, f"{loc}: {msg}" if loc else msg)

    @app.exception_handler(OperationalError)
    async def db_unavailable(request: Request, exc: OperationalError):
        log.error("database unavailable on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, Unavailable.default_message)
