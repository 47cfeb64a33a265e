"""Application error taxonomy and the single place errors become responses."""

import logging
import re
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourbook.core import config

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went very wrong!"


class AppError(Exception):
    """An operational error whose message is safe to show to clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateConflict(AppError):
    # Surfaced as a client input error rather than 409.
    status_code = status.HTTP_400_BAD_REQUEST


class Fatal(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvalidTokenError(Unauthenticated):
    def __init__(self, message: str = "Invalid token. Please log in again!") -> None:
        super().__init__(message)


class TokenExpiredError(Unauthenticated):
    def __init__(self, message: str = "Your token has expired! Please log in again.") -> None:
        super().__init__(message)


_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")
_POSTGRES_UNIQUE = re.compile(r"Key \((?P<columns>[^)]+)\)=\((?P<value>[^)]*)\) already exists")


def translate_integrity_error(exc: IntegrityError) -> AppError:
    text = str(exc.orig) if exc.orig is not None else str(exc)

    match = _POSTGRES_UNIQUE.search(text)
    if match:
        return DuplicateConflict(
            f"Duplicate field value: {match.group('value')}. Please use another value!"
        )

    match = _SQLITE_UNIQUE.search(text)
    if match:
        columns = ", ".join(column.split(".")[-1] for column in match.group("columns").split(", "))
        return DuplicateConflict(f"Duplicate field value for {columns}. Please use another value!")

    if "duplicate key" in text.lower() or "unique" in text.lower():
        return DuplicateConflict("Duplicate field value. Please use another value!")

    return ValidationError("Invalid input data.")


def translate_validation_error(exc: RequestValidationError) -> ValidationError:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return ValidationError(f"Invalid input data. {'. '.join(messages)}".strip())


def translate(exc: Exception) -> AppError:
    """Map any exception raised while handling a request onto the taxonomy."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, RequestValidationError):
        return translate_validation_error(exc)
    if isinstance(exc, IntegrityError):
        return translate_integrity_error(exc)
    if isinstance(exc, StarletteHTTPException):
        if exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
            return Fatal(GENERIC_ERROR_MESSAGE)
        return AppError(str(exc.detail), exc.status_code)
    return Fatal(GENERIC_ERROR_MESSAGE)


def error_response(request: Request, exc: Exception) -> JSONResponse:
    error = translate(exc)
    if error.status_code >= 500:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, error.status_code, error.message)

    body = {"status": error.status, "message": error.message}
    if config.is_development() and error.status_code >= 500:
        body["error"] = type(exc).__name__
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=error.status_code, content=body)


async def app_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, exc)


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        exc = NotFound(f"Can't find {request.url.path} on this server!")
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, app_error_handler)
    app.add_exception_handler(IntegrityError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(Exception, app_error_handler)
