from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from blog_api.log import logger


class AppError(Exception):
    """
    Base for errors that map onto an HTTP response.

    `field` is the body key the message is reported under. User routes answer
    with {"message": ...}, post routes with {"error": ...}.
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, field: str = "message") -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {self.field: self.message}


class ValidationError(AppError):
    status = HTTPStatus.BAD_REQUEST
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    status = HTTPStatus.UNAUTHORIZED
    default_message = "Not authenticated"


class NotFoundError(AppError):
    status = HTTPStatus.NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status = HTTPStatus.CONFLICT
    default_message = "Conflict"


class UpstreamUnavailableError(AppError):
    status = HTTPStatus.SERVICE_UNAVAILABLE
    default_message = "Service unavailable"


class InternalError(AppError):
    pass


def error_response(err: AppError) -> JSONResponse:
    return JSONResponse(status_code=int(err.status), content=err.to_dict())


def _describe_validation(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    where = ".".join(loc)
    msg = first.get("msg", "invalid value")
    return f"{where}: {msg}" if where else msg


def install_error_handlers(app: FastAPI) -> None:
    """Map every failure onto a JSON body carrying `message` or `error`."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        logger.warning(
            f"Handled {type(exc).__name__} ({int(exc.status)}) on {request.method} {request.url.path}: {exc.message}"
        )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        err = ValidationError(_describe_validation(exc))
        logger.warning(f"Rejected request on {request.method} {request.url.path}: {err.message}")
        return error_response(err)

    @app.exception_handler(OperationalError)
    async def _store_unavailable(request: Request, exc: OperationalError):
        logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc.orig!r}")
        return error_response(UpstreamUnavailableError("Database unavailable"))

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError):
        logger.opt(exception=exc).error(f"Database error on {request.method} {request.url.path}")
        return error_response(InternalError())

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(InternalError())
