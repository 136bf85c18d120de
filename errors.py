import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Not authorized"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class InternalError(AppError):
    status_code = 500


def is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _internal(message: str) -> JSONResponse:
    if is_production():
        message = GENERIC_ERROR_MESSAGE
    return _message(500, message)


def _describe_validation(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationError.default_message
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = first.get("msg", ValidationError.default_message)
    return f"{loc}: {msg}" if loc else msg


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _internal(exc.message)
    return _message(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: HTTPException):
    return _message(exc.status_code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _message(400, _describe_validation(exc))


async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return _internal(str(exc))


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _internal(str(exc) or GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI):
    """Render every failure as {"message": ...} with the matching status code."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
