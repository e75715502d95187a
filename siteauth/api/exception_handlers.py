# siteauth/api/exception_handlers.py
"""
Maps the exception taxonomy in siteauth.core.exceptions onto HTTP responses.

Client errors become structured 4xx bodies::

    {"detail": "...", "errors": {"email": "..."}}   # 400
    {"detail": "...", "lockedUntil": "..."}         # 423

Storage and hashing failures are logged with their traceback and answered
with an opaque 500 so driver messages never reach the client.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from siteauth.core.exceptions import (
    AccountLockedException,
    AuthAPIException,
    DuplicateEmailException,
    HashingException,
    InvalidCredentialsException,
    InvalidTokenException,
    StorageException,
    ValidationException,
)

EXCEPTION_STATUS: dict[type[AuthAPIException], int] = {
    ValidationException: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialsException: status.HTTP_401_UNAUTHORIZED,
    InvalidTokenException: status.HTTP_401_UNAUTHORIZED,
    DuplicateEmailException: status.HTTP_409_CONFLICT,
    AccountLockedException: status.HTTP_423_LOCKED,
}

INTERNAL_ERROR_DETAIL = "Internal server error"


def _status_for(exc: AuthAPIException) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in EXCEPTION_STATUS:
            return EXCEPTION_STATUS[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def auth_api_exception_handler(request: Request, exc: AuthAPIException) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        if isinstance(exc, (StorageException, HashingException)):
            logger.opt(exception=exc).error(f"{exc.__class__.__name__} on {request.method} {request.url.path}")
        else:
            logger.opt(exception=exc).error(f"Unhandled API error on {request.method} {request.url.path}")
        return JSONResponse(status_code=status_code, content={"detail": INTERNAL_ERROR_DETAIL})

    content: dict = {"detail": exc.message}
    headers = None
    if isinstance(exc, ValidationException):
        content["errors"] = exc.errors
    elif isinstance(exc, AccountLockedException) and exc.locked_until is not None:
        content["lockedUntil"] = exc.locked_until.isoformat()
    elif isinstance(exc, InvalidTokenException):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_DETAIL},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthAPIException, auth_api_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
