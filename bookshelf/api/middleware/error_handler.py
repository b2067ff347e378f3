"""
Error Handling for Bookshelf

Centralized error handling:
- Structured error responses ({error, message, code, timestamp})
- Logging of errors
- Exception translation
"""

import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging import get_request_id

GENERIC_ERROR_MESSAGE = "Something went wrong"


class BookshelfException(Exception):
    """Base exception for Bookshelf errors."""

    error = "Internal Server Error"

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        headers: dict = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.headers = headers
        super().__init__(message)


class ValidationError(BookshelfException):
    """Input validation failed."""

    error = "Bad Request"

    def __init__(self, message: str):
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=400)


class AuthenticationError(BookshelfException):
    """Missing or bad credentials."""

    error = "Unauthorized"

    def __init__(self, message: str = "Missing or invalid token"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(BookshelfException):
    """Authenticated, but not allowed."""

    error = "Forbidden"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message=message, code="FORBIDDEN", status_code=403)


class NotFoundError(BookshelfException):
    """Resource not found, or not owned by the caller."""

    error = "Not Found"

    def __init__(self, resource: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
        )


class ConflictError(BookshelfException):
    """Unique key already taken."""

    error = "Conflict"

    def __init__(self, message: str):
        super().__init__(message=message, code="CONFLICT", status_code=409)


class RateLimitError(BookshelfException):
    """Rate limit exceeded."""

    error = "Too Many Requests"

    def __init__(self, retry_after: int):
        super().__init__(
            message="Too many attempts, try again later",
            code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )


_HTTP_ERRORS = {
    400: ("Bad Request", "VALIDATION_ERROR"),
    401: ("Unauthorized", "UNAUTHORIZED"),
    403: ("Forbidden", "FORBIDDEN"),
    404: ("Not Found", "NOT_FOUND"),
    405: ("Method Not Allowed", "METHOD_NOT_ALLOWED"),
    409: ("Conflict", "CONFLICT"),
    429: ("Too Many Requests", "RATE_LIMIT_EXCEEDED"),
}


def create_error_response(
    error: str,
    message: str,
    code: str,
    status_code: int,
    headers: dict = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "code": code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=headers,
    )


def format_validation_errors(errors: list[dict]) -> str:
    """Flatten pydantic error entries into one readable line."""
    messages = []
    for err in errors:
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        text = err.get("msg", "Invalid value")
        messages.append(f"{'.'.join(location)}: {text}" if location else text)
    return "; ".join(messages) or "Invalid request"


def setup_exception_handlers(app: FastAPI, expose_internal_errors: bool = False) -> None:
    """
    Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application.
        expose_internal_errors: Put the real message of unexpected errors in
            the response (development only).
    """

    @app.exception_handler(BookshelfException)
    async def bookshelf_exception_handler(request: Request, exc: BookshelfException):
        logger.warning(f"Bookshelf error: {exc.code} - {exc.message} ({request.method} {request.url.path})")
        return create_error_response(
            error=exc.error,
            message=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = format_validation_errors(exc.errors())
        logger.warning(f"Validation error on {request.url.path}: {message}")
        return create_error_response(
            error="Validation failed",
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
        message = format_validation_errors(exc.errors())
        logger.warning(f"Validation error on {request.url.path}: {message}")
        return create_error_response(
            error="Validation failed",
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error, code = _HTTP_ERRORS.get(exc.status_code, ("Error", "HTTP_ERROR"))
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Cannot {request.method} {request.url.path}"
        else:
            message = str(exc.detail)
        return create_error_response(
            error=error,
            message=message,
            code=code,
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path} "
            f"[request {get_request_id() or '-'}]: "
            f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}"
        )
        message = str(exc) if expose_internal_errors and str(exc) else GENERIC_ERROR_MESSAGE
        return create_error_response(
            error="Internal Server Error",
            message=message,
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
