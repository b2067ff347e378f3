"""
Request logging middleware.

Every request gets a correlation id (taken from ``X-Request-ID`` when the
caller sends one) that is echoed back on the response and attached to log
lines. Access lines name the matched route template, so ``/books/17`` and
``/books/18`` aggregate under ``/books/{book_id}``.
"""

import time
import uuid
import json
import logging
from typing import Optional, Callable, Set, Any
from dataclasses import dataclass, field
from contextvars import ContextVar

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("bookshelf.api")

REDACTED = "[REDACTED]"


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    # Only honoured for JSON bodies; credentials are always redacted
    log_request_body: bool = False
    max_body_log_size: int = 4096

    excluded_paths: Set[str] = field(default_factory=lambda: {"/health", "/favicon.ico"})

    redacted_fields: Set[str] = field(default_factory=lambda: {
        "password",
        "password_hash",
        "token",
        "secret",
    })

    slow_request_threshold: float = 1.0

    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per line, with the request context merged in."""

    EXTRA_KEYS = ("method", "route", "path", "status_code", "duration_ms", "client_ip", "body")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            payload["request_id"] = request_id

        for key in self.EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def redact_sensitive_data(data: Any, redacted_fields: Set[str]) -> Any:
    """
    Replace the values of credential-like keys, at any depth.

    Key matching is case-insensitive; ``redacted_fields`` is expected
    in lower case.
    """
    if isinstance(data, dict):
        return {
            key: REDACTED if str(key).lower() in redacted_fields else redact_sensitive_data(value, redacted_fields)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields) for item in data]
    return data


def get_request_id() -> str:
    """Correlation id of the request being served, or ''."""
    return request_id_var.get()


def route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def level_for(status_code: int, duration: float, slow_threshold: float) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400 or duration > slow_threshold:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Writes one access line per request and tags the response with its id."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _body_for_log(self, request: Request) -> Optional[str]:
        if request.headers.get("content-type", "").split(";")[0].strip() != "application/json":
            return None

        body = await request.body()
        if not body:
            return None
        if len(body) > self.config.max_body_log_size:
            return f"[{len(body)} bytes]"

        try:
            parsed = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "[unparseable JSON]"
        return json.dumps(redact_sensitive_data(parsed, self.config.redacted_fields))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        header = self.config.request_id_header
        request_id = request.headers.get(header) or uuid.uuid4().hex[:12]
        request_id_var.set(request_id)

        if not self.config.enabled or request.url.path in self.config.excluded_paths:
            response = await call_next(request)
            response.headers[header] = request_id
            return response

        body = await self._body_for_log(request) if self.config.log_request_body else None

        started = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - started
        duration_ms = round(duration * 1000, 2)

        response.headers[header] = request_id

        route = route_template(request)
        message = f"{request.method} {route} -> {response.status_code} ({duration_ms}ms)"
        if duration > self.config.slow_request_threshold:
            message = f"[SLOW] {message}"

        logger.log(
            level_for(response.status_code, duration, self.config.slow_request_threshold),
            message,
            extra={
                "method": request.method,
                "route": route,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
                "body": body,
            },
        )

        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Install the request logging middleware.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Emit JSON lines on the ``bookshelf`` logger.
    """
    if structured:
        package_logger = logging.getLogger("bookshelf")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in package_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            package_logger.addHandler(handler)
            package_logger.propagate = False
        package_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config or LoggingConfig())
