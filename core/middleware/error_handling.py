"""
Error handling for the HTTP layer.

Domain errors (``core.exceptions.ATSError``) carry their own status and
code. Everything else is classified by exception type, logged, and turned
into the same JSON envelope with messages scrubbed of credentials.
"""

import logging
import re
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import ATSError
from database.engine import DatabaseNotOpenError

logger = logging.getLogger(__name__)

# Credentials and card-like numbers that must never reach a response body.
# Keys only match when followed by a ":" or "=" separator.
SENSITIVE_PATTERNS = [
    re.compile(r'\bbearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE),
    re.compile(r'password["\']?\s*[:=]\s*["\']?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\']?\s*[:=]\s*["\']?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\']?\s*[:=]\s*["\']?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\']?\s*[:=]\s*["\']?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'\b\d{3}-\d{2}-\d{4}\b'),
    re.compile(r'\b\d{16}\b'),
]


def sanitize_error_message(message: str) -> str:
    """Replace anything that looks like a credential with ``[REDACTED]``."""
    for pattern in SENSITIVE_PATTERNS:
        message = pattern.sub('[REDACTED]', message)
    return message


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Describe an exception for a response body.

    Args:
        exc: The exception to describe
        include_details: Add the formatted traceback (debug only)

    Returns:
        ``type`` and sanitized ``message``, plus ``traceback`` when asked
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def build_error_body(
    code: str,
    message: str,
    path: str,
    method: str,
    details: Optional[Any] = None,
) -> dict[str, Any]:
    """The ``{"error": {...}}`` envelope every failed request returns."""
    error: dict[str, Any] = {"code": code, "message": message, "path": path, "method": method}
    if details is not None:
        error["details"] = details
    return {"error": error}


def ats_error_response(exc: ATSError, path: str, method: str) -> JSONResponse:
    """Translate a domain error into its HTTP response."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, f"{exc.code} on {method} {path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_body(
            exc.code,
            sanitize_error_message(exc.message),
            path,
            method,
            exc.details,
        ),
    )


@dataclass(frozen=True)
class FailureKind:
    """How one family of unexpected exceptions is reported."""

    exc_type: type
    status_code: int
    code: str
    message: str
    with_traceback: bool = True


# First match wins, so subclasses come before their bases
FAILURE_KINDS = (
    FailureKind(IntegrityError, status.HTTP_409_CONFLICT, "INTEGRITY_ERROR",
                "Database integrity constraint violated"),
    FailureKind(OperationalError, status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR",
                "Database service temporarily unavailable"),
    FailureKind(DatabaseNotOpenError, status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR",
                "Database service temporarily unavailable", with_traceback=False),
    FailureKind(SQLAlchemyError, status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR",
                "A database error occurred"),
    FailureKind(TimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT",
                "The request timed out", with_traceback=False),
)

UNEXPECTED = FailureKind(
    Exception, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_SERVER_ERROR", "An unexpected error occurred"
)


def classify(exc: Exception) -> FailureKind:
    for kind in FAILURE_KINDS:
        if isinstance(exc, kind.exc_type):
            return kind
    return UNEXPECTED


class ErrorHandlingMiddleware:
    """
    Outermost ASGI layer. Catches whatever the route-level handlers let
    through and answers with the standard envelope.

    Args:
        app: The wrapped ASGI application
        debug: Put exception type, message and traceback in ``details``
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self.to_response(exc, scope)
            await response(scope, receive, send)

    def to_response(self, exc: Exception, scope: dict) -> JSONResponse:
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")

        if isinstance(exc, ATSError):
            return ats_error_response(exc, path, method)

        if isinstance(exc, StarletteHTTPException):
            message = sanitize_error_message(str(exc.detail))
            logger.warning(f"HTTP {exc.status_code} on {method} {path}: {message}")
            return JSONResponse(
                status_code=exc.status_code,
                content=build_error_body("HTTP_EXCEPTION", message, path, method),
            )

        kind = classify(exc)
        logger.error(
            f"{type(exc).__name__} on {method} {path}: {sanitize_error_message(str(exc))}",
            exc_info=kind.with_traceback,
        )
        details = get_safe_error_details(exc, include_details=True) if self.debug else None
        body = build_error_body(kind.code, kind.message, path, method, details)

        request_id = dict(scope.get("headers") or []).get(b"x-request-id")
        if request_id:
            body["error"]["request_id"] = request_id.decode()

        return JSONResponse(status_code=kind.status_code, content=body)


def setup_error_handlers(app):
    """Register route-level exception handlers on a FastAPI app."""

    @app.exception_handler(ATSError)
    async def ats_exception_handler(request: Request, exc: ATSError):
        return ats_error_response(exc, str(request.url.path), request.method)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_body(
                "HTTP_EXCEPTION",
                sanitize_error_message(str(exc.detail)),
                str(request.url.path),
                request.method,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies, queries and path parameters."""
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": sanitize_error_message(error["msg"]),
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=build_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                str(request.url.path),
                request.method,
                errors,
            ),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        """Unique and foreign key violations that slipped past the services."""
        logger.error(f"Integrity error on {request.method} {request.url.path}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=build_error_body(
                "INTEGRITY_ERROR",
                "Database integrity constraint violated",
                str(request.url.path),
                request.method,
            ),
        )
