"""
Structured logging middleware with PII masking.

Candidate records are full of personal data (names, emails, phone numbers),
so everything that reaches a log line goes through the masking helpers
below first.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Any, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


# Field names whose values are never logged
SENSITIVE_FIELD = re.compile(
    r"password|token|api[_-]?key|secret|authorization|cookie|session",
    re.IGNORECASE,
)

# Values masked wherever they appear
PII_PATTERNS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\+\d{1,3}[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}'), '[PHONE]'),
    (re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b'), '[PHONE]'),
]

# Paths not worth a log line per request
SKIP_PATHS = ('/health', '/ready')

# Attributes copied from LogRecord extras into the JSON payload
EXTRA_FIELDS = ('request_id', 'user_id', 'company_id', 'job_id', 'job_candidate_id')


def is_sensitive_field(field_name: str) -> bool:
    return SENSITIVE_FIELD.search(field_name) is not None


def mask_pii(value: str) -> str:
    for pattern, replacement in PII_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Copy of ``data`` safe to log: values under sensitive keys become
    ``[REDACTED]`` and strings have emails and phone numbers masked.
    Nesting deeper than ``max_depth`` is cut off.
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if is_sensitive_field(str(key))
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if isinstance(data, str):
        return mask_pii(data)
    return data


def mask_headers(headers: dict) -> dict:
    """Redact credential headers. ``Authorization`` keeps its scheme, e.g. ``Bearer [REDACTED]``."""
    masked = {}
    for key, value in headers.items():
        if not is_sensitive_field(key):
            masked[key] = value
            continue
        parts = value.split(' ', 1) if isinstance(value, str) else []
        if key.lower() == 'authorization' and len(parts) == 2:
            masked[key] = f"{parts[0]} [REDACTED]"
        else:
            masked[key] = "[REDACTED]"
    return masked


def should_log_request(path: str) -> bool:
    return not path.startswith(SKIP_PATHS)


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits ``request_started`` / ``request_completed`` JSON events.

    Every request gets an ``x-request-id`` (taken from the incoming header
    when present) which is echoed on the response.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        max_body_size: int = 1024,
    ):
        """
        Initialize logging middleware.

        Args:
            app: The ASGI application
            log_request_body: Whether to log request bodies (masked)
            max_body_size: Maximum body size to log (bytes)
        """
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        logger.info(json.dumps(await self._started_event(request, request_id), default=str))
        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'request_id': request_id},
            )
            raise
        finally:
            status_code = response.status_code if response is not None else 500
            event = self._completed_event(request, request_id, status_code, start_time)
            logger.log(level_for_status(status_code), json.dumps(event))

        response.headers['x-request-id'] = request_id
        return response

    async def _started_event(self, request: Request, request_id: str) -> dict:
        event = {
            'event': 'request_started',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'headers': mask_headers(dict(request.headers)),
        }
        if self.log_request_body and request.method in ('POST', 'PUT', 'PATCH'):
            body = await self._read_json_body(request)
            if body is not None:
                event['body'] = mask_sensitive_data(body)
        return event

    def _completed_event(
        self, request: Request, request_id: str, status_code: int, start_time: float
    ) -> dict:
        event = {
            'event': 'request_completed',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'status_code': status_code,
            'duration_ms': round((time.perf_counter() - start_time) * 1000, 2),
        }
        # Set by the authentication dependency
        for field in ('user_id', 'company_id'):
            value = getattr(request.state, field, None)
            if value is not None:
                event[field] = value
        return event

    async def _read_json_body(self, request: Request) -> Any:
        if 'application/json' not in request.headers.get('content-type', ''):
            return None
        body_bytes = await request.body()
        if len(body_bytes) > self.max_body_size:
            return {'_truncated': True, '_size': len(body_bytes)}
        try:
            return json.loads(body_bytes.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Could not parse request body: {e}")
            return None


class StructuredFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }
        return json.dumps(log_data, default=str)


QUIETED_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Replace the root handlers with a single stderr handler.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: One JSON object per line instead of plain text
    """
    level = logging.getLevelName(log_level.upper())
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter() if json_logs
        else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIETED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
