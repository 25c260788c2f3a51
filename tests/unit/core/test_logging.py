"""
Tests for structured logging middleware.

Tests:
- Sensitive field detection and masking
- PII masking in free text
- Header masking
- Request/response log events
- JSON formatter
"""

import json
import logging
import sys

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    is_sensitive_field,
    level_for_status,
    mask_headers,
    mask_pii,
    mask_sensitive_data,
    setup_logging,
    should_log_request,
)


class TestSensitiveFields:
    """Test sensitive field detection."""

    @pytest.mark.parametrize("field", [
        "password", "access_token", "API_KEY", "apiKey", "client_secret", "Authorization", "Cookie", "session_id",
    ])
    def test_sensitive(self, field):
        assert is_sensitive_field(field)

    @pytest.mark.parametrize("field", ["name", "stageId", "rejectionReason", "email"])
    def test_not_sensitive(self, field):
        assert not is_sensitive_field(field)


class TestPIIMasking:
    """Test masking of personal data in values."""

    def test_email(self):
        assert mask_pii("Contact ada@example.com today") == "Contact [EMAIL] today"

    def test_international_phone(self):
        assert "[PHONE]" in mask_pii("Call +44 20 7946 0958")

    def test_local_phone(self):
        assert mask_pii("Phone 555-123-4567") == "Phone [PHONE]"

    def test_plain_text(self):
        assert mask_pii("Moved from Queue to Screening") == "Moved from Queue to Screening"


class TestMaskSensitiveData:
    """Test recursive masking."""

    def test_nested(self):
        data = {
            "name": "Ada",
            "password": "hunter2",
            "contact": {"email": "ada@example.com", "token": "abc"},
            "notes": ["call 555-123-4567", 3],
        }

        masked = mask_sensitive_data(data)

        assert masked == {
            "name": "Ada",
            "password": "[REDACTED]",
            "contact": {"email": "[EMAIL]", "token": "[REDACTED]"},
            "notes": ["call [PHONE]", 3],
        }

    def test_max_depth(self):
        data = {"a": {"b": {"c": "deep"}}}

        assert mask_sensitive_data(data, max_depth=1) == {"a": {"b": "[MAX_DEPTH_EXCEEDED]"}}

    def test_non_string_values(self):
        assert mask_sensitive_data({"score": 87, "active": True}) == {"score": 87, "active": True}


class TestMaskHeaders:
    """Test header masking."""

    def test_bearer_scheme_kept(self):
        masked = mask_headers({"authorization": "Bearer eyJhbGci", "accept": "application/json"})

        assert masked == {"authorization": "Bearer [REDACTED]", "accept": "application/json"}

    def test_cookie(self):
        assert mask_headers({"cookie": "sid=1"}) == {"cookie": "[REDACTED]"}


class TestShouldLogRequest:
    def test_health_checks_skipped(self):
        assert not should_log_request("/health")
        assert not should_log_request("/ready")

    def test_api_logged(self):
        assert should_log_request("/api/v1/jobs")


@pytest.mark.parametrize("status_code,level", [
    (200, logging.INFO),
    (307, logging.INFO),
    (409, logging.WARNING),
    (503, logging.ERROR),
])
def test_level_for_status(status_code, level):
    assert level_for_status(status_code) == level


class TestStructuredLoggingMiddleware:
    """Test request logging end to end."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(StructuredLoggingMiddleware, log_request_body=True, max_body_size=1024)

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        @app.post("/candidates")
        async def create(payload: dict):
            return {"ok": True}

        @app.get("/missing")
        async def missing():
            raise HTTPException(status_code=404, detail="nope")

        return TestClient(app)

    def _events(self, caplog):
        events = []
        for record in caplog.records:
            if record.name != "core.middleware.logging":
                continue
            try:
                events.append(json.loads(record.getMessage()))
            except json.JSONDecodeError:
                continue
        return events

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"x-request-id": "abc-123"})

        assert response.headers["x-request-id"] == "abc-123"

    def test_generated_request_id(self, client):
        response = client.post("/candidates", json={"name": "Ada"})

        assert response.headers["x-request-id"]

    def test_started_and_completed_events(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        client.post(
            "/candidates",
            json={"name": "Ada", "email": "ada@example.com", "password": "x"},
            headers={"Authorization": "Bearer secret-token"},
        )

        events = self._events(caplog)
        started = next(e for e in events if e["event"] == "request_started")
        completed = next(e for e in events if e["event"] == "request_completed")
        assert started["headers"]["authorization"] == "Bearer [REDACTED]"
        assert started["body"] == {"name": "Ada", "email": "[EMAIL]", "password": "[REDACTED]"}
        assert completed["status_code"] == 200
        assert completed["request_id"] == started["request_id"]

    def test_client_errors_logged_as_warning(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        client.get("/missing")

        completed = [
            r for r in caplog.records
            if r.name == "core.middleware.logging" and "request_completed" in r.getMessage()
        ]
        assert completed[0].levelno == logging.WARNING

    def test_health_not_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        client.get("/health")

        assert self._events(caplog) == []


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def test_extra_fields(self):
        record = logging.LogRecord("api", logging.INFO, __file__, 1, "moved", None, None)
        record.request_id = "r-1"
        record.job_candidate_id = 9

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["message"] == "moved"
        assert payload["request_id"] == "r-1"
        assert payload["job_candidate_id"] == 9

    def test_exception_info(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("api", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "bad"


class TestSetupLogging:
    def test_configures_root_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("WARNING", json_logs=True)

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
