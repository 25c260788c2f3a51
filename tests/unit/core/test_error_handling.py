"""
Tests for error handling middleware.
Tests domain error mapping, database failures and message sanitization.
"""

import pytest
import json
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    build_error_body,
    classify,
    get_safe_error_details,
    sanitize_error_message,
    setup_error_handlers,
)
from database.engine import DatabaseNotOpenError


class TestSensitiveDataSanitization:
    """Test sensitive data sanitization."""

    @pytest.mark.parametrize("sensitive_input", [
        'password="secret123"',
        'token: abc.def.ghi',
        'api_key=sk_live_12345',
        'client_secret=hunter2',
        'Authorization: Bearer',
        'Bearer eyJhbGciOi.eyJzdWIi.c2ln',
        '{"token": "abc"}',
        'ssn 123-45-6789',
        'card 4111111111111111',
    ])
    def test_sanitize_sensitive_patterns(self, sensitive_input):
        """Test that each sensitive pattern is redacted."""
        assert "[REDACTED]" in sanitize_error_message(sensitive_input)

    @pytest.mark.parametrize("message", [
        "Candidate is already associated with this job",
        "Token has expired",
        "Token carries an unknown role",
        "Password reset is not available",
        "Secret questions are disabled",
    ])
    def test_plain_message_untouched(self, message):
        assert sanitize_error_message(message) == message

    def test_edge_case_empty_string(self):
        assert sanitize_error_message("") == ""


class TestSafeErrorDetails:
    """Test safe error detail extraction."""

    def test_basic_exception_details(self):
        details = get_safe_error_details(ValueError("bad value"))

        assert details == {"type": "ValueError", "message": "bad value"}

    def test_details_with_debug_mode(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            details = get_safe_error_details(e, include_details=True)

        assert "traceback" in details

    def test_sanitization_in_error_details(self):
        details = get_safe_error_details(Exception("password=topsecret"))

        assert "topsecret" not in details["message"]


class TestErrorEnvelope:
    """Test the shared error body."""

    def test_without_details(self):
        body = build_error_body("NOT_FOUND", "Job not found", "/jobs/1", "GET")

        assert body == {
            "error": {"code": "NOT_FOUND", "message": "Job not found", "path": "/jobs/1", "method": "GET"}
        }

    def test_with_details(self):
        body = build_error_body("VALIDATION_ERROR", "Bad", "/x", "POST", {"name": ["Required"]})

        assert body["error"]["details"] == {"name": ["Required"]}


class TestDomainErrors:
    """Test exception classes."""

    def test_validation_message_defaults_to_first_field(self):
        error = ValidationError({"position": ["Position must be between 0 and 4"]})

        assert error.message == "Position must be between 0 and 4"
        assert error.status_code == 400

    def test_not_found_message(self):
        assert NotFoundError("Job candidate").message == "Job candidate not found"

    def test_to_dict(self):
        error = ConflictError("Duplicate", {"existingId": 5})

        assert error.to_dict() == {
            "code": "CONFLICT",
            "message": "Duplicate",
            "details": {"existingId": 5},
        }


class TestClassify:
    """Test exception classification order."""

    def test_subclass_before_base(self):
        assert classify(IntegrityError("dup", None, None)).status_code == 409
        assert classify(SQLAlchemyError("x")).status_code == 500

    def test_unknown_exception(self):
        assert classify(KeyError("x")).code == "INTERNAL_SERVER_ERROR"


class TestErrorHandlingMiddleware:
    """Test error handling with various exception types."""

    @pytest.fixture
    def app(self):
        """Create FastAPI app with error handlers and middleware."""
        app = FastAPI()
        setup_error_handlers(app)
        app.add_middleware(ErrorHandlingMiddleware, debug=False)

        class Body(BaseModel):
            name: str

        @app.get("/success")
        async def success():
            return {"message": "success"}

        @app.get("/not-found")
        async def not_found():
            raise NotFoundError("Job")

        @app.get("/invalid")
        async def invalid():
            raise ValidationError({"stageId": ["Stage not found in this job pipeline"]})

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("Candidate is already associated with this job", {"jobCandidateId": 4})

        @app.get("/forbidden")
        async def forbidden():
            raise AuthorizationError()

        @app.post("/body")
        async def body(payload: Body):
            return payload

        @app.get("/http-error")
        async def http_error():
            raise HTTPException(status_code=418, detail="Teapot with token=abc123")

        @app.get("/database-integrity-error")
        async def db_integrity_error():
            raise IntegrityError("duplicate key", None, None)

        @app.get("/database-operational-error")
        async def db_operational_error():
            raise OperationalError("connection lost", None, None)

        @app.get("/database-error")
        async def db_error():
            raise SQLAlchemyError("weird")

        @app.get("/database-not-open")
        async def db_not_open():
            raise DatabaseNotOpenError("Database has not been opened")

        @app.get("/timeout-error")
        async def timeout_err():
            raise TimeoutError("Request timed out")

        @app.get("/generic-error")
        async def generic_err():
            raise Exception("Unexpected error with api_key=secret")

        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_successful_request(self, client):
        response = client.get("/success")
        assert response.status_code == 200
        assert response.json() == {"message": "success"}

    @pytest.mark.parametrize("path,status_code,code", [
        ("/not-found", 404, "NOT_FOUND"),
        ("/invalid", 400, "VALIDATION_ERROR"),
        ("/conflict", 409, "CONFLICT"),
        ("/forbidden", 403, "AUTHORIZATION_ERROR"),
    ])
    def test_domain_errors(self, client, path, status_code, code):
        """Test that each domain error maps to its status code."""
        response = client.get(path)

        assert response.status_code == status_code
        error = response.json()["error"]
        assert error["code"] == code
        assert error["path"] == path
        assert error["method"] == "GET"

    def test_validation_details(self, client):
        error = client.get("/invalid").json()["error"]

        assert error["message"] == "Stage not found in this job pipeline"
        assert error["details"] == {"stageId": ["Stage not found in this job pipeline"]}

    def test_conflict_data(self, client):
        assert client.get("/conflict").json()["error"]["details"] == {"jobCandidateId": 4}

    def test_request_validation(self, client):
        response = client.post("/body", json={})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "body.name"

    def test_http_exception_handling(self, client):
        response = client.get("/http-error")

        assert response.status_code == 418
        assert "abc123" not in json.dumps(response.json())

    def test_database_integrity_error(self, client):
        response = client.get("/database-integrity-error")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRITY_ERROR"

    def test_database_operational_error(self, client):
        response = client.get("/database-operational-error")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_database_error(self, client):
        response = client.get("/database-error")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "A database error occurred"

    def test_database_not_open(self, client):
        response = client.get("/database-not-open")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_timeout_error(self, client):
        assert client.get("/timeout-error").status_code == 504

    def test_generic_error_handling(self, client):
        """Test that unexpected errors never leak their message."""
        response = client.get("/generic-error")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["message"] == "An unexpected error occurred"
        assert "secret" not in json.dumps(data)

    def test_request_id_echoed(self, client):
        response = client.get("/generic-error", headers={"X-Request-ID": "req-42"})

        assert response.json()["error"]["request_id"] == "req-42"

    def test_debug_mode_includes_details(self):
        app = FastAPI()
        app.add_middleware(ErrorHandlingMiddleware, debug=True)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("kaboom")

        response = TestClient(app).get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["details"]["type"] == "RuntimeError"
