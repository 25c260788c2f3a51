"""Tests for health and readiness endpoints."""

from unittest.mock import AsyncMock, MagicMock, Mock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.main import create_app
from database.engine import DatabaseNotOpenError


def _session_context(session):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0"}


class TestReadiness:
    """Test the readiness check against the database handle."""

    def test_ready(self, client, mock_db):
        session = Mock()
        session.execute = AsyncMock()
        mock_db.session.return_value = _session_context(session)

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}
        session.execute.assert_awaited_once()

    def test_database_not_open(self, client, mock_db):
        mock_db.session.side_effect = DatabaseNotOpenError("Database has not been opened")

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "unavailable"}

    def test_database_unreachable(self, client, mock_db):
        session = Mock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", None, None))
        mock_db.session.return_value = _session_context(session)

        response = client.get("/ready")

        assert response.status_code == 503

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "ready-1"})

        assert response.headers["x-request-id"] == "ready-1"


def test_docs_hidden_outside_debug(mock_db):
    client = TestClient(create_app(db=mock_db))

    assert client.get("/docs").status_code == 404


def test_error_envelope_documented(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/v1/jobs"]["post"]["responses"]
    assert "409" in responses
