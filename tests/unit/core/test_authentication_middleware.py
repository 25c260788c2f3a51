"""
Tests for the authentication dependency.

Tests:
- Token validation from Authorization header
- Missing, expired and forged tokens
- Unknown roles
- Error envelope for 401 responses
"""

import pytest
from datetime import timedelta
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from core.config import get_settings
from core.middleware.authentication import AuthenticationError, get_current_user
from core.middleware.error_handling import setup_error_handlers
from core.security import CurrentUser, create_access_token
from tests.helpers import auth_header


@pytest.fixture
def client():
    """Create test FastAPI app with one protected endpoint."""
    app = FastAPI()
    setup_error_handlers(app)

    @app.get("/me")
    async def me(request: Request, user: CurrentUser = Depends(get_current_user)):
        return {
            "id": user.id,
            "company_id": user.company_id,
            "role": user.role.value,
            "state_user_id": request.state.user_id,
        }

    return TestClient(app)


class TestGetCurrentUser:
    """Test bearer token resolution."""

    def test_valid_token(self, client):
        response = client.get("/me", headers=auth_header(5, 2, "hiring_manager"))

        assert response.status_code == 200
        assert response.json() == {
            "id": 5,
            "company_id": 2,
            "role": "hiring_manager",
            "state_user_id": 5,
        }

    def test_missing_header(self, client):
        response = client.get("/me")

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "AUTHENTICATION_ERROR"
        assert error["message"] == "Authentication required"

    def test_wrong_scheme(self, client):
        response = client.get("/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401

    def test_expired_token(self, client):
        settings = get_settings()
        token = create_access_token(
            1, 1, "admin", settings.jwt_secret_key, expires_in=timedelta(seconds=-5)
        )

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token has expired"

    def test_forged_token(self, client):
        token = create_access_token(1, 1, "admin", "a-completely-different-signing-key")

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token is invalid"

    def test_unknown_role(self, client):
        response = client.get("/me", headers=auth_header(1, 1, "superuser"))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token carries an unknown role"


class TestAuthenticationError:
    def test_defaults(self):
        error = AuthenticationError()

        assert error.status_code == 401
        assert error.message == "Authentication required"
