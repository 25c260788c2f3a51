"""
Fixtures for route tests.

Routes are exercised through the real application with the service layer
patched, so these tests cover wiring: auth, permissions, parameter parsing,
status codes and camelCase output.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from database.engine import Database


@pytest.fixture
def mock_db():
    return Mock(spec=Database)


@pytest.fixture
def client(mock_db):
    """Application backed by a mock database handle."""
    app = create_app(db=mock_db)
    return TestClient(app, raise_server_exceptions=False)

