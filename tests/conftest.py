"""
Pytest configuration and shared fixtures for all tests.

This module provides shared fixtures for the test suite, including:
- A BlogDataStore backed by a temporary SQLite file
- A Flask app and test client with a provisioned admin user
- Bearer token headers for the admin
- Rate limiting cache cleanup between tests
"""

import pytest

from api import create_app
from api.api import clear_rate_limit_caches
from auth import hash_password
from config import get_default_config
from storage import BlogDataStore

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "secret123"
JWT_SECRET = "test-jwt-secret"


@pytest.fixture(scope="session")
def admin_password_hash():
    """Hashing is slow on purpose; do it once per session."""
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def store(tmp_path):
    """Empty store in a temporary directory."""
    return BlogDataStore(str(tmp_path / "blog.db"))


@pytest.fixture
def app_config(admin_password_hash):
    """Configuration with a fixed secret, an admin user and rate limiting off.

    Rate limiting tests turn it back on explicitly.
    """
    config = get_default_config()
    config["security"]["jwt_secret"] = JWT_SECRET
    config["security"]["jwt_secret_file"] = None
    config["security"]["rate_limit_enabled"] = False
    config["admin"]["username"] = ADMIN_USERNAME
    config["admin"]["password_hash"] = admin_password_hash
    config["admin"]["password_hash_file"] = None
    return config


@pytest.fixture
def app(app_config, store):
    app = create_app(config=app_config, store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client for making HTTP requests."""
    with app.test_client() as client:
        yield client


@pytest.fixture
def token(client):
    """Token obtained through the login endpoint."""
    response = client.post("/users/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return response.get_json()["token"]


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_post(client, auth_headers):
    """Create a post through the API and return its JSON."""
    def _make_post(title="Hello World", content="abc", author="Jane", published="true"):
        response = client.post(
            "/posts",
            json={"title": title, "content": content, "author": author, "published": published},
            headers=auth_headers,
        )
        assert response.status_code == 200, response.get_json()
        return response.get_json()

    return _make_post


@pytest.fixture(autouse=True)
def clear_rate_limiting_caches():
    """Clear the per-IP request cache before and after each test.

    The cache is module-level in api.api and persists across tests.
    """
    clear_rate_limit_caches()
    yield
    clear_rate_limit_caches()
