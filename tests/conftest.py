"""Pytest configuration and fixtures for testing."""

import os

import pytest
from fastapi.testclient import TestClient

ADMIN_SECRET = "test-admin-secret"

# Settings are read lazily, but the CORS middleware reads them at import.
os.environ["ADMIN_SECRET"] = ADMIN_SECRET
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DEFAULT_TENANT"] = "speisekarte"
os.environ["LOG_LEVEL"] = "INFO"
for _name in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "VITE_ADMIN_SECRET"):
    os.environ.pop(_name, None)

from app.config import GithubConfig, reset_settings  # noqa: E402
from app.main import app  # noqa: E402
from app.services.github_store import GitHubStore, get_store  # noqa: E402
from fake_github import FakeGitHub  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings from the environment for every test."""
    reset_settings()
    yield
    reset_settings()
    app.dependency_overrides.clear()


@pytest.fixture
def github():
    """Fake GitHub backend shared by the store and the test."""
    return FakeGitHub()


@pytest.fixture
def store(github):
    config = GithubConfig(token="test-token", owner="owner", repo="repo")
    return GitHubStore(config, session=github)


@pytest.fixture
def test_client():
    """Create a test client for the FastAPI application."""

    client = TestClient(app)

    return client


@pytest.fixture
def client(test_client, store):
    """Test client whose handlers use the fake GitHub backend."""
    app.dependency_overrides[get_store] = lambda: store
    return test_client


@pytest.fixture
def admin_headers():
    return {"x-admin-secret": ADMIN_SECRET}
