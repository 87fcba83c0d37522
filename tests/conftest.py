"""Shared test fixtures for the DocWebsite test suite."""

from __future__ import annotations

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
    os.environ.setdefault("MONGODB_DATABASE", "docwebsite_test")
    os.environ.setdefault("SESSION_SECRET", "test-session-secret")
    os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
    os.environ.setdefault("BACKEND_URL", "https://api.example.test")
    os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
    os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
    os.environ.setdefault("WEBHOOK_MONITOR_ENABLED", "false")


@pytest.fixture
def db():
    """A fresh in-memory motor-compatible database."""
    from mongomock_motor import AsyncMongoMockClient

    return AsyncMongoMockClient()["docwebsite_test"]


@pytest.fixture
def run():
    """Run a coroutine from a synchronous test (seeding data for TestClient tests)."""
    return asyncio.run


@pytest.fixture
def mock_google_response():
    """Factory fixture for creating mock Google API responses."""

    def _make(data: dict | None, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        mock.content = b"" if data is None else b"{}"
        return mock

    return _make


# ── API fixtures ─────────────────────────────────────────────────────

_STATE_NAMES = ("db", "db_manager", "llm_service", "calendar_client", "webhook_service", "webhook_monitor")


@pytest.fixture
def app(db):
    """The FastAPI app with ``app.state`` wired the way the lifespan does it."""
    from src.api.webhook import webhook_limiter
    from src.server import app as fastapi_app

    state = fastapi_app.state
    state.db = db
    state.db_manager = MagicMock(health_check=AsyncMock(return_value=True))
    state.llm_service = MagicMock()
    state.calendar_client = MagicMock()
    state.webhook_service = MagicMock()
    state.webhook_monitor = MagicMock()
    webhook_limiter.reset()
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    for name in _STATE_NAMES:
        setattr(state, name, None)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def login(app, db, run):
    """Insert a user and make every request run as that user."""
    from src.api.dependencies import get_session_user
    from src.repositories.calendar import UserRepository

    def _login(role: str = "doctor", **fields):
        user = run(UserRepository(db).insert({
            "email": f"{role}@example.com",
            "name": "Dr. Jane Smith",
            "role": role,
            "googleId": f"google-{role}",
            **fields,
        }))
        app.dependency_overrides[get_session_user] = lambda: str(user["_id"])
        return user

    return _login


@pytest.fixture
def website(db, run):
    """Factory: store a website owned by *doctor*."""
    from src.repositories.websites import WebsiteRepository

    def _make(doctor, **fields):
        return run(WebsiteRepository(db).insert({
            "name": "Smile Studio",
            "subdomain": "smile-studio",
            "template": "dental-modern",
            "status": "published",
            "doctorId": doctor["_id"],
            "doctorName": "Dr. Jane Smith",
            "location": "Porto",
            "contact": {"phone": "+351 555 0100"},
            **fields,
        }))

    return _make
