import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from auth.middleware import AuthMiddleware
from core.settings import Settings
from core.settings import settings as default_settings
from fakes import FakeBackend, FakeClock
from insight import CredentialHolder, InsightContext
from service import app


@pytest.fixture
def mock_env():
    """Fixture to ensure environment is clean for each test."""
    defaults = {
        "GEMINI_API_KEY": "test-gemini-key",
    }
    with patch.dict(os.environ, defaults, clear=True):
        yield


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-gemini-key",
        AUTH_SECRET=None,
        INDEX_STORE_NAME=None,
        RETRY_BASE_DELAY=0.0,
        POLL_INTERVAL_SECONDS=2.0,
        INDEXING_TIMEOUT_SECONDS=10.0,
        MAX_UPLOAD_MB=1,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context(settings, backend, clock) -> InsightContext:
    return InsightContext(
        settings,
        backend,
        CredentialHolder(settings.GEMINI_API_KEY),
        clock=clock,
        sleep=clock.sleep,
    )


def _refresh_auth_middleware(settings) -> None:
    for middleware in app.user_middleware:
        if middleware.cls is AuthMiddleware:
            middleware.kwargs["settings"] = settings
            break
    app.middleware_stack = app.build_middleware_stack()


@pytest.fixture
def mock_settings(mock_env, settings):
    """Point the service and its auth middleware at the test settings."""
    with patch("service.service.settings", settings):
        _refresh_auth_middleware(settings)
        yield settings

    _refresh_auth_middleware(default_settings)


@pytest.fixture
def test_client(mock_settings, context):
    """Fixture to create a FastAPI test client bound to the in-memory context."""
    with TestClient(app) as client:
        app.state.insight = context
        yield client


@pytest.fixture
def mock_httpx(test_client):
    """Patch the httpx module functions to use our test client."""

    def strip(url: str) -> str:
        # Strip the base URL since TestClient expects just the path
        return url.replace("http://0.0.0.0", "")

    def mock_stream(method: str, url: str, **kwargs):
        return test_client.stream(method, strip(url), **kwargs)

    def mock_get(url: str, **kwargs):
        return test_client.get(strip(url), **kwargs)

    def mock_post(url: str, **kwargs):
        return test_client.post(strip(url), **kwargs)

    def mock_put(url: str, **kwargs):
        return test_client.put(strip(url), **kwargs)

    def mock_delete(url: str, **kwargs):
        return test_client.delete(strip(url), **kwargs)

    with (
        patch("httpx.stream", mock_stream),
        patch("httpx.get", mock_get),
        patch("httpx.post", mock_post),
        patch("httpx.put", mock_put),
        patch("httpx.delete", mock_delete),
    ):
        yield
