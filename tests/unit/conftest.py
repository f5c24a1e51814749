"""Shared fixtures for unit tests."""

import os
import threading
from collections.abc import Generator
from typing import Any

import pytest
from pytest_mock import MockerFixture, MockType

from bugzilla_client.core.config import LogConfig, Settings, get_settings
from bugzilla_client.core.context import CallContext
from bugzilla_client.core.error_context import _get_sensitive_fields
from bugzilla_client.server import BugzillaServer
from tests.fixtures.bugzilla_fixtures import FakeTransport, make_field_listing


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Provide a transport with no canned results."""
    return FakeTransport()


@pytest.fixture
def server(fake_transport: FakeTransport) -> BugzillaServer:
    """Provide a session on the fake transport with no custom fields."""
    fake_transport.respond("Bug.fields", make_field_listing())
    return BugzillaServer(fake_transport)


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a Settings object with test values.

    Returns:
        Settings: Settings object with test defaults.
    """
    monkeypatch.setenv("APP_NAME", "TestClient")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("SERVER_CONFIG__URL", "https://bugzilla.example.com/xmlrpc.cgi")

    return Settings()


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the LRU caches before and after each test to ensure isolation."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Backup and restore environment variables to prevent test interference.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    original_env = os.environ.copy()

    # Keep LOG_CONFIG__LOG_LEVEL from the pytest env so tests stay quiet
    env_prefixes = [
        "APP_",
        "ENVIRONMENT",
        "DEBUG",
        "SERVER_CONFIG__",
    ]
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Clear the call context before and after each test."""
    CallContext.clear()
    yield
    CallContext.clear()


@pytest.fixture
def mock_get_settings(mocker: MockerFixture) -> MockType:
    """Mock get_settings with customizable sensitive fields.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock get_settings function.
    """
    mock_settings = mocker.Mock(spec=Settings)
    mock_log_config = mocker.Mock(spec=LogConfig)
    mock_log_config.sensitive_fields = ["private_notes", "my_password"]
    mock_settings.log_config = mock_log_config

    mock_get_settings_fn = mocker.patch(
        "bugzilla_client.core.error_context.get_settings"
    )
    mock_get_settings_fn.return_value = mock_settings

    _get_sensitive_fields.cache_clear()

    return mock_get_settings_fn


@pytest.fixture
def thread_sync() -> dict[str, Any]:
    """Provide thread synchronization utilities for thread safety tests.

    Returns:
        dict[str, Any]: Dictionary with threading utilities.
    """

    def create_barrier(n: int) -> threading.Barrier:
        """Create a barrier for n threads."""
        return threading.Barrier(n)

    def create_results() -> list[Any]:
        """Create a new results list."""
        return []

    return {
        "barrier": create_barrier,
        "event": threading.Event,
        "lock": threading.Lock,
        "create_results": create_results,
    }
