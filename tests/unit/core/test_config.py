"""Unit tests for bugzilla_client/core/config.py."""

import pytest
from pydantic import ValidationError

from bugzilla_client.core.config import (
    LogConfig,
    ServerConfig,
    Settings,
    get_settings,
)


@pytest.mark.unit
class TestServerConfig:
    """Test server connection settings."""

    def test_defaults(self) -> None:
        config = ServerConfig()

        assert config.url == "http://localhost/xmlrpc.cgi"
        assert config.timeout == 30.0
        assert config.verify_ssl is True
        assert config.api_key is None

    def test_url_scheme_is_validated(self) -> None:
        with pytest.raises(ValidationError, match="http:// or https://"):
            ServerConfig(url="bugzilla.example.com/xmlrpc.cgi")

    def test_empty_api_key_becomes_none(self) -> None:
        assert ServerConfig(api_key="").api_key is None

    @pytest.mark.parametrize(
        ("host", "path", "expected"),
        [
            ("bugs.example.com", "", "http://bugs.example.com/xmlrpc.cgi"),
            ("bugs.example.com", "/bugzilla/", "http://bugs.example.com/bugzilla/xmlrpc.cgi"),
        ],
    )
    def test_for_host(self, host: str, path: str, expected: str) -> None:
        assert ServerConfig.for_host(host, path).url == expected

    def test_for_host_requires_host(self) -> None:
        with pytest.raises(ValueError, match="Host name"):
            ServerConfig.for_host("")

    @pytest.mark.parametrize("timeout", [0, -1, 601])
    def test_timeout_bounds(self, timeout: float) -> None:
        with pytest.raises(ValidationError):
            ServerConfig(timeout=timeout)


@pytest.mark.unit
class TestSettings:
    """Test settings loading from the environment."""

    def test_nested_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SERVER_CONFIG__URL", "https://bugs.example.org/xmlrpc.cgi")
        monkeypatch.setenv("SERVER_CONFIG__API_KEY", "abc")
        monkeypatch.setenv("LOG_CONFIG__SLOW_CALL_THRESHOLD_MS", "500")

        settings = Settings()

        assert settings.server_config.url == "https://bugs.example.org/xmlrpc.cgi"
        assert settings.server_config.api_key == "abc"
        assert settings.log_config.slow_call_threshold_ms == 500

    def test_formatter_detection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CI", raising=False)
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")

        assert Settings().log_config.log_formatter_type == "json"

    def test_formatter_detection_in_ci(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CI", "true")

        assert Settings().log_config.log_formatter_type == "json"

    def test_formatter_detection_in_kubernetes(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CI", raising=False)
        monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "10.0.0.1")

        assert Settings().log_config.log_formatter_type == "json"

    def test_console_formatter_in_development(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CI", raising=False)
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "development")

        assert Settings().log_config.log_formatter_type == "console"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_slow_call_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            LogConfig(slow_call_threshold_ms=0)
