"""Centralized configuration management with environment-aware defaults.

This module implements the client's configuration using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Configuration sources (in order of precedence):
1. Environment variables (``SERVER_CONFIG__URL``, ``LOG_CONFIG__LOG_LEVEL``, ...)
2. .env file in the working directory
3. Default values in model definitions
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_XMLRPC_SCRIPT = "xmlrpc.cgi"


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(
            default="INFO",
            description="Logging level",
        )
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    log_rpc_params: bool = Field(
        default=True,
        description="Include sanitized call parameters in RPC debug logs",
    )
    slow_call_threshold_ms: int = Field(
        default=2000,
        gt=0,
        description="Threshold for slow RPC call warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "api_key",
            "cookie",
        ],
        description="Field names to redact",
    )


class ServerConfig(BaseModel):
    """Connection settings for the remote Bugzilla server."""

    url: str = Field(
        default=f"http://localhost/{DEFAULT_XMLRPC_SCRIPT}",
        description="Complete URL of the server's xmlrpc.cgi script",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout in seconds for a single remote call",
    )
    verify_ssl: bool = Field(
        default=True,
        description="Whether to verify the server's TLS certificate",
    )
    api_key: str | None = Field(
        default=None,
        description="API key sent with every call instead of a login session",
    )
    user_agent: str = Field(
        default="bugzilla-client",
        description="User-Agent header sent with every request",
    )

    @field_validator("url", mode="after")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the server URL uses an HTTP scheme."""
        if not v.startswith(("http://", "https://")):
            msg = "Server URL must start with http:// or https://"
            raise ValueError(msg)
        return v

    @field_validator("api_key", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v

    @classmethod
    def for_host(
        cls, host: str, path: str = "", *, scheme: str = "http"
    ) -> "ServerConfig":
        """Build a configuration from a bare host name and installation path.

        Args:
            host: Host name without protocol, e.g. ``bugzilla.example.com``.
            path: Path of the Bugzilla installation on the host, if any.
            scheme: URL scheme to use.

        Returns:
            ServerConfig: Configuration pointing at the host's xmlrpc.cgi.
        """
        if not host:
            msg = "Host name must not be empty"
            raise ValueError(msg)
        path = path.strip("/")
        if path:
            return cls(url=f"{scheme}://{host}/{path}/{DEFAULT_XMLRPC_SCRIPT}")
        return cls(url=f"{scheme}://{host}/{DEFAULT_XMLRPC_SCRIPT}")


class Settings(BaseSettings):
    """Main settings class for the client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field(default="bugzilla-client", description="Client name")
    app_version: str = Field(default="0.1.0", description="Client version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the client is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    # Server configuration
    server_config: ServerConfig = Field(
        default_factory=ServerConfig, description="Server connection configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        # Containers and CI collect stdout as structured logs
        if os.getenv("KUBERNETES_SERVICE_HOST") or os.getenv("CI"):
            return "json"
        if self.environment == "development":
            return "console"
        return "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
