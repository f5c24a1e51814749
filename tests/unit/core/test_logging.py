"""Unit tests for the logging module."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from loguru import logger

from bugzilla_client.core.config import LogConfig, Settings
from bugzilla_client.core.constants import REDACTED
from bugzilla_client.core.logging import (
    MAX_FIELD_VALUE_LENGTH,
    InterceptHandler,
    _format_context_fields,
    _format_extra_field,
    _format_priority_field,
    _LoggingState,
    _state,
    format_console_with_context,
    serialize_for_json,
    setup_logging,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.fixture
def reset_logging_state() -> Any:
    """Allow setup_logging to run again and restore Loguru afterwards."""
    _state.configured = False
    yield
    _state.configured = False
    logger.remove()


def _record(**extra: object) -> dict[str, Any]:
    level = type("Level", (), {"name": "INFO"})()
    return {
        "time": datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC),
        "level": level,
        "message": "Remote call finished",
        "name": "bugzilla_client.rpc",
        "function": "invoke",
        "module": "rpc",
        "line": 42,
        "extra": extra,
        "exception": None,
    }


@pytest.mark.unit
class TestFieldFormatting:
    """Test console context formatting."""

    def test_logging_state_starts_unconfigured(self) -> None:
        assert _LoggingState().configured is False

    @pytest.mark.parametrize(
        ("field", "value", "expected"),
        [
            ("call_id", "rpc-0123456789abcdef", "89abcdef"),
            ("correlation_id", "short", "short"),
            ("duration_ms", 12.5, "12.5ms"),
            ("fault_code", 101, "<red>fault 101</red>"),
            ("rpc_method", "Bug.get", "Bug.get"),
            ("operation", "get{bug}", "get{{bug}}"),
        ],
    )
    def test_priority_fields(self, field: str, value: object, expected: str) -> None:
        assert _format_priority_field(field, value) == expected

    def test_extra_field_is_truncated(self) -> None:
        formatted = _format_extra_field("summary", "x" * 500)

        assert formatted is not None
        assert len(formatted) == len("summary=") + MAX_FIELD_VALUE_LENGTH

    def test_sensitive_extra_field_is_redacted(self) -> None:
        assert _format_extra_field("password", "hunter2") == f"password={REDACTED}"

    def test_priority_fields_come_first(self) -> None:
        parts = _format_context_fields(
            {"bug_id": 7, "rpc_method": "Bug.get", "_private": 1, "skipped": None}
        )

        assert parts == [
            "<yellow>Bug.get</yellow>",
            "<dim>bug_id=7</dim>",
        ]

    def test_console_format(self) -> None:
        output = format_console_with_context(_record(rpc_method="Bug.get"))

        assert output.startswith("<green>2024-01-01 12:00:00.000</green>")
        assert "[<yellow>Bug.get</yellow>]" in output
        assert output.endswith("Remote call finished\n")


@pytest.mark.unit
class TestJsonSerialization:
    """Test the structured formatter."""

    def test_serialize_for_json(self) -> None:
        entry = json.loads(serialize_for_json(_record(rpc_method="Bug.get", _hidden=1)))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Remote call finished"
        assert entry["rpc_method"] == "Bug.get"
        assert "_hidden" not in entry
        assert entry["timestamp"] == "2024-01-01T12:00:00+00:00"


@pytest.mark.unit
class TestSetupLogging:
    """Test logging configuration."""

    @pytest.mark.usefixtures("reset_logging_state")
    def test_setup_is_idempotent(self, mocker: MockerFixture) -> None:
        settings = Settings(log_config=LogConfig(log_formatter_type="console"))
        add = mocker.spy(logger, "add")

        setup_logging(settings)
        setup_logging(settings)

        assert add.call_count == 1
        assert _state.configured

    @pytest.mark.usefixtures("reset_logging_state")
    def test_standard_logging_is_intercepted(self) -> None:
        setup_logging(Settings(log_config=LogConfig(log_formatter_type="json")))

        root_handlers = logging.getLogger().handlers
        assert any(isinstance(h, InterceptHandler) for h in root_handlers)
        assert logging.getLogger("httpcore").level == logging.INFO
