"""Sensitive data sanitization for secure call logging.

Remote call parameters carry passwords (``User.login``), session tokens
(``Bugzilla_token``), API keys and attachment payloads. This module produces
copies of such parameters that are safe to write to logs.

Key features:
- **Pattern matching**: Regex-based detection of sensitive field names
- **Configurable fields**: Additional sensitive fields via configuration
- **Deep sanitization**: Recursive handling of nested structs and arrays
- **Binary summaries**: Attachment data is replaced by its size

Original data remains unchanged, only logged copies are sanitized.
"""

from __future__ import annotations

import re
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from bugzilla_client.core.config import get_settings
from bugzilla_client.core.constants import REDACTED

# Default sensitive field patterns - covers common cases
DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|authorization|"
    r"credential|cookie|session)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10

# Longest string kept verbatim in logs
MAX_STRING_LENGTH: Final[int] = 200


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> list[str]:
    """Get the configured sensitive fields from settings.

    Returns:
        list[str]: List of sensitive field names to check.
    """
    settings = get_settings()
    return settings.log_config.sensitive_fields


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Checks against both the default regex pattern and the
    configured sensitive fields list.

    Args:
        field_name: The field name to check.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    field_lower = field_name.lower()
    return any(
        sensitive_field.lower() in field_lower
        for sensitive_field in _get_sensitive_fields()
    )


def sanitize_value(value: Any, field_name: str = "", depth: int = 0) -> Any:
    """Sanitize a value if it appears to be sensitive.

    This function recursively sanitizes nested structures (dicts and lists)
    up to MAX_DEPTH to prevent infinite recursion.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.

    Returns:
        Any: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if isinstance(value, dict):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [sanitize_value(item, "", depth + 1) for item in value]

    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"

    if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
        return value[: MAX_STRING_LENGTH - 3] + "..."

    return value


def sanitize_params(params: Any) -> Any:
    """Sanitize remote call parameters for logging.

    Args:
        params: The parameters struct of a remote call (or None).

    Returns:
        Any: A sanitized copy suitable for log output.
    """
    if params is None:
        return None
    return sanitize_value(params)
