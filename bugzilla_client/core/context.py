"""Call context management utilities for correlation IDs and call tracking."""

import uuid
from contextvars import ContextVar

# Context variable for storing correlation ID across threads and tasks
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class CallContext:
    """Manages call context using contextvars for thread- and async-safe storage.

    A correlation ID groups the remote calls made on behalf of one logical
    unit of work (a script run, a web request in the calling application),
    so their log lines can be found together.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context.

        Args:
            correlation_id: The correlation ID to store in the context.
        """
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation ID from the current context.

        Returns:
            str | None: The correlation ID if set, None otherwise.
        """
        return _correlation_id_var.get()

    @staticmethod
    def clear() -> None:
        """Clear all context variables."""
        _correlation_id_var.set(None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for grouping calls.

    Returns:
        str: A string representation of a UUID4.
    """
    return str(uuid.uuid4())


def generate_call_id() -> str:
    """Generate a unique ID for an individual remote call.

    Returns:
        str: A prefixed UUID4 string in format 'rpc-<uuid4>'.

    Examples:
        >>> call_id = generate_call_id()
        >>> call_id.startswith('rpc-')
        True
        >>> len(call_id)
        40
    """
    return f"rpc-{uuid.uuid4()}"
