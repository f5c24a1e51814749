"""Structured exception hierarchy for consistent error handling.

This module defines the complete exception system of the client. Every
failure a caller can observe is one of four kinds:

- **TransportError**: the remote call could not complete (network, HTTP
  status, unparsable XML). Raised by the transport, never translated.
- **FaultError**: the call completed but the server reported a numbered
  fault. The fault translator turns the raw ``RpcFault`` into one of the
  typed subclasses below, keyed by the failing operation.
- **MalformedResponseError**: the call succeeded but its payload does not
  have the expected shape. A contract violation; callers should not retry.
- **PreconditionError**: a parameter was rejected locally before any
  round trip was spent.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for logging and alerting
- **BugzillaError**: Base exception with rich context
- **Specialized exceptions**: One class per server-reported condition
"""

from enum import Enum
from typing import Any, ClassVar


class ErrorCode(Enum):
    """Standardized error codes for the client.

    These error codes provide consistent identification of error types
    across the client, independent of the server's numeric fault codes.
    """

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the client."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """A parameter failed local validation before the call was made."""

    INVALID_VALUE = "INVALID_VALUE"
    """The server rejected a field value."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    """The requested bug, comment, user or other object does not exist."""

    CONFLICT = "CONFLICT"
    """The request conflicts with existing server state."""

    # Authentication/Authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    """Authentication failed or user is not authorized for this action."""

    # Protocol errors
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    """The remote call could not be completed."""

    REMOTE_FAULT = "REMOTE_FAULT"
    """The server reported a fault for the call."""

    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    """The server's response did not match the expected structure."""


class Severity(Enum):
    """Severity levels for errors raised by the client."""

    LOW = "LOW"
    """Expected errors caused by caller input or server-side business rules."""

    MEDIUM = "MEDIUM"
    """Errors that fail one operation but say nothing about the connection."""

    HIGH = "HIGH"
    """Errors pointing at a broken connection, credentials or contract."""

    CRITICAL = "CRITICAL"
    """Errors requiring immediate attention."""


class BugzillaError(Exception):
    """Base exception class for all client exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def is_expected(self) -> bool:
        """Determine if this is an expected error based on severity.

        Returns:
            bool: True if the error is expected (LOW or MEDIUM severity)
        """
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Determine if this error should trigger alerts.

        Returns:
            bool: True if the error should trigger alerts (HIGH or CRITICAL severity)
        """
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception.

        Returns:
            str: A string showing the class name, error code, message, severity,
                and context
        """
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class PreconditionError(BugzillaError):
    """Exception raised when a parameter is rejected before the call is made.

    Args:
        parameter: Name of the offending parameter
        reason: Description of the violated precondition
        context: Additional context information about the error
    """

    def __init__(
        self,
        parameter: str,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.parameter = parameter
        self.reason = reason
        super().__init__(
            ErrorCode.VALIDATION_ERROR,
            f"Invalid parameter '{parameter}': {reason}",
            Severity.LOW,
            {"parameter": parameter, **(context or {})},
        )


class TransportError(BugzillaError):
    """Exception raised when a remote call could not be completed.

    Args:
        message: Description of the transport failure
        method: Name of the remote method being called
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        method: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.method = method
        context = {"method": method} if method else None
        super().__init__(
            ErrorCode.TRANSPORT_ERROR, message, Severity.HIGH, context, cause
        )


class MalformedResponseError(BugzillaError):
    """Exception raised when a response cannot be unmarshalled.

    Args:
        detail: Description of what was wrong with the payload
        path: Location in the payload where the problem was found
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        detail: str,
        path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.detail = detail
        self.path = path
        message = f"Malformed response at '{path}': {detail}" if path else detail
        context = {"path": path} if path else None
        super().__init__(
            ErrorCode.MALFORMED_RESPONSE, message, Severity.HIGH, context, cause
        )


class TypeMismatchError(MalformedResponseError):
    """Exception raised when a response value cannot be coerced to its type."""

    def __init__(
        self,
        path: str,
        expected: str,
        value: object,
        cause: Exception | None = None,
    ) -> None:
        self.expected = expected
        self.value = value
        super().__init__(
            f"expected {expected}, got {type(value).__name__} {value!r}",
            path,
            cause,
        )


class RpcFault(BugzillaError):
    """Raw fault reported by the server, before translation.

    The transport raises this for every XML-RPC fault response. Callers of
    the public API see the translated ``FaultError`` subclasses instead.

    Args:
        method: Name of the remote method that failed
        fault_code: Numeric fault code reported by the server
        fault_string: The server's fault message
    """

    def __init__(self, method: str, fault_code: int, fault_string: str) -> None:
        self.method = method
        self.fault_code = fault_code
        self.fault_string = fault_string
        super().__init__(
            ErrorCode.REMOTE_FAULT,
            f"{method} failed with fault {fault_code}: {fault_string}",
            Severity.MEDIUM,
            {"method": method, "fault_code": fault_code},
        )


class FaultError(BugzillaError):
    """Base class for translated server faults.

    Subclasses set ``default_code`` and ``default_severity``; the translator
    supplies the message, the failing operation and the raw fault details.

    Args:
        message: Human-readable error message
        operation: Name of the local operation that failed
        fault_code: Numeric fault code reported by the server
        fault_string: The server's fault message, preserved verbatim
        context: Additional context information about the error
        cause: The raw fault
    """

    default_code: ClassVar[ErrorCode] = ErrorCode.REMOTE_FAULT
    default_severity: ClassVar[Severity] = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        operation: str,
        fault_code: int,
        fault_string: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.operation = operation
        self.fault_code = fault_code
        self.fault_string = fault_string
        full_context = {
            "operation": operation,
            "fault_code": fault_code,
            **(context or {}),
        }
        super().__init__(
            self.default_code, message, self.default_severity, full_context, cause
        )


class OperationFailedError(FaultError):
    """A fault with no specific meaning for the failing operation."""


# Bug faults


class InvalidBugIdOrAliasError(FaultError):
    """No bug exists with the given ID or alias."""

    default_code = ErrorCode.NOT_FOUND
    default_severity = Severity.LOW


class BugAccessDeniedError(FaultError):
    """One or more requested bugs are not accessible to the current user."""

    default_code = ErrorCode.UNAUTHORIZED


class BugEditAccessDeniedError(FaultError):
    """The current user may not edit the bug."""

    default_code = ErrorCode.UNAUTHORIZED


class InsufficientPrivilegesError(FaultError):
    """The current user lacks the privileges for the requested operation."""

    default_code = ErrorCode.UNAUTHORIZED


class InvalidBugFieldValueError(FaultError):
    """The server rejected the value of a bug field."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidObjectError(FaultError):
    """A referenced product, component, version or user does not exist."""

    default_code = ErrorCode.NOT_FOUND
    default_severity = Severity.LOW


class InvalidKeywordError(FaultError):
    """One or more keywords do not exist."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidUserError(FaultError):
    """One or more users do not exist."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class CyclicBugDependenciesError(FaultError):
    """The requested dependency change would create a dependency loop."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class CyclicBugDuplicateError(FaultError):
    """The requested duplicate marking would create a duplicate loop."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class InvalidBugResolutionChangeError(FaultError):
    """The resolution cannot be changed as requested."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class InvalidBugStatusTransitionError(FaultError):
    """The workflow does not allow the requested status change."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class GroupEditAccessDeniedError(FaultError):
    """The current user may not change the bug's group restrictions."""

    default_code = ErrorCode.UNAUTHORIZED


class InvalidSeeAlsoUrlError(FaultError):
    """A "see also" URL is not valid."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class SeeAlsoEditAccessDeniedError(FaultError):
    """The current user may not edit the "see also" field."""

    default_code = ErrorCode.UNAUTHORIZED


# Comment faults


class CommentAccessDeniedError(FaultError):
    """One or more requested comments are not accessible to the current user."""

    default_code = ErrorCode.UNAUTHORIZED


class InvalidCommentIdError(FaultError):
    """One or more comment IDs do not exist."""

    default_code = ErrorCode.NOT_FOUND
    default_severity = Severity.LOW


# Attachment faults


class AttachmentAccessDeniedError(FaultError):
    """One or more requested attachments are not accessible to the current user."""

    default_code = ErrorCode.UNAUTHORIZED


class AttachmentTooLargeError(FaultError):
    """The attachment exceeds the maximum size allowed by the server."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidMimeTypeError(FaultError):
    """The attachment's MIME type is not valid."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidAttachmentUrlError(FaultError):
    """The URL given as attachment data is not valid."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class UrlAttachmentsDisabledError(FaultError):
    """The server does not allow URLs as attachments."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


# User faults


class InvalidLoginDetailsError(FaultError):
    """Invalid username and/or password."""

    default_code = ErrorCode.UNAUTHORIZED


class DisabledAccountError(FaultError):
    """The account has been disabled."""

    default_code = ErrorCode.UNAUTHORIZED


class ExpiredPasswordError(FaultError):
    """The account's password has expired."""

    default_code = ErrorCode.UNAUTHORIZED


class DuplicateAccountError(FaultError):
    """An account already exists with the given email address."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class IllegalEmailAddressError(FaultError):
    """Illegal email address, or account creation is disabled."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class PasswordTooShortError(FaultError):
    """The password is too short."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidLoginOrGroupNameError(FaultError):
    """A login or group name does not exist."""

    default_code = ErrorCode.NOT_FOUND
    default_severity = Severity.LOW


class UserAccessDeniedError(FaultError):
    """One or more requested users are not accessible to the current user."""

    default_code = ErrorCode.UNAUTHORIZED


class UserMatchingDeniedError(FaultError):
    """Logged-out users cannot use user matching."""

    default_code = ErrorCode.UNAUTHORIZED


# Group and product faults


class DuplicateGroupNameError(FaultError):
    """A group with the given name already exists."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW


class InvalidGroupDefinitionError(FaultError):
    """The group's name or description is missing."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidGroupRegExpError(FaultError):
    """The group's user regular expression is not valid."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class InvalidProductDefinitionError(FaultError):
    """The product's name, description, version or milestone was rejected."""

    default_code = ErrorCode.INVALID_VALUE
    default_severity = Severity.LOW


class DuplicateProductNameError(FaultError):
    """A product with the given name already exists."""

    default_code = ErrorCode.CONFLICT
    default_severity = Severity.LOW
