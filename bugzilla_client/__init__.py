"""bugzilla-client - typed client for the Bugzilla XML-RPC web service.

The package turns the loosely-typed XML-RPC payloads of a remote Bugzilla
server into typed Python objects and back again, and turns the server's
numeric fault codes into a stable hierarchy of exceptions.

Architecture Overview:
- **Core Layer**: Configuration, exceptions, logging and shared types
- **Infrastructure Layer**: The XML-RPC transport over httpx
- **Marshalling Layer**: Structured value reader, parameter shapes,
  request marshalling and response unmarshalling
- **Domain Layer**: Typed entities and custom field handling
- **Session Layer**: ``BugzillaServer`` and ``Bug``, the public operations

Example:
    >>> from bugzilla_client import BugzillaServer
    >>> with BugzillaServer.connect("https://bugzilla.example.com/xmlrpc.cgi") as bz:
    ...     bz.login("user@example.com", "secret")
    ...     bug = bz.get_bug(1)
    ...     bug.add_comment("Looking into it")
"""

from bugzilla_client.bug import Bug
from bugzilla_client.core.exceptions import (
    BugzillaError,
    FaultError,
    MalformedResponseError,
    OperationFailedError,
    PreconditionError,
    RpcFault,
    TransportError,
)
from bugzilla_client.domain.custom_fields import (
    CustomFieldDescriptor,
    CustomFieldType,
    CustomFieldValue,
)
from bugzilla_client.server import BugzillaServer

__all__ = [
    "Bug",
    "BugzillaError",
    "BugzillaServer",
    "CustomFieldDescriptor",
    "CustomFieldType",
    "CustomFieldValue",
    "FaultError",
    "MalformedResponseError",
    "OperationFailedError",
    "PreconditionError",
    "RpcFault",
    "TransportError",
]
