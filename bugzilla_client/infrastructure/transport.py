"""Blocking XML-RPC transport over httpx.

The transport performs exactly one named call per invocation: it encodes the
method name and a single struct of parameters with ``xmlrpc.client``, POSTs
the document with an ``httpx.Client`` and decodes the response. The client's
cookie jar keeps the server session between calls.

Two failure kinds are distinguished:

- ``RpcFault``: the server answered with an XML-RPC fault. Carries the
  numeric code and message for the fault translator.
- ``TransportError``: the call did not complete (connection error, timeout,
  HTTP error status, a body that is not an XML-RPC response).
"""

import xmlrpc.client
from types import TracebackType
from typing import Protocol, Self
from xml.parsers.expat import ExpatError

import httpx
from loguru import logger

from bugzilla_client.core.exceptions import RpcFault, TransportError
from bugzilla_client.core.types import StructuredMapping, StructuredValue

XML_CONTENT_TYPE = "text/xml"


class Transport(Protocol):
    """A capability to perform a single named remote call."""

    def call(self, method: str, params: StructuredMapping) -> StructuredValue:
        """Send ``method`` with ``params`` and return the decoded result."""
        ...

    def close(self) -> None:
        """Release any resources held by the transport."""
        ...


def encode_call(method: str, params: StructuredMapping) -> bytes:
    """Encode one XML-RPC method call taking a single struct argument.

    Args:
        method: Remote method name, e.g. ``Bug.get``.
        params: The parameter struct; ``None`` values are sent as ``<nil/>``.

    Returns:
        bytes: UTF-8 encoded XML-RPC request document.
    """
    document = xmlrpc.client.dumps(
        (params,), methodname=method, encoding="utf-8", allow_none=True
    )
    return document.encode("utf-8")


def decode_response(method: str, content: bytes) -> StructuredValue:
    """Decode an XML-RPC response document.

    Args:
        method: Remote method name, used in error reporting.
        content: Raw response body.

    Returns:
        StructuredValue: The single returned value.

    Raises:
        RpcFault: If the response is an XML-RPC fault.
        TransportError: If the body is not a valid XML-RPC response.
    """
    try:
        values, _ = xmlrpc.client.loads(content, use_builtin_types=True)
    except xmlrpc.client.Fault as e:
        try:
            code = int(e.faultCode)
        except (TypeError, ValueError):
            code = 0
        raise RpcFault(method, code, str(e.faultString)) from e
    except (ExpatError, xmlrpc.client.ResponseError, ValueError, TypeError) as e:
        msg = f"Invalid XML-RPC response for {method}: {e}"
        raise TransportError(msg, method, e) from e

    if len(values) != 1:
        msg = f"Expected one return value for {method}, got {len(values)}"
        raise TransportError(msg, method)
    return values[0]


class XmlRpcTransport:
    """XML-RPC transport bound to one server endpoint.

    Args:
        url: Complete URL of the server's ``xmlrpc.cgi``.
        timeout: Timeout in seconds for one call.
        verify: Whether to verify the server's TLS certificate.
        user_agent: User-Agent header for every request.
        client: Pre-built httpx client, mainly for tests. When given, the
            transport does not own it and ``close`` leaves it open.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        user_agent: str = "bugzilla-client",
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            verify=verify,
            headers={"User-Agent": user_agent},
        )

    def call(self, method: str, params: StructuredMapping) -> StructuredValue:
        """Perform one remote call.

        Args:
            method: Remote method name.
            params: The parameter struct.

        Returns:
            StructuredValue: The decoded result.

        Raises:
            RpcFault: If the server reported a fault.
            TransportError: If the call could not be completed.
        """
        body = encode_call(method, params)
        try:
            response = self._client.post(
                self.url,
                content=body,
                headers={"Content-Type": XML_CONTENT_TYPE},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"HTTP {e.response.status_code} from server calling {method}"
            raise TransportError(msg, method, e) from e
        except httpx.HTTPError as e:
            msg = f"Could not call {method}: {e}"
            raise TransportError(msg, method, e) from e

        return decode_response(method, response.content)

    def close(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            self._client.close()
            logger.debug("Closed transport for {}", self.url)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
