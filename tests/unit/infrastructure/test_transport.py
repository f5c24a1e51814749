"""Unit tests for bugzilla_client/infrastructure/transport.py."""

import xmlrpc.client
from datetime import datetime

import httpx
import pytest
import pytest_check

from bugzilla_client.core.exceptions import RpcFault, TransportError
from bugzilla_client.infrastructure.transport import (
    XmlRpcTransport,
    decode_response,
    encode_call,
)

URL = "https://bugzilla.example.com/xmlrpc.cgi"


def _response(value: object) -> bytes:
    return xmlrpc.client.dumps((value,), methodresponse=True, allow_none=True).encode()


def _fault(code: object, message: str) -> bytes:
    return xmlrpc.client.dumps(xmlrpc.client.Fault(code, message)).encode()


def _transport(handler: httpx.MockTransport) -> XmlRpcTransport:
    return XmlRpcTransport(URL, client=httpx.Client(transport=handler))


@pytest.mark.unit
class TestCodec:
    """Test request encoding and response decoding."""

    def test_encode_call_round_trips_through_xmlrpc(self) -> None:
        body = encode_call("Bug.get", {"ids": [1], "permissive": None})

        params, method = xmlrpc.client.loads(body)

        assert method == "Bug.get"
        assert params == ({"ids": [1], "permissive": None},)

    def test_decode_response_uses_builtin_types(self) -> None:
        when = datetime(2024, 1, 2, 3, 4, 5)

        result = decode_response("Bug.get", _response({"when": when, "data": xmlrpc.client.Binary(b"x")}))

        assert result == {"when": when, "data": b"x"}

    def test_fault_becomes_rpc_fault(self) -> None:
        with pytest.raises(RpcFault) as exc_info:
            decode_response("Bug.get", _fault(101, "Bug #9 does not exist."))

        with pytest_check.check:
            assert exc_info.value.fault_code == 101
        with pytest_check.check:
            assert exc_info.value.fault_string == "Bug #9 does not exist."
        with pytest_check.check:
            assert exc_info.value.method == "Bug.get"

    def test_non_numeric_fault_code_becomes_zero(self) -> None:
        with pytest.raises(RpcFault) as exc_info:
            decode_response("Bug.get", _fault("Client", "bad"))

        assert exc_info.value.fault_code == 0

    def test_garbage_body_is_a_transport_error(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            decode_response("Bug.get", b"<html>Service Unavailable</html")

        assert exc_info.value.method == "Bug.get"

    @pytest.mark.parametrize(
        "value", ["<int>abc</int>", "<boolean>yes</boolean>", "<double>x</double>"]
    )
    def test_bad_scalar_is_a_transport_error(self, value: str) -> None:
        body = (
            "<?xml version='1.0'?><methodResponse><params><param>"
            f"<value>{value}</value>"
            "</param></params></methodResponse>"
        ).encode()

        with pytest.raises(TransportError, match="Invalid XML-RPC response"):
            decode_response("Bug.get", body)


@pytest.mark.unit
class TestXmlRpcTransport:
    """Test the HTTP side of the transport."""

    def test_call_posts_xml(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=_response({"version": "5.0.4"}))

        with _transport(httpx.MockTransport(handler)) as transport:
            result = transport.call("Bugzilla.version", {})

        assert result == {"version": "5.0.4"}
        assert seen[0].method == "POST"
        assert seen[0].headers["Content-Type"] == "text/xml"
        assert xmlrpc.client.loads(seen[0].content)[1] == "Bugzilla.version"

    def test_http_error_status(self) -> None:
        transport = _transport(httpx.MockTransport(lambda _: httpx.Response(503)))

        with pytest.raises(TransportError, match="HTTP 503"):
            transport.call("Bug.get", {"ids": [1]})

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            _transport(httpx.MockTransport(handler)).call("Bug.get", {})

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    def test_fault_propagates(self) -> None:
        transport = _transport(
            httpx.MockTransport(lambda _: httpx.Response(200, content=_fault(300, "no")))
        )

        with pytest.raises(RpcFault):
            transport.call("User.login", {})

    def test_close_leaves_injected_client_open(self) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda _: httpx.Response(200)))
        transport = XmlRpcTransport(URL, client=client)

        transport.close()

        assert not client.is_closed
        client.close()

    def test_close_owned_client(self) -> None:
        transport = XmlRpcTransport(URL)

        transport.close()

        assert transport._client.is_closed  # noqa: SLF001
