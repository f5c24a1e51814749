"""Unit tests for bugzilla_client/rpc.py."""

import pytest
from pytest_mock import MockerFixture

from bugzilla_client.core.context import CallContext
from bugzilla_client.core.exceptions import (
    BugEditAccessDeniedError,
    RpcFault,
    TransportError,
)
from bugzilla_client.faults import Operation
from bugzilla_client.marshalling.params import CallParams
from bugzilla_client.marshalling.shapes import ADD_COMMENT_SHAPE
from bugzilla_client.rpc import RpcCaller
from tests.fixtures.bugzilla_fixtures import FakeTransport


@pytest.mark.unit
class TestRpcCaller:
    """Test credentials, translation and logging of remote calls."""

    def test_credentials_are_added(self, fake_transport: FakeTransport) -> None:
        fake_transport.respond("Bug.get", {"bugs": []})
        caller = RpcCaller(fake_transport, api_key="key-1")
        caller.token = "tok-2"

        caller.call("Bug.get", {"ids": [1]})

        assert fake_transport.params_of("Bug.get") == {
            "ids": [1],
            "Bugzilla_token": "tok-2",
            "Bugzilla_api_key": "key-1",
        }

    def test_no_credentials_when_anonymous(self, fake_transport: FakeTransport) -> None:
        fake_transport.respond("Bugzilla.version", {"version": "5.0"})

        RpcCaller(fake_transport).call("Bugzilla.version")

        assert fake_transport.params_of("Bugzilla.version") == {}

    def test_fault_is_translated_for_operation(self, fake_transport: FakeTransport) -> None:
        fake_transport.fault("Bug.update", 115, "You are not allowed")

        with pytest.raises(BugEditAccessDeniedError) as exc_info:
            RpcCaller(fake_transport).call(
                "Bug.update", {"ids": [3]}, Operation.UPDATE_BUG, bug_id=3
            )

        assert exc_info.value.message == "Edit access to bug 3 denied"
        assert isinstance(exc_info.value.__cause__, RpcFault)

    def test_fault_is_raw_without_operation(self, fake_transport: FakeTransport) -> None:
        fake_transport.fault("Bug.fields", 51, "nope")

        with pytest.raises(RpcFault):
            RpcCaller(fake_transport).call("Bug.fields", {})

    def test_transport_errors_propagate(self, fake_transport: FakeTransport) -> None:
        fake_transport.respond("Bug.get", TransportError("down", "Bug.get"))

        with pytest.raises(TransportError):
            RpcCaller(fake_transport).call("Bug.get", {}, Operation.GET_BUG)

    def test_invoke_marshals_params(self, fake_transport: FakeTransport) -> None:
        fake_transport.respond("Bug.add_comment", {"id": 77})
        params = CallParams(ADD_COMMENT_SHAPE).set("id", 1).set("comment", "hi")

        result = RpcCaller(fake_transport).invoke(
            "Bug.add_comment", params, Operation.ADD_COMMENT
        )

        assert result.require("id", int) == 77
        assert result.path == "Bug.add_comment"
        assert fake_transport.params_of("Bug.add_comment") == {"id": 1, "comment": "hi"}

    def test_logs_bind_call_metadata(
        self, fake_transport: FakeTransport, mocker: MockerFixture
    ) -> None:
        mock_logger = mocker.patch("bugzilla_client.rpc.logger")
        fake_transport.respond("User.login", {"id": 1, "token": "t"})
        CallContext.set_correlation_id("corr-1")

        RpcCaller(fake_transport).call(
            "User.login", {"login": "a", "password": "secret"}, Operation.LOGIN
        )

        bound = mock_logger.bind.call_args.kwargs
        assert bound["correlation_id"] == "corr-1"
        assert bound["rpc_method"] == "User.login"
        assert bound["operation"] == "login"
        assert bound["call_id"].startswith("rpc-")

    def test_logged_parameters_are_sanitized(
        self, fake_transport: FakeTransport, mocker: MockerFixture
    ) -> None:
        mock_logger = mocker.patch("bugzilla_client.rpc.logger")
        fake_transport.respond("User.login", {"id": 1})

        RpcCaller(fake_transport).call("User.login", {"login": "a", "password": "secret"})

        debug_calls = mock_logger.bind.return_value.debug.call_args_list
        logged = debug_calls[0].kwargs["parameters"]
        assert logged["password"] == "[REDACTED]"
        assert logged["login"] == "a"

    def test_slow_call_warning(
        self,
        fake_transport: FakeTransport,
        mocker: MockerFixture,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("LOG_CONFIG__SLOW_CALL_THRESHOLD_MS", "1")
        mock_logger = mocker.patch("bugzilla_client.rpc.logger")
        mocker.patch.object(RpcCaller, "_elapsed_ms", return_value=500.0)
        fake_transport.respond("Bug.get", {"bugs": []})

        RpcCaller(fake_transport).call("Bug.get", {})

        warning = mock_logger.bind.return_value.warning
        warning.assert_called_once()
        assert warning.call_args.kwargs["duration_ms"] == 500.0
        assert warning.call_args.kwargs["threshold_ms"] == 1
