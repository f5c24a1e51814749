"""Call gateway shared by every operation of a session.

``RpcCaller`` wraps the transport with the concerns common to all calls:

- **Credentials**: the login token and the configured API key are added to
  every parameter struct
- **Logging**: each call gets a call ID; parameters are logged sanitized,
  durations are measured and slow calls reported
- **Fault translation**: a raw ``RpcFault`` becomes the typed exception of
  the failing local operation
"""

import time
from typing import Any

from loguru import logger

from bugzilla_client.core.config import get_settings
from bugzilla_client.core.constants import (
    API_KEY_PARAM,
    MILLISECONDS_PER_SECOND,
    TOKEN_PARAM,
)
from bugzilla_client.core.context import CallContext, generate_call_id
from bugzilla_client.core.error_context import sanitize_params
from bugzilla_client.core.exceptions import RpcFault, TransportError
from bugzilla_client.core.types import StructuredMapping, StructuredValue
from bugzilla_client.faults import Operation, translate
from bugzilla_client.infrastructure.transport import Transport
from bugzilla_client.marshalling.marshaller import marshal
from bugzilla_client.marshalling.params import CallParams
from bugzilla_client.marshalling.structured import Struct


class RpcCaller:
    """Performs remote calls on behalf of one session.

    Args:
        transport: The transport to send calls through.
        api_key: API key added to every call, if configured.
    """

    def __init__(self, transport: Transport, api_key: str | None = None) -> None:
        self.transport = transport
        self.api_key = api_key
        self.token: str | None = None

    def _with_credentials(self, params: StructuredMapping) -> StructuredMapping:
        wire = dict(params)
        if self.token is not None:
            wire[TOKEN_PARAM] = self.token
        if self.api_key is not None:
            wire[API_KEY_PARAM] = self.api_key
        return wire

    def call(
        self,
        method: str,
        params: StructuredMapping | None = None,
        operation: Operation | None = None,
        **fault_context: Any,
    ) -> StructuredValue:
        """Perform one remote call.

        Args:
            method: Remote method name.
            params: The parameter struct, without credentials.
            operation: The local operation, selecting the fault mapping. When
                None, faults propagate untranslated as ``RpcFault``.
            **fault_context: Values for fault message templates.

        Returns:
            StructuredValue: The call's result.

        Raises:
            FaultError: The translated fault, when ``operation`` is given.
            RpcFault: The raw fault, when ``operation`` is None.
            TransportError: If the call could not be completed.
        """
        log_config = get_settings().log_config
        wire = self._with_credentials(params or {})
        log = logger.bind(
            call_id=generate_call_id(),
            correlation_id=CallContext.get_correlation_id(),
            rpc_method=method,
            operation=operation.value if operation else None,
        )
        if log_config.log_rpc_params:
            log.debug("Calling {}", method, parameters=sanitize_params(wire))

        start_time = time.perf_counter()
        try:
            result = self.transport.call(method, wire)
        except RpcFault as e:
            log.warning(
                "{} returned fault {}: {}",
                method,
                e.fault_code,
                e.fault_string,
                fault_code=e.fault_code,
                duration_ms=self._elapsed_ms(start_time),
            )
            if operation is None:
                raise
            raise translate(
                operation, e.fault_code, e.fault_string, e, **fault_context
            ) from e
        except TransportError as e:
            log.error(
                "{} failed: {}",
                method,
                e.message,
                duration_ms=self._elapsed_ms(start_time),
            )
            raise

        duration_ms = self._elapsed_ms(start_time)
        if duration_ms >= log_config.slow_call_threshold_ms:
            log.warning(
                "Slow call detected: {} Duration: {:.2f}ms",
                method,
                duration_ms,
                duration_ms=duration_ms,
                threshold_ms=log_config.slow_call_threshold_ms,
            )
        else:
            log.debug("{} completed", method, duration_ms=duration_ms)
        return result

    def call_struct(
        self,
        method: str,
        params: StructuredMapping | None = None,
        operation: Operation | None = None,
        **fault_context: Any,
    ) -> Struct:
        """Perform a call whose result is a struct, wrapped for typed reads."""
        return Struct(self.call(method, params, operation, **fault_context), method)

    def invoke(
        self,
        method: str,
        params: CallParams,
        operation: Operation,
        **fault_context: Any,
    ) -> Struct:
        """Marshal ``params`` and perform a translated call returning a struct."""
        return self.call_struct(method, marshal(params), operation, **fault_context)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND, 2)
