"""Conversion of call parameters into the request struct."""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from bugzilla_client.core.types import StructuredMapping, StructuredValue
from bugzilla_client.marshalling.params import CallParams, CollectionUpdate
from bugzilla_client.marshalling.shapes import FieldSlot, SlotKind, SlotPolicy


def _scalar(value: Any) -> StructuredValue:
    if isinstance(value, Enum):
        return value.value
    return value


def _array(value: Any) -> list[StructuredValue]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return [_scalar(value)]
    return [_scalar(item) for item in value]


def _struct(value: Mapping[str, Any]) -> StructuredMapping:
    return {str(key): _scalar(item) for key, item in value.items()}


def _to_wire(slot: FieldSlot, value: Any) -> StructuredValue:
    if value is None:
        return None
    match slot.kind:
        case SlotKind.ARRAY:
            return _array(value)
        case SlotKind.COLLECTION_UPDATE:
            update: CollectionUpdate = value
            return update.to_wire()  # type: ignore[return-value]
        case SlotKind.STRUCT:
            return _struct(value)
        case _:
            return _scalar(value)


def marshal(params: CallParams) -> StructuredMapping:
    """Build the request struct for a call.

    Slots are visited in shape order. A touched slot is always emitted, with
    ``0``, ``False``, ``""`` and ``None`` sent verbatim; an untouched slot is
    emitted as null only if its policy is ``SEND_ALWAYS``.

    Args:
        params: The call's parameters.

    Returns:
        StructuredMapping: The struct to pass to the transport.
    """
    wire: StructuredMapping = {}
    for slot in params.shape.slots:
        if params.is_touched(slot.name):
            wire[slot.name] = _to_wire(slot, params.get(slot.name))
        elif slot.policy is SlotPolicy.SEND_ALWAYS:
            wire[slot.name] = None
    return wire
