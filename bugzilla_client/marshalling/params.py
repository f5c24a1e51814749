"""Call parameters that remember which fields the caller set.

A field that was never set is distinct from a field set to ``0``, ``False``,
``""`` or ``None``: the former is omitted from the wire payload (unless its
slot is sent always), the latter is sent verbatim.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Self

from bugzilla_client.core.constants import COLLECTION_ADD, COLLECTION_REMOVE, COLLECTION_SET
from bugzilla_client.core.exceptions import PreconditionError
from bugzilla_client.marshalling.shapes import ParameterShape, SlotKind


def _as_list(values: Iterable[Any] | Any | None) -> list[Any] | None:
    if values is None:
        return None
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return [values]
    return list(values)


class CollectionUpdate:
    """Incremental or replacing change to a multi-valued bug field.

    Supplying ``set`` replaces the whole collection and discards any ``add``
    or ``remove`` given in the same update: only the ``set`` key is sent.

    Args:
        add: Values to add.
        remove: Values to remove.
        set: Values replacing the current collection. An empty list clears it.

    Raises:
        PreconditionError: If none of the three lists is given.
    """

    __slots__ = ("add", "remove", "replace")

    def __init__(
        self,
        *,
        add: Iterable[Any] | None = None,
        remove: Iterable[Any] | None = None,
        set: Iterable[Any] | None = None,  # noqa: A002
    ) -> None:
        if add is None and remove is None and set is None:
            raise PreconditionError(
                "add/remove/set", "at least one of add, remove or set is required"
            )
        self.add = _as_list(add)
        self.remove = _as_list(remove)
        self.replace = _as_list(set)

    def to_wire(self) -> dict[str, list[Any]]:
        """Return the ``add``/``remove``/``set`` sub-struct for the wire."""
        if self.replace is not None:
            return {COLLECTION_SET: list(self.replace)}
        wire: dict[str, list[Any]] = {}
        if self.add is not None:
            wire[COLLECTION_ADD] = list(self.add)
        if self.remove is not None:
            wire[COLLECTION_REMOVE] = list(self.remove)
        return wire

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CollectionUpdate):
            return NotImplemented
        return (self.add, self.remove, self.replace) == (
            other.add,
            other.remove,
            other.replace,
        )

    def __hash__(self) -> int:
        return hash(repr(self))

    def __repr__(self) -> str:
        return (
            f"CollectionUpdate(add={self.add!r}, remove={self.remove!r}, "
            f"set={self.replace!r})"
        )


class CallParams:
    """Values for one call, validated against the call's shape.

    Args:
        shape: The shape of the call.
        values: Initial values, each recorded as explicitly set.
    """

    def __init__(
        self, shape: ParameterShape, values: Mapping[str, Any] | None = None
    ) -> None:
        self.shape = shape
        self._values: dict[str, Any] = {}
        for name, value in (values or {}).items():
            self.set(name, value)

    def set(self, name: str, value: Any) -> Self:
        """Set ``name`` to ``value`` and mark it touched.

        Raises:
            PreconditionError: If the shape has no slot called ``name``, or a
                collection slot is given something other than a
                ``CollectionUpdate``.
        """
        slot = self.shape.slot(name)
        if slot is None:
            raise PreconditionError(name, f"not a parameter of {self.shape.name}")
        if (
            slot.kind is SlotKind.COLLECTION_UPDATE
            and value is not None
            and not isinstance(value, CollectionUpdate)
        ):
            raise PreconditionError(name, "expected a CollectionUpdate")
        self._values[slot.name] = value
        return self

    def set_if_given(self, name: str, value: Any) -> Self:
        """Set ``name`` unless ``value`` is None, which means "not supplied"."""
        if value is not None:
            self.set(name, value)
        return self

    def unset(self, name: str) -> Self:
        """Forget a previously set value."""
        slot = self.shape.slot(name)
        if slot is not None:
            self._values.pop(slot.name, None)
        return self

    def is_touched(self, name: str) -> bool:
        slot = self.shape.slot(name)
        return slot is not None and slot.name in self._values

    def get(self, name: str, default: Any = None) -> Any:
        slot = self.shape.slot(name)
        if slot is None:
            return default
        return self._values.get(slot.name, default)

    @property
    def touched_names(self) -> tuple[str, ...]:
        return tuple(self._values)

    def __repr__(self) -> str:
        return f"CallParams({self.shape.name!r}, {self._values!r})"
