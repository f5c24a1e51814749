"""Typed reads over XML-RPC structured values.

Results come back from the transport as plain nested dicts and lists. A
``Struct`` wraps one mapping level and reads keys with a declared type,
coercing the loose representations Bugzilla uses (numeric strings, ``"1"``
and ``"0"`` booleans, compact timestamps) and raising
``MalformedResponseError`` when the payload breaks the contract.

Absence of a key is distinct from a key holding ``None``: ``has`` reports
presence, ``require`` rejects both absence and null, ``optional`` maps both
to a default.
"""

import xmlrpc.client
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from typing import Any, cast

from bugzilla_client.core.exceptions import MalformedResponseError, TypeMismatchError

ROOT_PATH = "$"

# Formats Bugzilla and XML-RPC use for timestamps, besides ISO-8601
_TIMESTAMP_FORMATS = (
    "%Y%m%dT%H:%M:%S",
    "%Y%m%dT%H%M%S",
    "%Y-%m-%d %H:%M:%S %Z",
    "%Y-%m-%d %H:%M",
)
_TRUE_STRINGS = frozenset({"1", "true"})
_FALSE_STRINGS = frozenset({"0", "false"})


def coerce_int(value: object, path: str) -> int:
    """Coerce a wire value to ``int``; numeric strings are accepted."""
    if isinstance(value, bool):
        raise TypeMismatchError(path, "int", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise TypeMismatchError(path, "int", value, e) from e
    raise TypeMismatchError(path, "int", value)


def coerce_float(value: object, path: str) -> float:
    """Coerce a wire value to ``float``."""
    if isinstance(value, bool):
        raise TypeMismatchError(path, "float", value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as e:
            raise TypeMismatchError(path, "float", value, e) from e
    raise TypeMismatchError(path, "float", value)


def coerce_bool(value: object, path: str) -> bool:
    """Coerce a wire value to ``bool``; accepts 0/1 and their text forms."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise TypeMismatchError(path, "bool", value)


def coerce_str(value: object, path: str) -> str:
    """Coerce a wire value to ``str``; numbers are rendered as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise TypeMismatchError(path, "str", value)


def coerce_datetime(value: object, path: str) -> datetime:
    """Coerce a wire value to ``datetime``."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, xmlrpc.client.DateTime):
        value = value.value
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in _TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(text, fmt)  # noqa: DTZ007
            except ValueError:
                continue
    raise TypeMismatchError(path, "datetime", value)


def coerce_bytes(value: object, path: str) -> bytes:
    """Coerce a wire value to ``bytes``."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, xmlrpc.client.Binary):
        return value.data
    raise TypeMismatchError(path, "bytes", value)


_COERCERS: dict[type, Callable[[object, str], Any]] = {
    int: coerce_int,
    float: coerce_float,
    bool: coerce_bool,
    str: coerce_str,
    datetime: coerce_datetime,
    bytes: coerce_bytes,
}


def coerce[T](value: object, kind: type[T], path: str) -> T:
    """Coerce ``value`` to ``kind``, raising ``TypeMismatchError`` on failure.

    Args:
        value: The raw wire value.
        kind: One of int, float, bool, str, datetime, bytes.
        path: Location of the value, used in error messages.

    Returns:
        T: The coerced value.
    """
    try:
        coercer = _COERCERS[kind]
    except KeyError:
        msg = f"No coercion defined for {kind.__name__}"
        raise TypeError(msg) from None
    return cast("T", coercer(value, path))


class Struct(Mapping[str, Any]):
    """Read-only view over one level of an XML-RPC struct.

    Args:
        data: The mapping to wrap.
        path: Location of the mapping within the response, for error messages.
    """

    __slots__ = ("_data", "path")

    def __init__(self, data: object, path: str = ROOT_PATH) -> None:
        if not isinstance(data, Mapping):
            raise TypeMismatchError(path, "struct", data)
        self._data: Mapping[str, Any] = data
        self.path = path

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Struct({self.path!r}, keys={sorted(self._data)!r})"

    def child_path(self, key: str) -> str:
        """Return the dotted path of ``key`` below this struct."""
        return f"{self.path}.{key}"

    def has(self, key: str) -> bool:
        """Return True if ``key`` is present, even when its value is null."""
        return key in self._data

    def raw(self, key: str, default: Any = None) -> Any:
        """Return the uncoerced value of ``key``, or ``default`` if absent."""
        return self._data.get(key, default)

    def require[T](self, key: str, kind: type[T]) -> T:
        """Read a mandatory key.

        Raises:
            MalformedResponseError: If the key is absent or null.
            TypeMismatchError: If the value cannot be coerced to ``kind``.
        """
        value = self._data.get(key)
        if value is None:
            state = "null" if key in self._data else "missing"
            raise MalformedResponseError(f"mandatory key is {state}", self.child_path(key))
        return coerce(value, kind, self.child_path(key))

    def optional[T](self, key: str, kind: type[T], default: T | None = None) -> T | None:
        """Read an optional key; absent and null both give ``default``."""
        value = self._data.get(key)
        if value is None:
            return default
        return coerce(value, kind, self.child_path(key))

    def struct(self, key: str) -> "Struct":
        """Read a mandatory nested struct."""
        if self._data.get(key) is None:
            raise MalformedResponseError("mandatory struct is missing", self.child_path(key))
        return Struct(self._data[key], self.child_path(key))

    def optional_struct(self, key: str) -> "Struct | None":
        """Read an optional nested struct."""
        if self._data.get(key) is None:
            return None
        return Struct(self._data[key], self.child_path(key))

    def _array(self, key: str, *, required: bool) -> list[Any]:
        value = self._data.get(key)
        if value is None:
            if required:
                raise MalformedResponseError(
                    "mandatory array is missing", self.child_path(key)
                )
            return []
        if not isinstance(value, (list, tuple)):
            raise TypeMismatchError(self.child_path(key), "array", value)
        return list(value)

    def structs(self, key: str, *, required: bool = True) -> list["Struct"]:
        """Read an array of structs, wrapping each element independently."""
        items = self._array(key, required=required)
        base = self.child_path(key)
        return [Struct(item, f"{base}[{index}]") for index, item in enumerate(items)]

    def scalars[T](self, key: str, kind: type[T], *, required: bool = False) -> list[T]:
        """Read an array of scalars, coercing each element to ``kind``."""
        items = self._array(key, required=required)
        base = self.child_path(key)
        return [
            coerce(item, kind, f"{base}[{index}]") for index, item in enumerate(items)
        ]

    def entries(self) -> Iterator[tuple[str, "Struct"]]:
        """Iterate over ``(key, Struct)`` pairs of a struct keyed by ID."""
        for key, value in self._data.items():
            yield key, Struct(value, self.child_path(str(key)))
