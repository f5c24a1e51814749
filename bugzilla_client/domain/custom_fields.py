"""Custom bug fields defined by the server administrator.

Custom fields are not part of the fixed bug schema: their names (always
prefixed with ``cf_``) and types are fetched from the server once per
session. Each loaded or new bug holds one ``CustomFieldValue`` per known
descriptor, and only values the caller changed are sent back on update.
"""

import threading
from collections.abc import Iterable, Iterator, Mapping
from enum import IntEnum
from typing import Any, Protocol

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bugzilla_client.core.constants import CUSTOM_FIELD_PREFIX
from bugzilla_client.core.exceptions import MalformedResponseError
from bugzilla_client.core.types import StructuredMapping
from bugzilla_client.marshalling.structured import Struct

FIELDS_METHOD = "Bug.fields"
FIELD_LISTING_KEYS = ("name", "type", "is_custom")


class CustomFieldType(IntEnum):
    """Custom field types, using the server's numeric codes."""

    UNKNOWN = 0
    FREE_TEXT = 1
    DROP_DOWN = 2
    MULTI_SELECT = 3
    LARGE_TEXT = 4
    DATE_TIME = 5
    BUG_ID = 6
    BUG_URLS = 7

    @classmethod
    def from_code(cls, code: int) -> "CustomFieldType":
        """Map a server type code to a member, unknown codes to ``UNKNOWN``."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_multi_valued(self) -> bool:
        """True if values of this type are held as a list."""
        return self is CustomFieldType.MULTI_SELECT


class CustomFieldDescriptor(BaseModel):
    """Name and declared type of one custom field."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Field name, starting with the cf_ prefix")
    field_type: CustomFieldType = Field(
        default=CustomFieldType.UNKNOWN, description="Declared field type"
    )

    @field_validator("name", mode="after")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Reject names without the custom field prefix."""
        if not v.startswith(CUSTOM_FIELD_PREFIX):
            msg = f"Custom field name must start with '{CUSTOM_FIELD_PREFIX}': {v!r}"
            raise ValueError(msg)
        return v


def _normalize(descriptor: CustomFieldDescriptor, value: Any) -> Any:
    if value is None or not descriptor.field_type.is_multi_valued:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class CustomFieldValue:
    """The value of one custom field on one bug.

    Assigning ``value`` marks the field as touched; only touched fields are
    sent when the bug is saved. Multi-select values are held as a list.
    """

    __slots__ = ("_touched", "_value", "descriptor")

    def __init__(self, descriptor: CustomFieldDescriptor, value: Any = None) -> None:
        self.descriptor = descriptor
        self._value = _normalize(descriptor, value)
        self._touched = False

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def field_type(self) -> CustomFieldType:
        return self.descriptor.field_type

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        self._value = _normalize(self.descriptor, value)
        self._touched = True

    @property
    def touched(self) -> bool:
        return self._touched

    def mark_saved(self) -> None:
        """Clear the touched flag after the value has been sent."""
        self._touched = False

    def __repr__(self) -> str:
        return (
            f"CustomFieldValue(name={self.name!r}, "
            f"type={self.field_type.name}, value={self._value!r})"
        )


class CustomFields(Mapping[str, CustomFieldValue]):
    """The custom field values of one bug, keyed by field name.

    Lookups fall back to a case-insensitive match. Assigning through
    ``fields[name] = value`` sets the value and marks it touched; unknown
    names raise ``KeyError``.
    """

    def __init__(self, values: Iterable[CustomFieldValue]) -> None:
        self._values = {value.name: value for value in values}
        self._folded = {name.casefold(): name for name in self._values}

    def _resolve(self, name: str) -> str:
        if name in self._values:
            return name
        try:
            return self._folded[name.casefold()]
        except KeyError:
            msg = f"Unknown custom field: {name!r}"
            raise KeyError(msg) from None

    def __getitem__(self, name: str) -> CustomFieldValue:
        return self._values[self._resolve(name)]

    def __setitem__(self, name: str, value: Any) -> None:
        self._values[self._resolve(name)].value = value

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CustomFields({list(self._values.values())!r})"

    def touched(self) -> list[CustomFieldValue]:
        """Return the values changed since load or the last save."""
        return [value for value in self._values.values() if value.touched]

    def mark_saved(self) -> None:
        for value in self._values.values():
            value.mark_saved()


class FieldListingCaller(Protocol):
    """The part of the call gateway the registry needs."""

    def call_struct(self, method: str, params: StructuredMapping) -> Struct:
        """Perform an untranslated remote call returning a struct."""
        ...


class CustomFieldRegistry:
    """Per-session catalogue of the server's custom fields.

    The catalogue is fetched lazily on first use and is read-only afterward.
    Publication is guarded by a lock so no reader observes a partially loaded
    registry; once loaded, reads need no synchronization.
    """

    def __init__(self) -> None:
        self._descriptors: tuple[CustomFieldDescriptor, ...] | None = None
        self._lock = threading.Lock()

    @staticmethod
    def fetch(caller: FieldListingCaller) -> list[CustomFieldDescriptor]:
        """Fetch the custom field descriptors from the server.

        The field listing has no documented faults, so failures propagate
        untranslated.

        Args:
            caller: The session's call gateway.

        Returns:
            list[CustomFieldDescriptor]: Descriptors of fields flagged custom.

        Raises:
            MalformedResponseError: If a custom field entry is malformed.
        """
        result = caller.call_struct(
            FIELDS_METHOD, {"include_fields": list(FIELD_LISTING_KEYS)}
        )
        descriptors = []
        for entry in result.structs("fields"):
            if not entry.optional("is_custom", bool, False):
                continue
            name = entry.require("name", str)
            code = entry.optional("type", int, CustomFieldType.UNKNOWN.value)
            try:
                descriptors.append(
                    CustomFieldDescriptor(
                        name=name, field_type=CustomFieldType.from_code(code)
                    )
                )
            except ValidationError as e:
                raise MalformedResponseError(
                    f"invalid custom field name {name!r}", entry.path, e
                ) from e
        return descriptors

    def ensure_loaded(
        self, caller: FieldListingCaller
    ) -> tuple[CustomFieldDescriptor, ...]:
        """Return the descriptors, fetching them on first use.

        Args:
            caller: The session's call gateway.

        Returns:
            tuple[CustomFieldDescriptor, ...]: The session's custom fields.
        """
        descriptors = self._descriptors
        if descriptors is not None:
            return descriptors
        with self._lock:
            # Double-checked locking pattern
            if self._descriptors is None:
                self._descriptors = tuple(self.fetch(caller))
                logger.debug(
                    "Loaded {} custom field descriptors",
                    len(self._descriptors),
                    custom_fields=[d.name for d in self._descriptors],
                )
            return self._descriptors

    @property
    def is_loaded(self) -> bool:
        return self._descriptors is not None

    @property
    def descriptors(self) -> tuple[CustomFieldDescriptor, ...]:
        """The loaded descriptors.

        Raises:
            RuntimeError: If the registry has not been loaded yet.
        """
        if self._descriptors is None:
            msg = "Custom field registry has not been loaded"
            raise RuntimeError(msg)
        return self._descriptors

    def reset(self) -> None:
        """Forget the loaded descriptors, e.g. when the session logs out."""
        with self._lock:
            self._descriptors = None

    def values_for(self, raw: Struct) -> CustomFields:
        """Build one value per descriptor from a bug's raw payload.

        A descriptor whose key is absent or null gets a ``None`` value.
        """
        return CustomFields(
            CustomFieldValue(descriptor, raw.raw(descriptor.name))
            for descriptor in self.descriptors
        )

    def blank_values(self) -> CustomFields:
        """Build untouched ``None`` values for every descriptor, for new bugs."""
        return CustomFields(
            CustomFieldValue(descriptor) for descriptor in self.descriptors
        )
