"""Parameter shapes: which named slots a remote call's parameters may hold.

Every call has a static shape listing its wire keys, each with a kind and a
policy deciding whether an untouched slot is sent. Bug creation and update
additionally accept the server's custom fields, which are only known at run
time; ``ShapeCache`` extends the static shape with one slot per custom field
and memoizes the result by the set of custom field names.
"""

import threading
from collections.abc import Iterable
from enum import Enum

from loguru import logger
from pydantic import BaseModel, ConfigDict, PrivateAttr

from bugzilla_client.domain.custom_fields import CustomFieldDescriptor


class SlotPolicy(Enum):
    """Whether a slot is sent when the caller never set it."""

    SEND_ALWAYS = "send_always"
    OMIT_IF_UNSET = "omit_if_unset"


class SlotKind(Enum):
    """How a slot's value is converted to the wire."""

    SCALAR = "scalar"
    ARRAY = "array"
    COLLECTION_UPDATE = "collection_update"
    STRUCT = "struct"


class FieldSlot(BaseModel):
    """One named slot of a parameter shape."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: SlotKind = SlotKind.SCALAR
    policy: SlotPolicy = SlotPolicy.OMIT_IF_UNSET
    custom: bool = False


class ParameterShape(BaseModel):
    """An immutable template of the slots one call accepts.

    Custom slots are looked up case-insensitively; fixed slots by their
    exact wire name.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    slots: tuple[FieldSlot, ...]
    cache_key: str = ""

    _by_name: dict[str, FieldSlot] = PrivateAttr(default_factory=dict)
    _custom_by_folded: dict[str, FieldSlot] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        """Index the slots by name."""
        super().model_post_init(__context)
        for slot in self.slots:
            if slot.name in self._by_name:
                msg = f"Duplicate slot {slot.name!r} in shape {self.name!r}"
                raise ValueError(msg)
            self._by_name[slot.name] = slot
            if slot.custom:
                self._custom_by_folded[slot.name.casefold()] = slot

    def slot(self, name: str) -> FieldSlot | None:
        """Return the slot called ``name``, or None if the shape lacks it."""
        found = self._by_name.get(name)
        if found is None:
            found = self._custom_by_folded.get(name.casefold())
        return found

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.slot(name) is not None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(slot.name for slot in self.slots)

    @property
    def custom_slots(self) -> tuple[FieldSlot, ...]:
        return tuple(slot for slot in self.slots if slot.custom)


def _shape(name: str, *slots: FieldSlot) -> ParameterShape:
    return ParameterShape(name=name, slots=slots)


def _always(name: str, kind: SlotKind = SlotKind.SCALAR) -> FieldSlot:
    return FieldSlot(name=name, kind=kind, policy=SlotPolicy.SEND_ALWAYS)


def _optional(name: str, kind: SlotKind = SlotKind.SCALAR) -> FieldSlot:
    return FieldSlot(name=name, kind=kind)


_ARRAY = SlotKind.ARRAY
_UPDATE = SlotKind.COLLECTION_UPDATE
_STRUCT = SlotKind.STRUCT

LOGIN_SHAPE = _shape(
    "Login", _always("login"), _always("password"), _optional("remember")
)

CREATE_USER_SHAPE = _shape(
    "CreateUser", _always("email"), _optional("full_name"), _optional("password")
)

GET_USERS_SHAPE = _shape(
    "GetUsers",
    _optional("ids", _ARRAY),
    _optional("names", _ARRAY),
    _optional("match", _ARRAY),
    _optional("group_ids", _ARRAY),
    _optional("groups", _ARRAY),
    _optional("include_disabled"),
)

OFFER_ACCOUNT_SHAPE = _shape("OfferAccount", _always("email"))

GET_BUGS_SHAPE = _shape("GetBugs", _always("ids", _ARRAY), _optional("permissive"))

SEARCH_BUGS_SHAPE = _shape(
    "SearchBugs",
    _optional("alias", _ARRAY),
    _optional("assigned_to", _ARRAY),
    _optional("component", _ARRAY),
    _optional("creation_time"),
    _optional("creator", _ARRAY),
    _optional("id", _ARRAY),
    _optional("last_change_time"),
    _optional("limit"),
    _optional("offset"),
    _optional("op_sys", _ARRAY),
    _optional("platform", _ARRAY),
    _optional("priority", _ARRAY),
    _optional("product", _ARRAY),
    _optional("resolution", _ARRAY),
    _optional("severity", _ARRAY),
    _optional("status", _ARRAY),
    _optional("summary", _ARRAY),
    _optional("target_milestone", _ARRAY),
    _optional("qa_contact", _ARRAY),
    _optional("url", _ARRAY),
    _optional("version", _ARRAY),
    _optional("whiteboard", _ARRAY),
)

CREATE_BUG_SHAPE = _shape(
    "CreateBug",
    _always("product"),
    _always("component"),
    _always("summary"),
    _always("version"),
    _optional("description"),
    _optional("op_sys"),
    _optional("platform"),
    _optional("priority"),
    _optional("severity"),
    _optional("alias"),
    _optional("assigned_to"),
    _optional("cc", _ARRAY),
    _optional("comment_is_private"),
    _optional("groups", _ARRAY),
    _optional("qa_contact"),
    _optional("status"),
    _optional("target_milestone"),
    _optional("depends_on", _ARRAY),
    _optional("blocks", _ARRAY),
    _optional("estimated_time"),
    _optional("deadline"),
    _optional("bug_file_loc"),
)

UPDATE_BUG_SHAPE = _shape(
    "UpdateBug",
    _always("ids", _ARRAY),
    _optional("alias"),
    _optional("assigned_to"),
    _optional("blocks", _UPDATE),
    _optional("cc", _UPDATE),
    _optional("comment", _STRUCT),
    _optional("comment_is_private", _STRUCT),
    _optional("component"),
    _optional("deadline"),
    _optional("depends_on", _UPDATE),
    _optional("dupe_of"),
    _optional("estimated_time"),
    _optional("groups", _UPDATE),
    _optional("is_cc_accessible"),
    _optional("is_creator_accessible"),
    _optional("keywords", _UPDATE),
    _optional("op_sys"),
    _optional("platform"),
    _optional("priority"),
    _optional("product"),
    _optional("qa_contact"),
    _optional("remaining_time"),
    _optional("reset_assigned_to"),
    _optional("reset_qa_contact"),
    _optional("resolution"),
    _optional("severity"),
    _optional("status"),
    _optional("summary"),
    _optional("target_milestone"),
    _optional("url"),
    _optional("version"),
    _optional("whiteboard"),
    _optional("work_time"),
)

ADD_COMMENT_SHAPE = _shape(
    "AddComment",
    _always("id"),
    _always("comment"),
    _optional("is_private"),
    _optional("work_time"),
)

GET_COMMENTS_SHAPE = _shape(
    "GetComments",
    _optional("ids", _ARRAY),
    _optional("comment_ids", _ARRAY),
    _optional("new_since"),
)

ADD_ATTACHMENT_SHAPE = _shape(
    "AddAttachment",
    _always("ids", _ARRAY),
    _always("data"),
    _always("file_name"),
    _always("summary"),
    _always("content_type"),
    _optional("comment"),
    _optional("is_patch"),
    _optional("is_private"),
)

GET_ATTACHMENTS_SHAPE = _shape(
    "GetAttachments",
    _optional("ids", _ARRAY),
    _optional("attachment_ids", _ARRAY),
)

BUG_HISTORY_SHAPE = _shape("BugHistory", _always("ids", _ARRAY))

UPDATE_SEE_ALSO_SHAPE = _shape(
    "UpdateSeeAlso",
    _always("ids", _ARRAY),
    _optional("add", _ARRAY),
    _optional("remove", _ARRAY),
)

BUG_FIELDS_SHAPE = _shape(
    "BugFields",
    _optional("ids", _ARRAY),
    _optional("names", _ARRAY),
    _optional("include_fields", _ARRAY),
)

GET_PRODUCTS_SHAPE = _shape(
    "GetProducts", _optional("ids", _ARRAY), _optional("names", _ARRAY)
)

CREATE_PRODUCT_SHAPE = _shape(
    "CreateProduct",
    _always("name"),
    _always("description"),
    _always("version"),
    _optional("has_unconfirmed"),
    _optional("classification"),
    _optional("default_milestone"),
    _optional("is_open"),
    _optional("create_series"),
)

CREATE_GROUP_SHAPE = _shape(
    "CreateGroup",
    _always("name"),
    _always("description"),
    _optional("user_regexp"),
    _optional("is_active"),
    _optional("icon_url"),
)

GET_CLASSIFICATIONS_SHAPE = _shape(
    "GetClassifications", _optional("ids", _ARRAY), _optional("names", _ARRAY)
)


class BaseKind(Enum):
    """Calls whose parameters may carry custom fields."""

    CREATE_BUG = "create_bug"
    UPDATE_BUG = "update_bug"


BASE_SHAPES: dict[BaseKind, ParameterShape] = {
    BaseKind.CREATE_BUG: CREATE_BUG_SHAPE,
    BaseKind.UPDATE_BUG: UPDATE_BUG_SHAPE,
}


def shape_cache_key(names: Iterable[str]) -> str:
    """Compute the cache key for a set of custom field names.

    The key ignores order, case and duplicates, so ``{"cf_Foo", "cf_bar"}``
    and ``{"cf_BAR", "cf_foo"}`` share a key.

    Args:
        names: Custom field names.

    Returns:
        str: Case-folded, sorted names joined with commas.
    """
    return ",".join(sorted({name.casefold() for name in names}))


def extend_shape(
    base: ParameterShape,
    descriptors: Iterable[CustomFieldDescriptor],
    cache_key: str,
) -> ParameterShape:
    """Build a shape holding the base slots plus one slot per custom field.

    Multi-select fields get an array slot, every other type a scalar slot.
    Custom slots are never sent unless set.
    """
    extra: dict[str, FieldSlot] = {}
    for descriptor in descriptors:
        folded = descriptor.name.casefold()
        if folded in extra:
            continue
        kind = (
            SlotKind.ARRAY if descriptor.field_type.is_multi_valued else SlotKind.SCALAR
        )
        extra[folded] = FieldSlot(name=descriptor.name, kind=kind, custom=True)
    return ParameterShape(
        name=base.name,
        slots=base.slots + tuple(extra.values()),
        cache_key=cache_key,
    )


class ShapeCache:
    """Memo of custom-field shapes, owned by one session.

    Shapes are built outside the lock and published with ``setdefault``
    under it: racing builders for the same key may both build, but every
    caller receives the single published instance.
    """

    def __init__(self) -> None:
        self._shapes: dict[tuple[BaseKind, str], ParameterShape] = {}
        self._lock = threading.Lock()

    def shape_for(
        self, kind: BaseKind, descriptors: Iterable[CustomFieldDescriptor]
    ) -> ParameterShape:
        """Return the shape for ``kind`` extended with ``descriptors``.

        Args:
            kind: Which base call the shape is for.
            descriptors: Custom fields the shape must hold.

        Returns:
            ParameterShape: The static base shape when there are no custom
                fields, otherwise the cached extended shape.
        """
        descriptors = tuple(descriptors)
        base = BASE_SHAPES[kind]
        if not descriptors:
            return base

        key = (kind, shape_cache_key(d.name for d in descriptors))
        shape = self._shapes.get(key)
        if shape is not None:
            return shape

        built = extend_shape(base, descriptors, key[1])
        with self._lock:
            shape = self._shapes.setdefault(key, built)
        if shape is built:
            logger.debug(
                "Built {} shape with {} custom slots",
                base.name,
                len(shape.custom_slots),
                cache_key=key[1],
            )
        return shape

    def __len__(self) -> int:
        return len(self._shapes)
