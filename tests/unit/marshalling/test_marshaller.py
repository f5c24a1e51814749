"""Unit tests for call parameters and request marshalling."""

from enum import Enum

import pytest

from bugzilla_client.core.exceptions import PreconditionError
from bugzilla_client.domain.custom_fields import CustomFieldDescriptor, CustomFieldType
from bugzilla_client.marshalling.marshaller import marshal
from bugzilla_client.marshalling.params import CallParams, CollectionUpdate
from bugzilla_client.marshalling.shapes import (
    ADD_COMMENT_SHAPE,
    CREATE_BUG_SHAPE,
    GET_USERS_SHAPE,
    UPDATE_BUG_SHAPE,
    extend_shape,
)


class _Priority(Enum):
    HIGH = "P1"


@pytest.mark.unit
class TestCollectionUpdate:
    """Test add/remove/set sub-structs."""

    def test_requires_at_least_one_list(self) -> None:
        with pytest.raises(PreconditionError):
            CollectionUpdate()

    def test_add_and_remove(self) -> None:
        update = CollectionUpdate(add=["a"], remove=["b"])

        assert update.to_wire() == {"add": ["a"], "remove": ["b"]}

    def test_set_takes_precedence(self) -> None:
        """Only the set key is sent when set is supplied."""
        update = CollectionUpdate(add=["x"], remove=["y"], set=["z"])

        assert update.to_wire() == {"set": ["z"]}

    def test_empty_set_clears(self) -> None:
        assert CollectionUpdate(set=[]).to_wire() == {"set": []}

    def test_single_value_is_wrapped(self) -> None:
        assert CollectionUpdate(add="kw").to_wire() == {"add": ["kw"]}

    def test_equality(self) -> None:
        assert CollectionUpdate(add=[1]) == CollectionUpdate(add=(1,))
        assert CollectionUpdate(add=[1]) != CollectionUpdate(remove=[1])


@pytest.mark.unit
class TestCallParams:
    """Test touched tracking."""

    def test_unknown_name_is_rejected(self) -> None:
        with pytest.raises(PreconditionError) as exc_info:
            CallParams(UPDATE_BUG_SHAPE).set("colour", "red")

        assert exc_info.value.parameter == "colour"

    def test_collection_slot_requires_collection_update(self) -> None:
        with pytest.raises(PreconditionError, match="CollectionUpdate"):
            CallParams(UPDATE_BUG_SHAPE).set("keywords", ["a"])

    def test_set_if_given_skips_none(self) -> None:
        params = CallParams(ADD_COMMENT_SHAPE).set_if_given("work_time", None)

        assert not params.is_touched("work_time")

    def test_unset_forgets_value(self) -> None:
        params = CallParams(ADD_COMMENT_SHAPE).set("work_time", 1.5).unset("work_time")

        assert params.touched_names == ()

    def test_custom_names_resolve_to_canonical_slot(self) -> None:
        shape = extend_shape(
            UPDATE_BUG_SHAPE,
            [CustomFieldDescriptor(name="cf_Build", field_type=CustomFieldType.FREE_TEXT)],
            "cf_build",
        )
        params = CallParams(shape).set("CF_BUILD", "42")

        assert params.touched_names == ("cf_Build",)
        assert params.get("cf_build") == "42"


@pytest.mark.unit
class TestMarshal:
    """Test building the request struct."""

    def test_untouched_optional_slots_are_omitted(self) -> None:
        """Only explicitly set fields and always-sent slots appear."""
        wire = marshal(CallParams(UPDATE_BUG_SHAPE).set("ids", [5]))

        assert wire == {"ids": [5]}

    def test_untouched_always_slots_are_sent_as_null(self) -> None:
        wire = marshal(CallParams(ADD_COMMENT_SHAPE).set("id", 1))

        assert wire == {"id": 1, "comment": None}

    @pytest.mark.parametrize("value", [0, 0.0, False, "", None])
    def test_falsy_values_are_sent_verbatim(self, value: object) -> None:
        """A field explicitly set to a zero value is distinct from unset."""
        params = CallParams(UPDATE_BUG_SHAPE).set("ids", [1]).set("remaining_time", value)

        wire = marshal(params)

        assert "remaining_time" in wire
        assert wire["remaining_time"] == value

    def test_omitted_and_zero_payloads_differ(self) -> None:
        untouched = marshal(CallParams(UPDATE_BUG_SHAPE).set("ids", [1]))
        zero = marshal(CallParams(UPDATE_BUG_SHAPE).set("ids", [1]).set("estimated_time", 0))

        assert "estimated_time" not in untouched
        assert zero["estimated_time"] == 0

    def test_collection_update_is_marshalled_as_struct(self) -> None:
        params = (
            CallParams(UPDATE_BUG_SHAPE)
            .set("ids", [1])
            .set("keywords", CollectionUpdate(add=["a"], set=["b"]))
        )

        assert marshal(params)["keywords"] == {"set": ["b"]}

    def test_array_slot_wraps_scalar(self) -> None:
        params = CallParams(GET_USERS_SHAPE).set("names", "alice")

        assert marshal(params) == {"names": ["alice"]}

    def test_enums_are_unwrapped(self) -> None:
        params = (
            CallParams(CREATE_BUG_SHAPE)
            .set("product", "P")
            .set("component", "C")
            .set("summary", "S")
            .set("version", "1")
            .set("priority", _Priority.HIGH)
        )

        assert marshal(params)["priority"] == "P1"

    def test_slots_follow_shape_order(self) -> None:
        params = CallParams(UPDATE_BUG_SHAPE).set("whiteboard", "w").set("ids", [1])

        assert list(marshal(params)) == ["ids", "whiteboard"]

    def test_multi_select_custom_field_is_an_array(self) -> None:
        shape = extend_shape(
            UPDATE_BUG_SHAPE,
            [CustomFieldDescriptor(name="cf_tags", field_type=CustomFieldType.MULTI_SELECT)],
            "cf_tags",
        )
        params = CallParams(shape).set("ids", [1]).set("cf_tags", "one")

        assert marshal(params)["cf_tags"] == ["one"]
