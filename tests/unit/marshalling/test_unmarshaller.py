"""Unit tests for bugzilla_client/marshalling/unmarshaller.py."""

from datetime import datetime
from typing import Any

import pytest
import pytest_check

from bugzilla_client.core.exceptions import MalformedResponseError, TypeMismatchError
from bugzilla_client.domain.custom_fields import (
    CustomFieldDescriptor,
    CustomFieldRegistry,
    CustomFieldType,
)
from bugzilla_client.marshalling.structured import Struct
from bugzilla_client.marshalling.unmarshaller import (
    parse_attachments,
    parse_bug,
    parse_bug_info,
    parse_bugs,
    parse_comments,
    parse_extensions,
    parse_fields,
    parse_history,
    parse_products,
    parse_see_also_result,
    parse_update_result,
    split_diff,
)
from tests.fixtures.bugzilla_fixtures import make_bug_payload, make_update_result

_WHEN = datetime(2024, 3, 1, 8, 0, 0)


def _registry(*descriptors: CustomFieldDescriptor) -> CustomFieldRegistry:
    registry = CustomFieldRegistry()
    registry._descriptors = descriptors  # noqa: SLF001
    return registry


@pytest.mark.unit
class TestSplitDiff:
    """Test splitting of joined field modification values."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("", []),
            (None, []),
            ("a", ["a"]),
            ("a, b", ["a", "b"]),
            ("a,b", ["a,b"]),
            ("a, b,c", ["a", "b,c"]),
            ("  padded , value ", ["padded", "value"]),
        ],
    )
    def test_split(self, text: str | None, expected: list[str]) -> None:
        """Only the comma-space separator splits tokens."""
        assert split_diff(text) == expected


@pytest.mark.unit
class TestBugParsing:
    """Test parsing of Bug.get results."""

    def test_fixed_fields(self) -> None:
        info = parse_bug_info(Struct(make_bug_payload(7, blocks=["8"], estimated_time="2.5")))

        with pytest_check.check:
            assert info.id == 7
        with pytest_check.check:
            assert info.blocks == [8]
        with pytest_check.check:
            assert info.estimated_time == 2.5
        with pytest_check.check:
            assert info.summary == "Widget does not spin"

    @pytest.mark.parametrize(
        ("alias", "expected"),
        [("legacy", ["legacy"]), (["a", "b"], ["a", "b"]), ("", []), (None, [])],
    )
    def test_alias_forms(self, alias: Any, expected: list[str]) -> None:
        """Aliases arrive as a string on older servers and an array on newer."""
        info = parse_bug_info(Struct(make_bug_payload(alias=alias)))

        assert info.alias == expected

    def test_missing_mandatory_field_names_path(self) -> None:
        payload = make_bug_payload()
        del payload["summary"]

        with pytest.raises(MalformedResponseError) as exc_info:
            parse_bugs(Struct({"bugs": [payload]}), _registry())

        assert exc_info.value.path == "$.bugs[0].summary"

    def test_bad_type_names_path(self) -> None:
        with pytest.raises(TypeMismatchError) as exc_info:
            parse_bugs(Struct({"bugs": [make_bug_payload(), make_bug_payload(id="x")]}), _registry())

        assert exc_info.value.path == "$.bugs[1].id"

    def test_custom_field_present_and_absent(self) -> None:
        """Registered fields missing from the payload get a None value."""
        registry = _registry(
            CustomFieldDescriptor(name="cf_build", field_type=CustomFieldType.FREE_TEXT),
            CustomFieldDescriptor(name="cf_team", field_type=CustomFieldType.DROP_DOWN),
        )

        _, fields = parse_bug(Struct(make_bug_payload(cf_build="1234")), registry)

        assert fields["cf_build"].value == "1234"
        assert fields["cf_team"].value is None
        assert not fields["cf_build"].touched

    def test_unregistered_custom_keys_are_ignored(self) -> None:
        _, fields = parse_bug(Struct(make_bug_payload(cf_other="x")), _registry())

        assert len(fields) == 0

    def test_permissive_faults(self) -> None:
        result = Struct(
            {
                "bugs": [make_bug_payload(1)],
                "faults": [{"id": "99", "faultCode": 101, "faultString": "No such bug"}],
            }
        )

        bugs, faults = parse_bugs(result, _registry())

        assert len(bugs) == 1
        assert faults[0].id == "99"
        assert faults[0].fault_code == 101

    def test_flags(self) -> None:
        flag = {
            "id": 3,
            "name": "review",
            "type_id": 1,
            "creation_date": _WHEN,
            "modification_date": _WHEN,
            "status": "?",
            "setter": "dev@example.com",
            "requestee": "lead@example.com",
        }
        info = parse_bug_info(Struct(make_bug_payload(flags=[flag])))

        assert info.flags[0].requestee == "lead@example.com"


@pytest.mark.unit
class TestCollections:
    """Test comments, attachments and history."""

    def test_comments_keyed_by_bug_and_id(self) -> None:
        comment = {"id": 10, "bug_id": 1, "text": "hi", "creator": "a@x", "time": _WHEN}
        legacy = {"id": 11, "bug_id": 1, "text": "old", "author": "b@x", "time": _WHEN}

        collection = parse_comments(
            Struct({"bugs": {"1": {"comments": [comment]}}, "comments": {"11": legacy}})
        )

        assert collection.bug_comments[1][0].author == "a@x"
        assert collection.comments[11].author == "b@x"

    def test_attachments_keyed_by_bug_and_id(self) -> None:
        attachment = {
            "id": 5,
            "bug_id": 2,
            "file_name": "log.txt",
            "summary": "Log",
            "content_type": "text/plain",
            "attacher": "c@x",
            "creation_time": _WHEN,
            "last_change_time": _WHEN,
            "data": b"data",
            "size": 4,
        }

        collection = parse_attachments(
            Struct({"bugs": {"2": [attachment]}, "attachments": {"5": attachment}})
        )

        assert collection.bug_attachments[2][0].creator == "c@x"
        assert collection.attachments[5].data == b"data"

    def test_history(self) -> None:
        result = Struct(
            {
                "bugs": [
                    {
                        "id": 4,
                        "alias": "",
                        "history": [
                            {
                                "when": _WHEN,
                                "who": "dev@x",
                                "changes": [
                                    {"field_name": "status", "removed": "NEW", "added": "ASSIGNED"}
                                ],
                            }
                        ],
                    }
                ]
            }
        )

        (history,) = parse_history(result)

        assert history.bug_id == 4
        assert history.history[0].changes[0].added == "ASSIGNED"

    def test_update_result_splits_diffs(self) -> None:
        result = Struct(make_update_result(3, keywords=("a, b", ""), summary=("x,y", "old")))

        (update,) = parse_update_result(result)

        assert update.modification("keywords").added == ["a", "b"]
        assert update.modification("keywords").removed == []
        assert update.modification("summary").added == ["x,y"]

    def test_see_also_result(self) -> None:
        result = Struct(
            {"changes": {"8": {"see_also": {"added": ["http://a"], "removed": []}}}}
        )

        (modification,) = parse_see_also_result(result)

        assert modification.bug_id == 8
        assert modification.added == ["http://a"]


@pytest.mark.unit
class TestMetadata:
    """Test products, fields and extensions."""

    def test_products(self) -> None:
        result = Struct(
            {
                "products": [
                    {
                        "id": 1,
                        "name": "Widgets",
                        "components": [{"id": 2, "name": "Core"}],
                        "versions": [{"name": "1.0"}],
                        "milestones": [],
                    }
                ]
            }
        )

        (product,) = parse_products(result)

        assert product.components[0].name == "Core"
        assert product.versions[0].name == "1.0"

    def test_fields_map_unknown_type_codes(self) -> None:
        result = Struct(
            {"fields": [{"id": 1, "name": "cf_new", "type": 42, "is_custom": True}]}
        )

        (details,) = parse_fields(result)

        assert details.field_type is CustomFieldType.UNKNOWN

    def test_extensions(self) -> None:
        result = Struct({"extensions": {"Voting": {"version": "1.0"}}})

        (extension,) = parse_extensions(result)

        assert (extension.name, extension.version) == ("Voting", "1.0")
